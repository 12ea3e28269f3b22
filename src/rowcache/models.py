"""Pydantic models for entry policies and cache configuration."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from rowcache.clock import Clock

DEFAULT_SLIDING_EXPIRATION = timedelta(minutes=20)


class EntryOptions(BaseModel):
    """Expiration policy for a single cache entry.

    Any subset of the three fields may be set. When both absolute forms are
    given, the relative one wins. An empty policy is replaced by the cache's
    default sliding expiration on ``set``.

    Example:
        ```python
        # Slide by 5 minutes but never live past one hour
        options = EntryOptions(
            sliding_expiration=timedelta(minutes=5),
            absolute_expiration_relative_to_now=timedelta(hours=1),
        )
        ```
    """

    absolute_expiration: datetime | None = Field(
        default=None,
        description="Fixed instant after which the entry expires. Naive values are UTC.",
    )
    absolute_expiration_relative_to_now: timedelta | None = Field(
        default=None,
        description="Expire this long after the entry is written.",
    )
    sliding_expiration: timedelta | None = Field(
        default=None,
        description="Expire if not accessed for this long.",
    )

    model_config = ConfigDict(frozen=True)

    @field_validator("absolute_expiration")
    @classmethod
    def _as_utc(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @field_validator("absolute_expiration_relative_to_now", "sliding_expiration")
    @classmethod
    def _positive(cls, value: timedelta | None) -> timedelta | None:
        if value is not None and value <= timedelta(0):
            raise ValueError("The expiration duration must be positive.")
        return value

    @field_validator("sliding_expiration")
    @classmethod
    def _whole_seconds(cls, value: timedelta | None) -> timedelta | None:
        # Stores keep the sliding window as an integer number of seconds.
        if value is not None and (value.microseconds or value < timedelta(seconds=1)):
            raise ValueError(
                "The sliding expiration must be a whole number of seconds."
            )
        return value

    @property
    def has_expiration(self) -> bool:
        """Whether any expiration form is set."""
        return (
            self.absolute_expiration is not None
            or self.absolute_expiration_relative_to_now is not None
            or self.sliding_expiration is not None
        )

    def _replace(self, **changes: Any) -> EntryOptions:
        return type(self)(**{**self.model_dump(), **changes})

    def with_sliding(self, sliding: timedelta | float) -> EntryOptions:
        return self._replace(sliding_expiration=sliding)

    def with_absolute(self, absolute: datetime) -> EntryOptions:
        return self._replace(absolute_expiration=absolute)

    def with_absolute_relative(self, relative: timedelta | float) -> EntryOptions:
        return self._replace(absolute_expiration_relative_to_now=relative)


class CacheOptions(BaseModel):
    """Construction-time options for ``DistributedCache``.

    Values are checked when the cache is built, not here, so a bad
    ``CacheOptions`` surfaces as ``InvalidConfigurationError`` from the cache
    constructor.
    """

    default_sliding_expiration: timedelta = Field(
        default=DEFAULT_SLIDING_EXPIRATION,
        description="Sliding expiration applied when set() is given no policy.",
    )
    expired_items_deletion_interval: timedelta | None = Field(
        default=None,
        description="Minimum time between expired-entry sweeps (default 30 minutes).",
    )
    clock: Any = Field(
        default=None,
        description="Time provider; SystemClock when omitted.",
    )

    @field_validator("clock")
    @classmethod
    def _is_clock(cls, value: Any) -> Clock | None:
        if value is not None and not isinstance(value, Clock):
            raise ValueError("clock must provide utcnow()")
        return value
