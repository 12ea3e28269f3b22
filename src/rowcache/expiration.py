"""Expiration arithmetic.

Pure functions over an entry's stored policy and the current time. Nothing
here touches a store or reads a clock; callers pass ``now`` in.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from rowcache.backends.base import CacheEntry
from rowcache.errors import InvalidPolicyError
from rowcache.models import EntryOptions


def compute_absolute_expiration(
    now: datetime, options: EntryOptions
) -> datetime | None:
    """Resolve the policy's absolute ceiling, if it has one.

    The relative form takes precedence over a fixed instant. A fixed instant
    must lie strictly after ``now``.
    """
    if options.absolute_expiration_relative_to_now is not None:
        return now + options.absolute_expiration_relative_to_now
    if options.absolute_expiration is not None:
        if options.absolute_expiration <= now:
            raise InvalidPolicyError(
                "The absolute expiration value must be in the future."
            )
        return options.absolute_expiration
    return None


def validate_options(
    sliding_expiration: timedelta | None, absolute_expiration: datetime | None
) -> None:
    if sliding_expiration is None and absolute_expiration is None:
        raise InvalidPolicyError(
            "Either absolute or sliding expiration needs to be provided."
        )


def compute_initial_expires_at(
    now: datetime,
    sliding_expiration: timedelta | None,
    absolute_expiration: datetime | None,
) -> datetime:
    if sliding_expiration is not None:
        return now + sliding_expiration
    assert absolute_expiration is not None
    return absolute_expiration


def needs_refresh(entry: CacheEntry) -> bool:
    """Whether reading ``entry`` can still move its expiration.

    Entries without a sliding window never move, and entries already clamped
    to their absolute ceiling have reached their final expiration.
    """
    if entry.sliding_expiration_seconds is None:
        return False
    return entry.absolute_expiration != entry.expires_at


def recompute_on_access(entry: CacheEntry, now: datetime) -> datetime:
    """Return the entry's new ``expires_at`` after an access at ``now``."""
    sliding_seconds = entry.sliding_expiration_seconds or 0
    slid = now + timedelta(seconds=sliding_seconds)
    if entry.absolute_expiration is None:
        return slid

    remaining = (entry.absolute_expiration - now).total_seconds()
    if remaining <= sliding_seconds:
        return entry.absolute_expiration
    return slid


def build_entry(
    key: str, value: bytes, options: EntryOptions, now: datetime
) -> CacheEntry:
    """Build the full row written by ``set``.

    Raises:
        InvalidPolicyError: if the absolute expiration is not in the future or
            the policy has no expiration at all.
    """
    absolute_expiration = compute_absolute_expiration(now, options)
    sliding = options.sliding_expiration
    validate_options(sliding, absolute_expiration)

    expires_at = compute_initial_expires_at(now, sliding, absolute_expiration)
    if absolute_expiration is not None and expires_at > absolute_expiration:
        expires_at = absolute_expiration

    return CacheEntry(
        key=key,
        value=value,
        expires_at=expires_at,
        sliding_expiration_seconds=(
            None if sliding is None else int(sliding.total_seconds())
        ),
        absolute_expiration=absolute_expiration,
    )
