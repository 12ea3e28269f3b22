"""Environment-driven settings and factory helpers.

``CacheSettings`` reads ``ROWCACHE_*`` environment variables (and a ``.env``
file if present). ``create_cache`` wires a store, options and clock into a
``DistributedCache``.

Store URLs:
    ``memory://``                       in-process ``MemoryStore``
    ``sqlite://``                       ``SQLiteStore`` at its default path
    ``sqlite:///:memory:``              private in-memory SQLite database
    ``sqlite:///relative/cache.db``     relative path
    ``sqlite:////var/cache/app.db``     absolute path
    ``redis://[:password@]host:port/db`` ``RedisStore`` (also ``rediss://``, ``unix://``)
"""

from __future__ import annotations

import logging
from datetime import timedelta
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from rowcache.backends.base import CacheStore
from rowcache.backends.memory import MemoryStore
from rowcache.backends.sqlite import DEFAULT_TABLE_NAME, MEMORY_DATABASE, SQLiteStore
from rowcache.cache import DistributedCache
from rowcache.clock import Clock
from rowcache.errors import InvalidConfigurationError
from rowcache.models import DEFAULT_SLIDING_EXPIRATION, CacheOptions

logger = logging.getLogger("rowcache.config")

_REDIS_SCHEMES = ("redis://", "rediss://", "unix://")


class CacheSettings(BaseSettings):
    """Runtime configuration for a cache built by ``create_cache``."""

    store_url: str = Field(
        default="sqlite://",
        description="Where entries are stored; see module docstring for formats.",
    )
    default_sliding_expiration_seconds: float = Field(
        default=DEFAULT_SLIDING_EXPIRATION.total_seconds(),
        description="Sliding expiration applied to entries set without a policy.",
    )
    expired_items_deletion_interval_seconds: float | None = Field(
        default=None,
        description="Minimum seconds between sweeps (>= 300; default 1800).",
    )
    sqlite_table_name: str = Field(default=DEFAULT_TABLE_NAME)
    redis_key_prefix: str = Field(default="rowcache:")
    redis_password: str | None = Field(default=None)

    model_config = SettingsConfigDict(
        env_prefix="ROWCACHE_",
        env_file=".env",
        extra="ignore",
    )

    def to_options(self, clock: Clock | None = None) -> CacheOptions:
        interval = self.expired_items_deletion_interval_seconds
        return CacheOptions(
            default_sliding_expiration=timedelta(
                seconds=self.default_sliding_expiration_seconds
            ),
            expired_items_deletion_interval=(
                None if interval is None else timedelta(seconds=interval)
            ),
            clock=clock,
        )


def _sqlite_path(url: str) -> str | Path | None:
    rest = url[len("sqlite://") :]
    if rest in ("", "/"):
        return None
    if rest.lstrip("/") == MEMORY_DATABASE:
        return MEMORY_DATABASE
    if rest.startswith("/"):
        rest = rest[1:]
    return Path(rest)


def create_store(
    url: str,
    *,
    sqlite_table_name: str = DEFAULT_TABLE_NAME,
    redis_key_prefix: str = "rowcache:",
    redis_password: str | None = None,
) -> CacheStore:
    """Build a store from a URL."""
    if url == "memory://":
        return MemoryStore()
    if url.startswith("sqlite://"):
        return SQLiteStore(_sqlite_path(url), table_name=sqlite_table_name)
    if url.startswith(_REDIS_SCHEMES):
        from rowcache.backends.redis import RedisStore

        return RedisStore(url=url, password=redis_password, key_prefix=redis_key_prefix)
    raise InvalidConfigurationError(f"Unsupported store URL: {url!r}")


def create_cache(
    settings: CacheSettings | None = None,
    *,
    store: CacheStore | None = None,
    clock: Clock | None = None,
) -> DistributedCache:
    """Build a ``DistributedCache`` from settings.

    An explicit ``store`` overrides ``settings.store_url`` and stays owned by
    the caller. A store built here is closed again if the cache rejects the
    settings.
    """
    settings = settings or CacheSettings()
    if store is not None:
        return DistributedCache(store, settings.to_options(clock))

    store = create_store(
        settings.store_url,
        sqlite_table_name=settings.sqlite_table_name,
        redis_key_prefix=settings.redis_key_prefix,
        redis_password=settings.redis_password,
    )
    logger.info(f"Created store from {settings.store_url!r}")
    try:
        return DistributedCache(store, settings.to_options(clock))
    except Exception:
        store.close()
        raise
