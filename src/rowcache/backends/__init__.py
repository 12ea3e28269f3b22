"""Row store implementations.

This module provides the store protocol and its implementations. The Redis
store needs the optional ``redis`` extra and is imported on first use.

Exports:
    CacheStore: Protocol defining the store interface.
    CacheEntry: Dataclass for a stored row.
    AsyncStore: Awaitable wrapper around any CacheStore.
    MemoryStore: Thread-safe in-memory store.
    SQLiteStore: Persistent SQLite store.
    RedisStore: Redis store (requires ``rowcache[redis]``).
"""

from typing import Any

from rowcache.backends.base import AsyncStore, CacheEntry, CacheStore
from rowcache.backends.memory import MemoryStore
from rowcache.backends.sqlite import SQLiteStore

__all__ = [
    "AsyncStore",
    "CacheEntry",
    "CacheStore",
    "MemoryStore",
    "RedisStore",
    "SQLiteStore",
]


def __getattr__(name: str) -> Any:
    if name == "RedisStore":
        from rowcache.backends.redis import RedisStore

        return RedisStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
