"""rowcache: a persistent, expiration-aware key/value cache.

This library provides:
- Byte values under exact string keys, with absolute and/or sliding expiration
- Pluggable row stores (in-memory, SQLite, Redis)
- Sync and cancellable async get/set/refresh/remove
- A debounced background sweep of expired entries
"""

from rowcache.backends.base import AsyncStore, CacheEntry, CacheStore
from rowcache.backends.memory import MemoryStore
from rowcache.backends.sqlite import SQLiteStore
from rowcache.cache import DistributedCache
from rowcache.cancellation import CancellationToken
from rowcache.clock import Clock, ManualClock, SystemClock
from rowcache.config import CacheSettings, create_cache, create_store
from rowcache.errors import (
    CacheCancelledError,
    CacheError,
    DuplicateKeyError,
    InvalidArgumentError,
    InvalidConfigurationError,
    InvalidPolicyError,
    StoreError,
)
from rowcache.models import CacheOptions, EntryOptions
from rowcache.operations import CacheOperations
from rowcache.sweep import ExpirationScanner

__version__ = "0.0.1"

__all__ = [
    "AsyncStore",
    "CacheCancelledError",
    "CacheEntry",
    "CacheError",
    "CacheOperations",
    "CacheOptions",
    "CacheSettings",
    "CacheStore",
    "CancellationToken",
    "Clock",
    "DistributedCache",
    "DuplicateKeyError",
    "EntryOptions",
    "ExpirationScanner",
    "InvalidArgumentError",
    "InvalidConfigurationError",
    "InvalidPolicyError",
    "ManualClock",
    "MemoryStore",
    "SQLiteStore",
    "StoreError",
    "SystemClock",
    "__version__",
    "create_cache",
    "create_store",
]
