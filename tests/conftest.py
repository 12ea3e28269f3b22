"""Pytest configuration and fixtures for rowcache tests."""

import os
import uuid
from collections.abc import Generator
from datetime import datetime, timezone
from pathlib import Path

import pytest

from rowcache import CacheOptions, DistributedCache, ManualClock
from rowcache.backends.base import CacheStore
from rowcache.backends.memory import MemoryStore
from rowcache.backends.sqlite import SQLiteStore

# Check if Redis is available
try:
    from rowcache.backends.redis import RedisStore

    REDIS_AVAILABLE = True
except ImportError:
    REDIS_AVAILABLE = False
    RedisStore = None  # type: ignore[assignment,misc]

REDIS_TEST_URL = os.environ.get("ROWCACHE_TEST_REDIS_URL", "redis://localhost:6379/15")

START_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def _get_store_params() -> list[str]:
    """Get list of store parameter names for parametrization."""
    params = ["memory", "sqlite_memory", "sqlite_file"]
    if REDIS_AVAILABLE:
        params.append("redis")
    return params


def make_redis_store() -> "RedisStore":
    """Create a Redis store on a unique prefix, or skip the test."""
    if not REDIS_AVAILABLE:
        pytest.skip("Redis package not installed")
    try:
        redis_store = RedisStore(
            url=REDIS_TEST_URL, key_prefix=f"rowcache-test:{uuid.uuid4().hex}:"
        )
    except Exception as exception:
        pytest.skip(f"Redis connection failed: {exception}")
    if not redis_store.ping():
        pytest.skip("Redis server not available")
    return redis_store


@pytest.fixture
def clock() -> ManualClock:
    """Deterministic clock starting at a fixed instant."""
    return ManualClock(START_TIME)


@pytest.fixture(params=_get_store_params())
def store(
    request: pytest.FixtureRequest, tmp_path: Path
) -> Generator[CacheStore, None, None]:
    """Create a store for testing.

    Parametrized to test MemoryStore, SQLiteStore (memory and file),
    and RedisStore (when available and connected).
    """
    if request.param == "memory":
        yield MemoryStore()
    elif request.param == "sqlite_memory":
        sqlite_store = SQLiteStore(":memory:")
        yield sqlite_store
        sqlite_store.close()
    elif request.param == "sqlite_file":
        sqlite_store = SQLiteStore(tmp_path / "test_cache.db")
        yield sqlite_store
        sqlite_store.close()
    elif request.param == "redis":
        redis_store = make_redis_store()
        yield redis_store
        redis_store.clear()
        redis_store.close()


@pytest.fixture
def redis_store() -> Generator[CacheStore, None, None]:
    """A Redis store on a throwaway prefix; skips when Redis is unavailable."""
    redis_store = make_redis_store()
    yield redis_store
    redis_store.clear()
    redis_store.close()


@pytest.fixture
def cache(
    store: CacheStore, clock: ManualClock
) -> Generator[DistributedCache, None, None]:
    """Cache on the parametrized store with the manual clock.

    The first call on a fresh cache always schedules a sweep; it is consumed
    here so tests start with a quiet scanner.
    """
    distributed_cache = DistributedCache(store, CacheOptions(clock=clock))
    initial_sweep = distributed_cache.scanner.scan_if_required()
    assert initial_sweep is not None
    initial_sweep.result(timeout=5)
    yield distributed_cache
    distributed_cache.scanner.shutdown(wait=True)

