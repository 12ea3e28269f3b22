"""Tests for the asynchronous DistributedCache API and cancellation."""

import asyncio
from datetime import timedelta

import pytest

from rowcache import (
    CacheCancelledError,
    CancellationToken,
    DistributedCache,
    EntryOptions,
    InvalidArgumentError,
    InvalidPolicyError,
    ManualClock,
)
from rowcache.backends.base import CacheStore

VALUE = b"Hello, World!"
SLIDING_10S = EntryOptions(sliding_expiration=timedelta(seconds=10))


class TestAsyncOperations:
    """Async variants behave like their synchronous counterparts."""

    @pytest.mark.asyncio
    async def test_set_and_get(self, cache: DistributedCache) -> None:
        """A value set asynchronously reads back."""
        await cache.set_async("key", VALUE, SLIDING_10S)
        assert await cache.get_async("key") == VALUE

    @pytest.mark.asyncio
    async def test_get_missing(self, cache: DistributedCache) -> None:
        """Missing keys read as None."""
        assert await cache.get_async("missing") is None

    @pytest.mark.asyncio
    async def test_sync_and_async_share_rows(self, cache: DistributedCache) -> None:
        """Both APIs see the same entries."""
        cache.set("sync", VALUE, SLIDING_10S)
        await cache.set_async("async", b"other", SLIDING_10S)
        assert await cache.get_async("sync") == VALUE
        assert cache.get("async") == b"other"

    @pytest.mark.asyncio
    async def test_expired_entry_absent(
        self, cache: DistributedCache, clock: ManualClock
    ) -> None:
        """Expired entries read as None."""
        await cache.set_async("key", VALUE, SLIDING_10S)
        clock.advance(11)
        assert await cache.get_async("key") is None

    @pytest.mark.asyncio
    async def test_get_extends_sliding_window(
        self, cache: DistributedCache, store: CacheStore, clock: ManualClock
    ) -> None:
        """get_async restarts the sliding window."""
        start = clock.utcnow()
        await cache.set_async("key", VALUE, SLIDING_10S)
        clock.advance(5)
        assert await cache.get_async("key") == VALUE
        assert store.read("key").expires_at == start + timedelta(seconds=15)

    @pytest.mark.asyncio
    async def test_refresh(
        self, cache: DistributedCache, store: CacheStore, clock: ManualClock
    ) -> None:
        """refresh_async restarts the sliding window."""
        start = clock.utcnow()
        await cache.set_async("key", VALUE, SLIDING_10S)
        clock.advance(5)
        await cache.refresh_async("key")
        assert store.read("key").expires_at == start + timedelta(seconds=15)

    @pytest.mark.asyncio
    async def test_remove_twice(self, cache: DistributedCache) -> None:
        """remove_async is idempotent."""
        await cache.set_async("key", VALUE, SLIDING_10S)
        await cache.remove_async("key")
        await cache.remove_async("key")
        assert await cache.get_async("key") is None

    @pytest.mark.asyncio
    async def test_default_policy(
        self, cache: DistributedCache, store: CacheStore, clock: ManualClock
    ) -> None:
        """set_async without options uses the default sliding expiration."""
        now = clock.utcnow()
        await cache.set_async("key", VALUE)
        assert store.read("key").expires_at == now + timedelta(minutes=20)

    @pytest.mark.asyncio
    async def test_string_helpers(self, cache: DistributedCache) -> None:
        """Async string helpers encode and decode UTF-8."""
        await cache.set_string_async("key", "value", SLIDING_10S)
        assert await cache.get_string_async("key") == "value"

    @pytest.mark.asyncio
    async def test_argument_errors(self, cache: DistributedCache) -> None:
        """Async calls validate arguments like sync ones."""
        with pytest.raises(InvalidArgumentError):
            await cache.get_async(None)  # type: ignore[arg-type]
        with pytest.raises(InvalidArgumentError):
            await cache.set_async("key", None)  # type: ignore[arg-type]
        with pytest.raises(InvalidArgumentError):
            await cache.set_async("key", VALUE, None)  # type: ignore[arg-type]

    @pytest.mark.asyncio
    async def test_past_absolute_rejected(
        self, cache: DistributedCache, store: CacheStore, clock: ManualClock
    ) -> None:
        """A past absolute expiration fails without writing."""
        options = EntryOptions(absolute_expiration=clock.utcnow() - timedelta(seconds=1))
        with pytest.raises(InvalidPolicyError):
            await cache.set_async("key", VALUE, options)
        assert store.exists("key") is False

    @pytest.mark.asyncio
    async def test_concurrent_tasks(self, cache: DistributedCache) -> None:
        """Many concurrent tasks complete without errors."""

        async def worker(index: int) -> bytes | None:
            key = f"key_{index % 4}"
            await cache.set_async(key, f"value_{index}".encode(), SLIDING_10S)
            await cache.refresh_async(key)
            return await cache.get_async(key)

        results = await asyncio.gather(*(worker(index) for index in range(20)))
        assert all(result is not None for result in results)
        assert sorted(cache.store.keys()) == ["key_0", "key_1", "key_2", "key_3"]


class TestCancellation:
    """A cancelled token stops the call before the store is touched."""

    @pytest.mark.asyncio
    async def test_cancelled_set_writes_nothing(
        self, cache: DistributedCache, store: CacheStore
    ) -> None:
        """Cancelled set_async raises and leaves the store untouched."""
        with pytest.raises(CacheCancelledError):
            await cache.set_async(
                "key", VALUE, SLIDING_10S, token=CancellationToken.cancelled_token()
            )
        assert store.exists("key") is False

    @pytest.mark.asyncio
    async def test_cancelled_remove_keeps_entry(
        self, cache: DistributedCache, store: CacheStore
    ) -> None:
        """Cancelled remove_async leaves the row in place."""
        cache.set("key", VALUE, SLIDING_10S)
        with pytest.raises(CacheCancelledError):
            await cache.remove_async("key", token=CancellationToken.cancelled_token())
        assert store.exists("key") is True

    @pytest.mark.asyncio
    async def test_cancelled_refresh_keeps_expiry(
        self, cache: DistributedCache, store: CacheStore, clock: ManualClock
    ) -> None:
        """Cancelled refresh_async does not move the expiration."""
        start = clock.utcnow()
        cache.set("key", VALUE, SLIDING_10S)
        clock.advance(5)
        with pytest.raises(CacheCancelledError):
            await cache.refresh_async("key", token=CancellationToken.cancelled_token())
        assert store.read("key").expires_at == start + timedelta(seconds=10)

    @pytest.mark.asyncio
    async def test_cancelled_get_and_string_helpers(self, cache: DistributedCache) -> None:
        """Every async read path honours the token."""
        token = CancellationToken.cancelled_token()
        with pytest.raises(CacheCancelledError):
            await cache.get_async("key", token=token)
        with pytest.raises(CacheCancelledError):
            await cache.get_string_async("key", token=token)
        with pytest.raises(CacheCancelledError):
            await cache.set_string_async("key", "value", SLIDING_10S, token=token)

    @pytest.mark.asyncio
    async def test_live_token_allows_call(self, cache: DistributedCache) -> None:
        """An uncancelled token is no obstacle."""
        token = CancellationToken()
        await cache.set_async("key", VALUE, SLIDING_10S, token=token)
        assert await cache.get_async("key", token=token) == VALUE

    @pytest.mark.asyncio
    async def test_cancel_between_calls(self, cache: DistributedCache) -> None:
        """Cancelling a token affects subsequent calls only."""
        token = CancellationToken()
        await cache.set_async("key", VALUE, SLIDING_10S, token=token)
        token.cancel()
        with pytest.raises(CacheCancelledError):
            await cache.get_async("key", token=token)
        assert await cache.get_async("key") == VALUE

    @pytest.mark.asyncio
    async def test_cancelled_error_is_not_asyncio_cancellation(
        self, cache: DistributedCache
    ) -> None:
        """Token cancellation is an ordinary exception, not task cancellation."""
        with pytest.raises(CacheCancelledError) as exc_info:
            await cache.get_async("key", token=CancellationToken.cancelled_token())
        assert not isinstance(exc_info.value, asyncio.CancelledError)
