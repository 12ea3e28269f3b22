"""Store-facing cache operations.

``CacheOperations`` turns get/set/refresh/remove/sweep into store round-trips
and applies the expiration rules. It performs no argument validation; that is
the facade's job.
"""

from __future__ import annotations

import logging
from datetime import datetime

from rowcache.backends.base import AsyncStore, CacheEntry, CacheStore
from rowcache.cancellation import CancellationToken, check_token
from rowcache.clock import Clock
from rowcache.errors import DuplicateKeyError
from rowcache.expiration import build_entry, needs_refresh, recompute_on_access
from rowcache.models import EntryOptions

logger = logging.getLogger("rowcache.operations")


class CacheOperations:
    """Get/set/refresh/remove/sweep against a ``CacheStore``.

    Every synchronous method has an ``*_async`` twin with the same semantics.
    The async forms check their cancellation token before each store
    round-trip.
    """

    def __init__(self, store: CacheStore, clock: Clock) -> None:
        self._store = store
        self._async_store = AsyncStore(store)
        self._clock = clock

    @property
    def store(self) -> CacheStore:
        return self._store

    @property
    def clock(self) -> Clock:
        return self._clock

    # Reads

    def get_cache_item(self, key: str) -> bytes | None:
        now = self._clock.utcnow()
        self._refresh_at(key, now)
        entry = self._store.find_active(key, now)
        return None if entry is None else entry.value

    async def get_cache_item_async(
        self, key: str, token: CancellationToken | None = None
    ) -> bytes | None:
        check_token(token)
        now = self._clock.utcnow()
        await self._refresh_at_async(key, now, token)
        entry = await self._async_store.find_active(key, now, token)
        return None if entry is None else entry.value

    # Refresh

    def refresh_cache_item(self, key: str) -> None:
        self._refresh_at(key, self._clock.utcnow())

    async def refresh_cache_item_async(
        self, key: str, token: CancellationToken | None = None
    ) -> None:
        check_token(token)
        await self._refresh_at_async(key, self._clock.utcnow(), token)

    def _refresh_at(self, key: str, now: datetime) -> None:
        entry = self._store.find_refresh_candidate(key, now)
        if entry is None or not needs_refresh(entry):
            return
        expires_at = recompute_on_access(entry, now)
        self._store.update_expiry_only(key, expires_at)
        logger.debug(f"Refreshed {key!r} until {expires_at.isoformat()}")

    async def _refresh_at_async(
        self, key: str, now: datetime, token: CancellationToken | None
    ) -> None:
        entry = await self._async_store.find_refresh_candidate(key, now, token)
        if entry is None or not needs_refresh(entry):
            return
        expires_at = recompute_on_access(entry, now)
        await self._async_store.update_expiry_only(key, expires_at, token)
        logger.debug(f"Refreshed {key!r} until {expires_at.isoformat()}")

    # Delete

    def delete_cache_item(self, key: str) -> None:
        self._store.delete(key)

    async def delete_cache_item_async(
        self, key: str, token: CancellationToken | None = None
    ) -> None:
        await self._async_store.delete(key, token)

    # Write

    def set_cache_item(self, key: str, value: bytes, options: EntryOptions) -> None:
        entry = build_entry(key, value, options, self._clock.utcnow())
        if self._store.exists(key):
            if self._store.update_full(entry):
                return
            logger.debug(f"Row for {key!r} vanished before update; inserting")
        self._insert_or_overwrite(entry)

    async def set_cache_item_async(
        self,
        key: str,
        value: bytes,
        options: EntryOptions,
        token: CancellationToken | None = None,
    ) -> None:
        check_token(token)
        entry = build_entry(key, value, options, self._clock.utcnow())
        if await self._async_store.exists(key, token):
            if await self._async_store.update_full(entry, token):
                return
            logger.debug(f"Row for {key!r} vanished before update; inserting")
        try:
            await self._async_store.insert(entry, token)
        except DuplicateKeyError:
            logger.warning(f"Concurrent insert for {key!r}; overwriting")
            await self._async_store.update_full(entry, token)

    def _insert_or_overwrite(self, entry: CacheEntry) -> None:
        # The store's key uniqueness decides concurrent inserts; the loser
        # overwrites, so the last write to commit wins.
        try:
            self._store.insert(entry)
        except DuplicateKeyError:
            logger.warning(f"Concurrent insert for {entry.key!r}; overwriting")
            self._store.update_full(entry)

    # Sweep

    def delete_expired_cache_items(self) -> int:
        removed = self._store.delete_expired(self._clock.utcnow())
        if removed:
            logger.info(f"Removed {removed} expired cache entries")
        return removed

    async def delete_expired_cache_items_async(
        self, token: CancellationToken | None = None
    ) -> int:
        removed = await self._async_store.delete_expired(self._clock.utcnow(), token)
        if removed:
            logger.info(f"Removed {removed} expired cache entries")
        return removed
