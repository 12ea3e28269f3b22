"""Store protocol and the entry type shared by every backend.

A ``CacheStore`` is the row store the cache runs on. Each method is one atomic
round-trip; the cache never holds a store-level lock across calls.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Protocol, runtime_checkable

from rowcache.cancellation import CancellationToken, check_token

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MICROSECOND = timedelta(microseconds=1)


def to_micros(moment: datetime) -> int:
    """Convert a UTC datetime to integer microseconds since the Unix epoch."""
    return (moment - EPOCH) // _MICROSECOND


def from_micros(micros: int) -> datetime:
    """Inverse of ``to_micros``."""
    return EPOCH + timedelta(microseconds=micros)


@dataclass(frozen=True)
class CacheEntry:
    """A stored cache row.

    Attributes:
        key: Primary key. Compared exactly: case and whitespace matter.
        value: Opaque payload.
        expires_at: Instant after which the entry is no longer active.
        sliding_expiration_seconds: Sliding window, if the entry slides.
        absolute_expiration: Ceiling ``expires_at`` may never pass.
    """

    key: str
    value: bytes
    expires_at: datetime
    sliding_expiration_seconds: int | None = None
    absolute_expiration: datetime | None = None

    def is_active(self, current_time: datetime) -> bool:
        return self.expires_at > current_time

    def is_expired(self, current_time: datetime) -> bool:
        return not self.is_active(current_time)

    def is_refresh_candidate(self, current_time: datetime) -> bool:
        """Active, sliding, and not already clamped to its absolute ceiling."""
        return (
            self.is_active(current_time)
            and self.sliding_expiration_seconds is not None
            and (
                self.absolute_expiration is None
                or self.absolute_expiration != self.expires_at
            )
        )


@runtime_checkable
class CacheStore(Protocol):
    """Protocol every row store implements.

    Implementations must be safe to call from several threads at once.
    Driver failures are raised as ``StoreError``.
    """

    def find_active(self, key: str, now: datetime) -> CacheEntry | None:
        """Return the entry for ``key`` if it is active at ``now``."""
        ...

    def find_refresh_candidate(self, key: str, now: datetime) -> CacheEntry | None:
        """Return the entry for ``key`` if active, sliding and not clamped."""
        ...

    def exists(self, key: str) -> bool:
        """Whether a row exists for ``key``, expired or not."""
        ...

    def insert(self, entry: CacheEntry) -> None:
        """Insert a new row. Raises ``DuplicateKeyError`` if the key exists."""
        ...

    def update_full(self, entry: CacheEntry) -> bool:
        """Replace the whole row. Returns False if no row matched."""
        ...

    def update_expiry_only(self, key: str, expires_at: datetime) -> bool:
        """Set only ``expires_at``. Returns False if no row matched."""
        ...

    def delete(self, key: str) -> bool:
        """Delete the row for ``key``. Returns False if nothing was deleted."""
        ...

    def delete_expired(self, now: datetime) -> int:
        """Delete every row with ``expires_at <= now`` and return the count."""
        ...

    def read(self, key: str) -> CacheEntry | None:
        """Return the raw row for ``key`` regardless of expiry."""
        ...

    def keys(self) -> list[str]:
        """List the keys of all physically stored rows."""
        ...

    def clear(self) -> int:
        """Delete every row and return the count."""
        ...

    def close(self) -> None:
        """Release connections held by the store."""
        ...


class AsyncStore:
    """Awaitable view of a ``CacheStore``.

    Each call checks the cancellation token, then runs the synchronous store
    method on the default thread pool. Once started, a round-trip runs to
    completion.
    """

    def __init__(self, store: CacheStore) -> None:
        self._store = store

    @property
    def store(self) -> CacheStore:
        return self._store

    async def _call(self, token: CancellationToken | None, method, *args):
        check_token(token)
        return await asyncio.to_thread(method, *args)

    async def find_active(
        self, key: str, now: datetime, token: CancellationToken | None = None
    ) -> CacheEntry | None:
        return await self._call(token, self._store.find_active, key, now)

    async def find_refresh_candidate(
        self, key: str, now: datetime, token: CancellationToken | None = None
    ) -> CacheEntry | None:
        return await self._call(token, self._store.find_refresh_candidate, key, now)

    async def exists(self, key: str, token: CancellationToken | None = None) -> bool:
        return await self._call(token, self._store.exists, key)

    async def insert(
        self, entry: CacheEntry, token: CancellationToken | None = None
    ) -> None:
        await self._call(token, self._store.insert, entry)

    async def update_full(
        self, entry: CacheEntry, token: CancellationToken | None = None
    ) -> bool:
        return await self._call(token, self._store.update_full, entry)

    async def update_expiry_only(
        self, key: str, expires_at: datetime, token: CancellationToken | None = None
    ) -> bool:
        return await self._call(
            token, self._store.update_expiry_only, key, expires_at
        )

    async def delete(self, key: str, token: CancellationToken | None = None) -> bool:
        return await self._call(token, self._store.delete, key)

    async def delete_expired(
        self, now: datetime, token: CancellationToken | None = None
    ) -> int:
        return await self._call(token, self._store.delete_expired, now)
