"""Thread-safe in-memory store.

Useful for tests and single-process deployments. Nothing survives the
process.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from datetime import datetime

from rowcache.backends.base import CacheEntry
from rowcache.errors import DuplicateKeyError

logger = logging.getLogger("rowcache.backends.memory")


class MemoryStore:
    """Dict-backed ``CacheStore`` guarded by a re-entrant lock."""

    def __init__(self) -> None:
        self._rows: dict[str, CacheEntry] = {}
        self._lock = threading.RLock()

    def find_active(self, key: str, now: datetime) -> CacheEntry | None:
        with self._lock:
            entry = self._rows.get(key)
            if entry is None or not entry.is_active(now):
                return None
            return entry

    def find_refresh_candidate(self, key: str, now: datetime) -> CacheEntry | None:
        with self._lock:
            entry = self._rows.get(key)
            if entry is None or not entry.is_refresh_candidate(now):
                return None
            return entry

    def exists(self, key: str) -> bool:
        with self._lock:
            return key in self._rows

    def insert(self, entry: CacheEntry) -> None:
        with self._lock:
            if entry.key in self._rows:
                raise DuplicateKeyError(f"Key {entry.key!r} already exists")
            self._rows[entry.key] = entry

    def update_full(self, entry: CacheEntry) -> bool:
        with self._lock:
            if entry.key not in self._rows:
                return False
            self._rows[entry.key] = entry
            return True

    def update_expiry_only(self, key: str, expires_at: datetime) -> bool:
        with self._lock:
            entry = self._rows.get(key)
            if entry is None:
                return False
            self._rows[key] = dataclasses.replace(entry, expires_at=expires_at)
            return True

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._rows.pop(key, None) is not None

    def delete_expired(self, now: datetime) -> int:
        with self._lock:
            expired = [key for key, entry in self._rows.items() if entry.is_expired(now)]
            for key in expired:
                del self._rows[key]
            return len(expired)

    def read(self, key: str) -> CacheEntry | None:
        with self._lock:
            return self._rows.get(key)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._rows)

    def clear(self) -> int:
        with self._lock:
            count = len(self._rows)
            self._rows.clear()
            logger.debug(f"Cleared {count} rows from memory store")
            return count

    def close(self) -> None:
        pass

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)
