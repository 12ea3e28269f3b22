"""SQLite-backed persistent store.

Rows live in a single table keyed by the cache key. Timestamps are stored as
integer microseconds since the epoch so equality checks in SQL are exact.

Database path resolution order:
    1. ``database_path`` argument
    2. ``ROWCACHE_DB_PATH`` environment variable
    3. ``$XDG_CACHE_HOME/rowcache/cache.db``
    4. ``~/.cache/rowcache/cache.db``
"""

from __future__ import annotations

import logging
import os
import re
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from rowcache.backends.base import CacheEntry, from_micros, to_micros
from rowcache.errors import DuplicateKeyError, InvalidConfigurationError, StoreError

logger = logging.getLogger("rowcache.backends.sqlite")

MEMORY_DATABASE = ":memory:"
DEFAULT_TABLE_NAME = "distributed_cache"
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_COLUMNS = "id, value, expires_at, sliding_expiration_seconds, absolute_expiration"


def default_database_path() -> str | Path:
    """Resolve the database path from the environment."""
    env_path = os.environ.get("ROWCACHE_DB_PATH")
    if env_path:
        return MEMORY_DATABASE if env_path == MEMORY_DATABASE else Path(env_path)
    xdg_cache = os.environ.get("XDG_CACHE_HOME")
    base = Path(xdg_cache) if xdg_cache else Path.home() / ".cache"
    return base / "rowcache" / "cache.db"


class SQLiteStore:
    """``CacheStore`` on a single SQLite connection.

    The connection is shared between threads and serialised with a lock. Each
    method runs in its own transaction.
    """

    def __init__(
        self,
        database_path: str | Path | None = None,
        table_name: str = DEFAULT_TABLE_NAME,
        timeout: float = 30.0,
    ) -> None:
        if not _IDENTIFIER.match(table_name):
            raise InvalidConfigurationError(f"Invalid table name: {table_name!r}")

        if database_path is None:
            database_path = default_database_path()
        if str(database_path) == MEMORY_DATABASE:
            self._database_path: str | Path = MEMORY_DATABASE
        else:
            self._database_path = Path(database_path)
            self._database_path.parent.mkdir(parents=True, exist_ok=True)

        self._table = table_name
        self._lock = threading.RLock()
        try:
            self._connection: sqlite3.Connection | None = sqlite3.connect(
                str(self._database_path),
                timeout=timeout,
                check_same_thread=False,
            )
            self._initialize_schema()
        except sqlite3.Error as exc:
            raise StoreError(f"Could not open SQLite store: {exc}") from exc

        logger.info(f"Opened SQLite store at {self._database_path} (table={table_name})")

    @property
    def database_path(self) -> str | Path:
        return self._database_path

    @property
    def table_name(self) -> str:
        return self._table

    def _initialize_schema(self) -> None:
        connection = self._require_connection()
        with connection:
            if self._database_path != MEMORY_DATABASE:
                connection.execute("PRAGMA journal_mode=WAL")
            connection.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self._table} (
                    id TEXT NOT NULL PRIMARY KEY,
                    value BLOB NOT NULL,
                    expires_at INTEGER NOT NULL,
                    sliding_expiration_seconds INTEGER,
                    absolute_expiration INTEGER
                )
                """
            )
            connection.execute(
                f"CREATE INDEX IF NOT EXISTS ix_{self._table}_expires_at "
                f"ON {self._table} (expires_at)"
            )

    def _require_connection(self) -> sqlite3.Connection:
        if self._connection is None:
            raise StoreError("SQLite store is closed")
        return self._connection

    @contextmanager
    def _transaction(
        self, operation: str, duplicate_key: str | None = None
    ) -> Iterator[sqlite3.Connection]:
        with self._lock:
            connection = self._require_connection()
            try:
                with connection:
                    yield connection
            except sqlite3.IntegrityError as exc:
                if duplicate_key is None:
                    raise StoreError(f"SQLite {operation} failed: {exc}") from exc
                raise DuplicateKeyError(
                    f"Key {duplicate_key!r} already exists"
                ) from exc
            except sqlite3.Error as exc:
                raise StoreError(f"SQLite {operation} failed: {exc}") from exc

    @staticmethod
    def _row_to_entry(row: tuple) -> CacheEntry:
        key, value, expires_at, sliding, absolute = row
        return CacheEntry(
            key=key,
            value=bytes(value),
            expires_at=from_micros(expires_at),
            sliding_expiration_seconds=sliding,
            absolute_expiration=None if absolute is None else from_micros(absolute),
        )

    @staticmethod
    def _entry_params(entry: CacheEntry) -> tuple:
        return (
            entry.key,
            sqlite3.Binary(entry.value),
            to_micros(entry.expires_at),
            entry.sliding_expiration_seconds,
            None
            if entry.absolute_expiration is None
            else to_micros(entry.absolute_expiration),
        )

    def find_active(self, key: str, now: datetime) -> CacheEntry | None:
        with self._transaction("find_active") as connection:
            row = connection.execute(
                f"SELECT {_COLUMNS} FROM {self._table} WHERE id = ? AND expires_at > ?",
                (key, to_micros(now)),
            ).fetchone()
        return None if row is None else self._row_to_entry(row)

    def find_refresh_candidate(self, key: str, now: datetime) -> CacheEntry | None:
        with self._transaction("find_refresh_candidate") as connection:
            row = connection.execute(
                f"""
                SELECT {_COLUMNS} FROM {self._table}
                WHERE id = ?
                  AND expires_at > ?
                  AND sliding_expiration_seconds IS NOT NULL
                  AND (absolute_expiration IS NULL OR absolute_expiration != expires_at)
                """,
                (key, to_micros(now)),
            ).fetchone()
        return None if row is None else self._row_to_entry(row)

    def exists(self, key: str) -> bool:
        with self._transaction("exists") as connection:
            row = connection.execute(
                f"SELECT 1 FROM {self._table} WHERE id = ?", (key,)
            ).fetchone()
        return row is not None

    def insert(self, entry: CacheEntry) -> None:
        with self._transaction("insert", duplicate_key=entry.key) as connection:
            connection.execute(
                f"INSERT INTO {self._table} ({_COLUMNS}) VALUES (?, ?, ?, ?, ?)",
                self._entry_params(entry),
            )

    def update_full(self, entry: CacheEntry) -> bool:
        key, value, expires_at, sliding, absolute = self._entry_params(entry)
        with self._transaction("update_full") as connection:
            cursor = connection.execute(
                f"""
                UPDATE {self._table}
                SET value = ?, expires_at = ?, sliding_expiration_seconds = ?,
                    absolute_expiration = ?
                WHERE id = ?
                """,
                (value, expires_at, sliding, absolute, key),
            )
        return cursor.rowcount > 0

    def update_expiry_only(self, key: str, expires_at: datetime) -> bool:
        with self._transaction("update_expiry_only") as connection:
            cursor = connection.execute(
                f"UPDATE {self._table} SET expires_at = ? WHERE id = ?",
                (to_micros(expires_at), key),
            )
        return cursor.rowcount > 0

    def delete(self, key: str) -> bool:
        with self._transaction("delete") as connection:
            cursor = connection.execute(
                f"DELETE FROM {self._table} WHERE id = ?", (key,)
            )
        return cursor.rowcount > 0

    def delete_expired(self, now: datetime) -> int:
        with self._transaction("delete_expired") as connection:
            cursor = connection.execute(
                f"DELETE FROM {self._table} WHERE expires_at <= ?", (to_micros(now),)
            )
        return cursor.rowcount

    def read(self, key: str) -> CacheEntry | None:
        with self._transaction("read") as connection:
            row = connection.execute(
                f"SELECT {_COLUMNS} FROM {self._table} WHERE id = ?", (key,)
            ).fetchone()
        return None if row is None else self._row_to_entry(row)

    def keys(self) -> list[str]:
        with self._transaction("keys") as connection:
            rows = connection.execute(f"SELECT id FROM {self._table}").fetchall()
        return [row[0] for row in rows]

    def clear(self) -> int:
        with self._transaction("clear") as connection:
            cursor = connection.execute(f"DELETE FROM {self._table}")
        return cursor.rowcount

    def close(self) -> None:
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None
                logger.debug(f"Closed SQLite store at {self._database_path}")

    def __repr__(self) -> str:
        return f"SQLiteStore({str(self._database_path)!r}, table_name={self._table!r})"
