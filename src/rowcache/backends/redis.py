"""Redis-backed store.

Each entry is a hash at ``{prefix}entry:{key}`` with fields ``v`` (value),
``e`` (expires_at), ``s`` (sliding seconds) and ``a`` (absolute expiration).
A sorted set at ``{prefix}expiry`` scores every key by its ``expires_at`` so
the sweep can find expired rows with one range query. Writes that touch both
structures run as Lua scripts, which Redis executes atomically.

Timestamps are integer microseconds since the epoch; they stay below 2**53 and
are therefore exact as sorted-set scores.

The scripts build entry keys from the prefix at run time, so the store
targets a standalone Redis (or a cluster with all keys in one hash slot via a
``{tag}`` prefix).
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any, TypeVar

import redis

from rowcache.backends.base import CacheEntry, from_micros, to_micros
from rowcache.errors import DuplicateKeyError, StoreError

logger = logging.getLogger("rowcache.backends.redis")

RedisFunctionT = TypeVar("RedisFunctionT")

_WRITE_FIELDS = """
redis.call('DEL', KEYS[1])
redis.call('HSET', KEYS[1], 'v', ARGV[2], 'e', ARGV[3])
if ARGV[4] ~= '' then redis.call('HSET', KEYS[1], 's', ARGV[4]) end
if ARGV[5] ~= '' then redis.call('HSET', KEYS[1], 'a', ARGV[5]) end
redis.call('ZADD', KEYS[2], ARGV[3], ARGV[1])
return 1
"""

INSERT_SCRIPT = (
    "if redis.call('EXISTS', KEYS[1]) == 1 then return 0 end\n" + _WRITE_FIELDS
)

UPDATE_FULL_SCRIPT = (
    "if redis.call('EXISTS', KEYS[1]) == 0 then return 0 end\n" + _WRITE_FIELDS
)

UPDATE_EXPIRY_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 0 then return 0 end
redis.call('HSET', KEYS[1], 'e', ARGV[2])
redis.call('ZADD', KEYS[2], ARGV[2], ARGV[1])
return 1
"""

DELETE_SCRIPT = """
local removed = redis.call('DEL', KEYS[1])
redis.call('ZREM', KEYS[2], ARGV[1])
return removed
"""

DELETE_EXPIRED_SCRIPT = """
local members = redis.call('ZRANGEBYSCORE', KEYS[1], '-inf', ARGV[1])
for _, member in ipairs(members) do
  redis.call('DEL', ARGV[2] .. member)
  redis.call('ZREM', KEYS[1], member)
end
return #members
"""

CLEAR_SCRIPT = """
local members = redis.call('ZRANGE', KEYS[1], 0, -1)
for _, member in ipairs(members) do
  redis.call('DEL', ARGV[1] .. member)
end
redis.call('DEL', KEYS[1])
return #members
"""


def redis_call(func: Callable[..., RedisFunctionT]) -> Callable[..., RedisFunctionT]:
    """Wrap Redis client errors in ``StoreError``."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> RedisFunctionT:
        try:
            return func(*args, **kwargs)
        except redis.RedisError as e:
            logger.error(f"Redis error in {func.__name__}: {e!s}")
            raise StoreError(f"Redis {func.__name__} failed: {e!s}") from e

    return wrapper


def _decode(raw: bytes | str) -> str:
    return raw.decode("utf-8") if isinstance(raw, bytes) else str(raw)


class RedisStore:
    """``CacheStore`` on Redis or a Redis-compatible server (Valkey, Dragonfly)."""

    def __init__(
        self,
        url: str | None = None,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: str | None = None,
        key_prefix: str = "rowcache:",
        client: redis.Redis | None = None,
        socket_timeout: float = 5.0,
    ) -> None:
        if client is not None:
            self._client = client
        elif url is not None:
            self._client = redis.Redis.from_url(
                url,
                password=password,
                socket_timeout=socket_timeout,
                socket_connect_timeout=socket_timeout,
                decode_responses=False,
            )
        else:
            self._client = redis.Redis(
                host=host,
                port=port,
                db=db,
                password=password,
                socket_timeout=socket_timeout,
                socket_connect_timeout=socket_timeout,
                decode_responses=False,
            )

        self._prefix = key_prefix
        self._entry_prefix = f"{key_prefix}entry:"
        self._expiry_key = f"{key_prefix}expiry"

        self._insert = self._client.register_script(INSERT_SCRIPT)
        self._update_full = self._client.register_script(UPDATE_FULL_SCRIPT)
        self._update_expiry = self._client.register_script(UPDATE_EXPIRY_SCRIPT)
        self._delete = self._client.register_script(DELETE_SCRIPT)
        self._delete_expired = self._client.register_script(DELETE_EXPIRED_SCRIPT)
        self._clear = self._client.register_script(CLEAR_SCRIPT)

        logger.info(f"Redis store initialized (prefix={key_prefix!r})")

    @property
    def client(self) -> redis.Redis:
        return self._client

    @property
    def key_prefix(self) -> str:
        return self._prefix

    def _entry_key(self, key: str) -> str:
        return f"{self._entry_prefix}{key}"

    def _write_args(self, entry: CacheEntry) -> list[Any]:
        return [
            entry.key,
            entry.value,
            to_micros(entry.expires_at),
            ""
            if entry.sliding_expiration_seconds is None
            else entry.sliding_expiration_seconds,
            ""
            if entry.absolute_expiration is None
            else to_micros(entry.absolute_expiration),
        ]

    def _hash_to_entry(self, key: str, fields: dict[bytes, bytes]) -> CacheEntry | None:
        if not fields:
            return None
        sliding = fields.get(b"s")
        absolute = fields.get(b"a")
        return CacheEntry(
            key=key,
            value=bytes(fields[b"v"]),
            expires_at=from_micros(int(fields[b"e"])),
            sliding_expiration_seconds=None if sliding is None else int(sliding),
            absolute_expiration=None if absolute is None else from_micros(int(absolute)),
        )

    @redis_call
    def read(self, key: str) -> CacheEntry | None:
        return self._hash_to_entry(key, self._client.hgetall(self._entry_key(key)))

    def find_active(self, key: str, now: datetime) -> CacheEntry | None:
        entry = self.read(key)
        if entry is None or not entry.is_active(now):
            return None
        return entry

    def find_refresh_candidate(self, key: str, now: datetime) -> CacheEntry | None:
        entry = self.read(key)
        if entry is None or not entry.is_refresh_candidate(now):
            return None
        return entry

    @redis_call
    def exists(self, key: str) -> bool:
        return bool(self._client.exists(self._entry_key(key)))

    @redis_call
    def insert(self, entry: CacheEntry) -> None:
        inserted = self._insert(
            keys=[self._entry_key(entry.key), self._expiry_key],
            args=self._write_args(entry),
        )
        if not inserted:
            raise DuplicateKeyError(f"Key {entry.key!r} already exists")

    @redis_call
    def update_full(self, entry: CacheEntry) -> bool:
        return bool(
            self._update_full(
                keys=[self._entry_key(entry.key), self._expiry_key],
                args=self._write_args(entry),
            )
        )

    @redis_call
    def update_expiry_only(self, key: str, expires_at: datetime) -> bool:
        return bool(
            self._update_expiry(
                keys=[self._entry_key(key), self._expiry_key],
                args=[key, to_micros(expires_at)],
            )
        )

    @redis_call
    def delete(self, key: str) -> bool:
        return bool(
            self._delete(keys=[self._entry_key(key), self._expiry_key], args=[key])
        )

    @redis_call
    def delete_expired(self, now: datetime) -> int:
        return int(
            self._delete_expired(
                keys=[self._expiry_key], args=[to_micros(now), self._entry_prefix]
            )
        )

    @redis_call
    def keys(self) -> list[str]:
        return [_decode(member) for member in self._client.zrange(self._expiry_key, 0, -1)]

    @redis_call
    def clear(self) -> int:
        count = int(self._clear(keys=[self._expiry_key], args=[self._entry_prefix]))
        logger.info(f"Cleared {count} items from Redis store {self._prefix!r}")
        return count

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except redis.RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    def close(self) -> None:
        self._client.close()

    def __repr__(self) -> str:
        return f"RedisStore(key_prefix={self._prefix!r})"
