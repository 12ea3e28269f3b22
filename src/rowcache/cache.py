"""Public cache facade.

``DistributedCache`` validates arguments, fills in the default expiration
policy, delegates to ``CacheOperations`` and, after each call, gives the
expiration scanner a chance to launch a background sweep.

Example:
    ```python
    cache = DistributedCache(SQLiteStore("cache.db"))
    cache.set("greeting", b"hello", EntryOptions(sliding_expiration=60))
    cache.get("greeting")  # b"hello"
    ```
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from rowcache.backends.base import CacheStore
from rowcache.cancellation import CancellationToken, check_token
from rowcache.clock import Clock, SystemClock
from rowcache.errors import InvalidArgumentError, InvalidConfigurationError
from rowcache.models import CacheOptions, EntryOptions
from rowcache.operations import CacheOperations
from rowcache.sweep import ExpirationScanner

logger = logging.getLogger("rowcache")

NO_POLICY = EntryOptions()


def _require_key(key: Any) -> str:
    if key is None:
        raise InvalidArgumentError("key must not be None")
    if not isinstance(key, str):
        raise InvalidArgumentError(f"key must be a str, got {type(key).__name__}")
    return key


def _require_value(value: Any) -> bytes:
    if value is None:
        raise InvalidArgumentError("value must not be None")
    if isinstance(value, bytes):
        return value
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    raise InvalidArgumentError(f"value must be bytes, got {type(value).__name__}")


def _require_options(options: Any) -> EntryOptions:
    if options is None:
        raise InvalidArgumentError("options must not be None")
    if not isinstance(options, EntryOptions):
        raise InvalidArgumentError(
            f"options must be EntryOptions, got {type(options).__name__}"
        )
    return options


class DistributedCache:
    """Expiration-aware byte cache over a ``CacheStore``.

    Synchronous and asynchronous methods share semantics; the async ones take
    an optional ``CancellationToken`` that is checked before any store access.
    """

    def __init__(self, store: CacheStore, options: CacheOptions | None = None) -> None:
        if store is None:
            raise InvalidArgumentError("store must not be None")
        options = options or CacheOptions()

        if options.default_sliding_expiration <= timedelta(0):
            raise InvalidConfigurationError(
                "The sliding expiration value must be positive "
                f"(got {options.default_sliding_expiration})."
            )
        if options.default_sliding_expiration.microseconds:
            raise InvalidConfigurationError(
                "The sliding expiration value must be a whole number of seconds "
                f"(got {options.default_sliding_expiration})."
            )

        self._store = store
        self._clock: Clock = options.clock or SystemClock()
        self._default_sliding_expiration = options.default_sliding_expiration
        self._operations = CacheOperations(store, self._clock)
        self._scanner = ExpirationScanner(
            self._operations.delete_expired_cache_items,
            self._clock,
            options.expired_items_deletion_interval,
        )

        logger.info(
            f"Initialized cache on {store!r} "
            f"(default_sliding={self._default_sliding_expiration}, "
            f"sweep_interval={self._scanner.interval})"
        )

    @property
    def store(self) -> CacheStore:
        return self._store

    @property
    def operations(self) -> CacheOperations:
        return self._operations

    @property
    def scanner(self) -> ExpirationScanner:
        return self._scanner

    @property
    def clock(self) -> Clock:
        return self._clock

    def _effective_options(self, options: EntryOptions) -> EntryOptions:
        if options.has_expiration:
            return options
        return EntryOptions(sliding_expiration=self._default_sliding_expiration)

    # Synchronous API

    def get(self, key: str) -> bytes | None:
        key = _require_key(key)
        try:
            return self._operations.get_cache_item(key)
        finally:
            self._scanner.scan_if_required()

    def set(self, key: str, value: bytes, options: EntryOptions = NO_POLICY) -> None:
        key = _require_key(key)
        value = _require_value(value)
        options = self._effective_options(_require_options(options))
        try:
            self._operations.set_cache_item(key, value, options)
        finally:
            self._scanner.scan_if_required()

    def refresh(self, key: str) -> None:
        key = _require_key(key)
        try:
            self._operations.refresh_cache_item(key)
        finally:
            self._scanner.scan_if_required()

    def remove(self, key: str) -> None:
        key = _require_key(key)
        try:
            self._operations.delete_cache_item(key)
        finally:
            self._scanner.scan_if_required()

    def get_string(self, key: str, encoding: str = "utf-8") -> str | None:
        value = self.get(key)
        return None if value is None else value.decode(encoding)

    def set_string(
        self,
        key: str,
        value: str,
        options: EntryOptions = NO_POLICY,
        encoding: str = "utf-8",
    ) -> None:
        if value is None:
            raise InvalidArgumentError("value must not be None")
        self.set(key, value.encode(encoding), options)

    # Asynchronous API

    async def get_async(
        self, key: str, token: CancellationToken | None = None
    ) -> bytes | None:
        key = _require_key(key)
        check_token(token)
        try:
            return await self._operations.get_cache_item_async(key, token)
        finally:
            self._scanner.scan_if_required()

    async def set_async(
        self,
        key: str,
        value: bytes,
        options: EntryOptions = NO_POLICY,
        token: CancellationToken | None = None,
    ) -> None:
        key = _require_key(key)
        value = _require_value(value)
        options = self._effective_options(_require_options(options))
        check_token(token)
        try:
            await self._operations.set_cache_item_async(key, value, options, token)
        finally:
            self._scanner.scan_if_required()

    async def refresh_async(
        self, key: str, token: CancellationToken | None = None
    ) -> None:
        key = _require_key(key)
        check_token(token)
        try:
            await self._operations.refresh_cache_item_async(key, token)
        finally:
            self._scanner.scan_if_required()

    async def remove_async(
        self, key: str, token: CancellationToken | None = None
    ) -> None:
        key = _require_key(key)
        check_token(token)
        try:
            await self._operations.delete_cache_item_async(key, token)
        finally:
            self._scanner.scan_if_required()

    async def get_string_async(
        self,
        key: str,
        encoding: str = "utf-8",
        token: CancellationToken | None = None,
    ) -> str | None:
        value = await self.get_async(key, token)
        return None if value is None else value.decode(encoding)

    async def set_string_async(
        self,
        key: str,
        value: str,
        options: EntryOptions = NO_POLICY,
        encoding: str = "utf-8",
        token: CancellationToken | None = None,
    ) -> None:
        if value is None:
            raise InvalidArgumentError("value must not be None")
        await self.set_async(key, value.encode(encoding), options, token)

    # Lifecycle

    def close(self) -> None:
        """Stop the sweep executor and close the store."""
        self._scanner.shutdown(wait=True)
        self._store.close()
        logger.debug(f"Closed cache on {self._store!r}")

    def __enter__(self) -> DistributedCache:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"DistributedCache(store={self._store!r})"
