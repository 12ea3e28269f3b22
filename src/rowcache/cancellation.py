"""Cooperative cancellation for the async cache operations."""

from __future__ import annotations

import threading

from rowcache.errors import CacheCancelledError


class CancellationToken:
    """A thread-safe flag checked before every store round-trip.

    Cancelling a token never interrupts a round-trip already in flight; the
    next check raises ``CacheCancelledError`` instead.
    """

    def __init__(self, cancelled: bool = False) -> None:
        self._event = threading.Event()
        if cancelled:
            self._event.set()

    @classmethod
    def cancelled_token(cls) -> CancellationToken:
        return cls(cancelled=True)

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CacheCancelledError("The operation was cancelled.")

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.is_cancelled})"


def check_token(token: CancellationToken | None) -> None:
    """Raise ``CacheCancelledError`` if ``token`` has been cancelled."""
    if token is not None:
        token.raise_if_cancelled()
