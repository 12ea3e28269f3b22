"""Debounced background sweep of expired entries.

There is no timer thread. Every cache call asks the scanner whether a sweep
is due; when it is, the sweep is handed to a single-worker executor and the
caller carries on without waiting. A cache that receives no calls never
sweeps, which is fine because reads already ignore expired rows.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

from rowcache.clock import Clock
from rowcache.errors import InvalidConfigurationError

logger = logging.getLogger("rowcache.sweep")

MINIMUM_DELETION_INTERVAL = timedelta(minutes=5)
DEFAULT_DELETION_INTERVAL = timedelta(minutes=30)


class ExpirationScanner:
    """Triggers ``sweep`` at most once per ``interval``.

    The trigger decision is a compare-and-update of ``last_scan`` under a
    short lock. The sweep itself runs outside the lock on a one-thread
    executor, so sweeps queue behind each other rather than overlap.
    """

    def __init__(
        self,
        sweep: Callable[[], object],
        clock: Clock,
        interval: timedelta | None = None,
        executor: ThreadPoolExecutor | None = None,
    ) -> None:
        if interval is not None and interval < MINIMUM_DELETION_INTERVAL:
            raise InvalidConfigurationError(
                f"expired_items_deletion_interval cannot be less than the minimum "
                f"value of {MINIMUM_DELETION_INTERVAL.total_seconds() / 60:g} minutes."
            )

        self._sweep = sweep
        self._clock = clock
        self._interval = interval if interval is not None else DEFAULT_DELETION_INTERVAL
        self._last_scan = datetime.min.replace(tzinfo=timezone.utc)
        self._mutex = threading.Lock()
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="rowcache-sweep"
        )
        self._closed = False

    @property
    def interval(self) -> timedelta:
        return self._interval

    @property
    def last_scan(self) -> datetime:
        with self._mutex:
            return self._last_scan

    def scan_if_required(self) -> Future | None:
        """Launch a sweep if the interval has elapsed since the last one.

        Returns the sweep's future for callers that want to observe it;
        the facade ignores it.
        """
        with self._mutex:
            if self._closed:
                logger.debug("Scanner is shut down; skipping sweep check")
                return None
            now = self._clock.utcnow()
            if now - self._last_scan <= self._interval:
                return None
            self._last_scan = now

        logger.debug(f"Scheduling expired-entry sweep at {now.isoformat()}")
        try:
            return self._executor.submit(self._run_sweep)
        except RuntimeError:
            # Executor shut down underneath us.
            logger.debug("Sweep executor unavailable; skipping sweep")
            return None

    def _run_sweep(self) -> None:
        try:
            self._sweep()
        except Exception:
            logger.exception("Expired-entry sweep failed")

    def shutdown(self, wait: bool = True) -> None:
        with self._mutex:
            self._closed = True
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    def __repr__(self) -> str:
        return f"ExpirationScanner(interval={self._interval}, last_scan={self._last_scan})"
