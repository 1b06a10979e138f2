"""Request scheduler with concurrency and spacing control.

This module admits exchanges under two process-wide constraints:

- at most ``max_concurrent`` exchanges are in flight at any instant
- no two exchanges start closer together than ``min_spacing_ms``

Admission is first-come, first-served; asyncio's Semaphore and Lock wake
waiters in FIFO order.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

from canvas_fetch.config import SchedulerConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RequestScheduler:
    """Concurrency- and spacing-limited async request scheduler.

    One scheduler is shared by every operation of a client, making it the
    single point that enforces the server's request budget.

    Usage:
        scheduler = RequestScheduler(max_concurrent=10, min_spacing_ms=200)

        envelope = await scheduler.submit(lambda: transport.exchange(config))
    """

    def __init__(
        self,
        max_concurrent: int | None = None,
        min_spacing_ms: int | None = None,
        config: SchedulerConfig | None = None,
    ) -> None:
        """Initialize the request scheduler.

        Args:
            max_concurrent: Maximum in-flight exchanges (default 10)
            min_spacing_ms: Minimum milliseconds between starts (default 200)
            config: Optional scheduler configuration; explicit arguments win
        """
        config = config or SchedulerConfig()
        self._max_concurrent = max_concurrent if max_concurrent is not None else config.max_concurrent
        self._min_spacing_ms = min_spacing_ms if min_spacing_ms is not None else config.min_spacing_ms
        if self._max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if self._min_spacing_ms < 0:
            raise ValueError("min_spacing_ms must not be negative")

        # Concurrency control
        self._semaphore = asyncio.Semaphore(self._max_concurrent)

        # Spacing control
        self._spacing_lock = asyncio.Lock()
        self._last_start: float | None = None

        # State
        self._in_flight = 0
        self._waiting = 0

        # Statistics
        self._total_submitted = 0
        self._total_completed = 0
        self._total_failed = 0

    @property
    def max_concurrent(self) -> int:
        """Maximum simultaneous in-flight exchanges."""
        return self._max_concurrent

    @property
    def min_spacing_ms(self) -> int:
        """Minimum milliseconds between successive exchange starts."""
        return self._min_spacing_ms

    # -------------------------------------------------------------------------
    # Request Submission
    # -------------------------------------------------------------------------
    async def submit(self, exchange: Callable[[], Awaitable[T]]) -> T:
        """Run an exchange once admitted and return its result.

        Args:
            exchange: Factory creating the coroutine to execute. It is
                      called only after admission, so the exchange starts
                      no earlier than its slot.

        Returns:
            Result of the coroutine

        Raises:
            Exception: Any exception from the coroutine
        """
        self._total_submitted += 1
        self._waiting += 1
        try:
            await self._semaphore.acquire()
        finally:
            self._waiting -= 1

        try:
            await self._wait_for_start_slot()
            self._in_flight += 1
            try:
                result = await exchange()
            except Exception:
                self._total_failed += 1
                raise
            finally:
                self._in_flight -= 1
            self._total_completed += 1
            return result
        finally:
            self._semaphore.release()

    async def _wait_for_start_slot(self) -> None:
        """Sleep until at least min_spacing_ms has passed since the last start."""
        async with self._spacing_lock:
            if self._last_start is not None and self._min_spacing_ms > 0:
                elapsed = time.monotonic() - self._last_start
                wait = self._min_spacing_ms / 1000 - elapsed
                if wait > 0:
                    logger.debug("Spacing: waiting %.3fs before request", wait)
                    await asyncio.sleep(wait)
            self._last_start = time.monotonic()

    # -------------------------------------------------------------------------
    # Query Methods
    # -------------------------------------------------------------------------
    @property
    def in_flight(self) -> int:
        """Number of exchanges currently running."""
        return self._in_flight

    @property
    def waiting(self) -> int:
        """Number of submissions waiting for a concurrency slot."""
        return self._waiting

    @property
    def is_idle(self) -> bool:
        """True if nothing is waiting or in flight."""
        return self._waiting == 0 and self._in_flight == 0

    def get_stats(self) -> dict[str, int | bool]:
        """Get scheduler statistics.

        Returns:
            Dict with in_flight, waiting, total_submitted, total_completed, etc.
        """
        return {
            "in_flight": self._in_flight,
            "waiting": self._waiting,
            "is_idle": self.is_idle,
            "max_concurrent": self._max_concurrent,
            "min_spacing_ms": self._min_spacing_ms,
            "total_submitted": self._total_submitted,
            "total_completed": self._total_completed,
            "total_failed": self._total_failed,
        }
