"""Strict minimum-interval rate limiter shared by every remote call."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

DEFAULT_MIN_INTERVAL_MS = 350  # ~3 requests/second


class RateLimiter:
    """Grant one slot at a time, spaced at least ``min_interval_ms`` apart.

    No burst allowance: every caller waits for the previous slot plus the
    interval. The last-call timestamp is only updated when a slot is
    granted, so a cancelled waiter does not push back the next one.
    """

    def __init__(
        self,
        min_interval_ms: int = DEFAULT_MIN_INTERVAL_MS,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if min_interval_ms < 0:
            raise ValueError("min_interval_ms must be >= 0")
        self._min_interval_ms = min_interval_ms
        self._interval = min_interval_ms / 1000.0
        self._clock = clock
        self._sleep = sleep
        self._last_call: float | None = None
        self._lock = asyncio.Lock()
        self._granted = 0

    @property
    def min_interval_ms(self) -> int:
        return self._min_interval_ms

    @property
    def granted(self) -> int:
        """Number of slots granted so far."""
        return self._granted

    async def wait_for_slot(self) -> None:
        """Suspend until the next slot is available, then take it."""
        async with self._lock:
            if self._last_call is not None:
                remaining = self._interval - (self._clock() - self._last_call)
                if remaining > 0:
                    logger.debug("Rate limiter waiting %.3fs", remaining)
                    await self._sleep(remaining)
            self._last_call = self._clock()
            self._granted += 1
