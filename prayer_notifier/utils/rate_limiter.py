"""Prayer Notifier — Async Rate Limiter.

Sliding-window limiter used to pace bulk dispatch so a large recipient
list does not flood the push providers. Serialized via asyncio.Lock.
"""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Optional

from prayer_notifier.utils.logger import get_logger

logger = get_logger(__name__)


class AsyncRateLimiter:
    """Allow at most max_calls acquisitions per sliding window.

    Attributes:
        max_calls: Maximum number of calls allowed within the window.
        period: Window length in seconds.
    """

    def __init__(
        self,
        max_calls: int,
        period_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the rate limiter.

        Args:
            max_calls: Maximum number of calls allowed per time period.
            period_seconds: Length of the sliding window in seconds.
            clock: Monotonic time source.
            sleep: Coroutine used to wait; tests pass a fake.
        """
        if max_calls < 1:
            raise ValueError(f"max_calls must be >= 1, got {max_calls}")
        self.max_calls = max_calls
        self.period = period_seconds
        self._clock = clock
        self._sleep = sleep
        self._timestamps: list[float] = []
        self._lock = asyncio.Lock()

    @classmethod
    def per_second(cls, rate: float) -> Optional["AsyncRateLimiter"]:
        """Build a limiter for `rate` calls per second, or None if rate <= 0.

        Fractional rates (e.g. 0.5) become one call per 1/rate seconds.
        """
        if rate <= 0:
            return None
        if rate >= 1:
            return cls(max_calls=int(rate), period_seconds=1.0)
        return cls(max_calls=1, period_seconds=1.0 / rate)

    def _cleanup_expired(self, now: float) -> None:
        cutoff = now - self.period
        self._timestamps = [ts for ts in self._timestamps if ts > cutoff]

    @property
    def available_slots(self) -> int:
        """Approximate number of free slots in the current window."""
        self._cleanup_expired(self._clock())
        return max(0, self.max_calls - len(self._timestamps))

    async def acquire(self) -> None:
        """Wait until a slot is free, then take it."""
        async with self._lock:
            while True:
                now = self._clock()
                self._cleanup_expired(now)

                if len(self._timestamps) < self.max_calls:
                    self._timestamps.append(now)
                    return

                wait_time = self._timestamps[0] + self.period - now
                logger.debug(
                    "Rate limit reached (%d/%d). Waiting %.2f seconds...",
                    len(self._timestamps), self.max_calls, wait_time,
                )
                await self._sleep(max(wait_time, 0.0))

    async def __aenter__(self) -> "AsyncRateLimiter":
        await self.acquire()
        return self

    async def __aexit__(self, *args: object) -> None:
        pass

    def __repr__(self) -> str:
        return f"AsyncRateLimiter(max_calls={self.max_calls}, period={self.period}s)"
