"""
Minimum-interval rate limiter.

Enforces a fixed spacing between the start of consecutive logical calls
made through one executor, and keeps the request statistics exposed for
monitoring.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

DEFAULT_MIN_INTERVAL_MS = 100


@dataclass(frozen=True)
class ExecutorStatistics:
    """Point-in-time request statistics.

    Attributes:
        request_count: Logical calls admitted so far
        last_request_time: Epoch seconds of the most recent admission (0 if none)
    """

    request_count: int = 0
    last_request_time: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "request_count": self.request_count,
            "last_request_time": self.last_request_time,
        }


class MinIntervalRateLimiter:
    """Spaces call admissions at least `min_interval_ms` apart.

    Admission reads the previous timestamp, waits out the remainder of the
    interval and stamps the new one under a single lock, so concurrent
    callers queue behind each other instead of racing past the spacing.

    Example:
        >>> limiter = MinIntervalRateLimiter(min_interval_ms=100)
        >>> await limiter.acquire()  # Wait if needed
        >>> # Make request
    """

    def __init__(
        self,
        min_interval_ms: int = DEFAULT_MIN_INTERVAL_MS,
        *,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialize rate limiter.

        Args:
            min_interval_ms: Minimum spacing between admissions (0 = unlimited)
            clock: Monotonic clock used for spacing
            wall_clock: Clock used for the reported timestamp
            sleep: Sleep function (injectable for tests)
        """
        if min_interval_ms < 0:
            raise ValueError(f"min_interval_ms must be >= 0, got {min_interval_ms}")
        self._min_interval = min_interval_ms / 1000.0
        self._clock = clock
        self._wall_clock = wall_clock
        self._sleep = sleep
        self._lock: asyncio.Lock | None = None
        self._lock_loop: asyncio.AbstractEventLoop | None = None

        self._request_count = 0
        self._last_request_time = 0.0
        self._last_request_mono: float | None = None

    @property
    def min_interval_ms(self) -> float:
        return self._min_interval * 1000

    @property
    def is_limited(self) -> bool:
        """Check if spacing is enforced."""
        return self._min_interval > 0

    def get_wait_time(self) -> float:
        """Estimate the wait before the next admission, in seconds."""
        if not self.is_limited or self._last_request_mono is None:
            return 0.0
        elapsed = self._clock() - self._last_request_mono
        return max(0.0, self._min_interval - elapsed)

    def _admission_lock(self) -> asyncio.Lock:
        # Bound to the running loop; a limiter reused under a new loop gets a fresh one.
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    async def acquire(self) -> float:
        """Wait for the interval to elapse, then record the admission.

        Returns:
            Wait time in seconds (0 if no wait)
        """
        async with self._admission_lock():
            wait_time = self.get_wait_time()
            if wait_time > 0:
                await self._sleep(wait_time)

            self._last_request_mono = self._clock()
            self._last_request_time = self._wall_clock()
            self._request_count += 1
            return wait_time

    def snapshot(self) -> ExecutorStatistics:
        """Get current request statistics."""
        return ExecutorStatistics(
            request_count=self._request_count,
            last_request_time=self._last_request_time,
        )
