"""Spacing for outbound provider calls."""

import asyncio
import time
from collections.abc import Awaitable, Callable


class IntervalRateLimiter:
    """
    Enforce a minimum gap between successive calls to wait().

    The first call passes straight through; later calls sleep until
    min_interval_seconds have passed since the previous one was released.
    """

    def __init__(
        self,
        min_interval_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if min_interval_seconds < 0:
            raise ValueError("min_interval_seconds must be >= 0")

        self.min_interval_seconds = min_interval_seconds
        self._clock = clock
        self._sleep = sleep
        self._last_release: float | None = None
        self._lock = asyncio.Lock()

    async def wait(self) -> float:
        """
        Block until the next call is allowed.

        Returns:
            float: Seconds spent sleeping
        """
        async with self._lock:
            delay = 0.0
            if self._last_release is not None:
                delay = self._last_release + self.min_interval_seconds - self._clock()
                if delay > 0:
                    await self._sleep(delay)
                else:
                    delay = 0.0

            self._last_release = self._clock()
            return delay

    def reset(self) -> None:
        self._last_release = None
