"""Global request limiter: bounded concurrency plus a minimum start interval."""

import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional


class RequestLimiter:
    """Serializes outbound requests across every adapter.

    At most ``max_concurrency`` requests are in flight at once, and two
    consecutive requests never start less than ``min_interval`` seconds
    apart. One instance is shared by all fetches of a process so the total
    load on the wider internet stays bounded no matter how many adapters run.
    """

    def __init__(self, max_concurrency: int = 3, min_interval: float = 1.0):
        """Initialize the limiter.

        Args:
            max_concurrency: Maximum simultaneous in-flight requests
            min_interval: Minimum seconds between two request starts
        """
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        if min_interval < 0:
            raise ValueError("min_interval must be non-negative")

        self.max_concurrency = max_concurrency
        self.min_interval = min_interval
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._lock = asyncio.Lock()
        self._last_start: Optional[float] = None

    async def _wait_for_interval(self) -> None:
        """Sleep until min_interval has passed since the previous start."""
        async with self._lock:
            if self._last_start is not None:
                wait_time = self._last_start + self.min_interval - time.monotonic()
                if wait_time > 0:
                    await asyncio.sleep(wait_time)
            self._last_start = time.monotonic()

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Hold one concurrency slot for the duration of a request.

        Usage:
            async with limiter.slot():
                response = await client.get(url)
        """
        async with self._semaphore:
            await self._wait_for_interval()
            yield

    @property
    def last_start(self) -> Optional[float]:
        """Monotonic timestamp of the most recent request start."""
        return self._last_start
