"""
RequestLimiter - Schedules async tasks under a concurrency cap and a start-rate budget.

Three independent knobs, each optional:
- max_concurrent: how many scheduled tasks may run at once
- min_interval: minimum seconds between two task starts
- reservoir: tokens available for starts; reset to reservoir_refresh_amount
  every reservoir_refresh_interval seconds

Tasks are delayed, never dropped. A slot is released when its task
finishes, whether it returned, raised or was cancelled.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

T = TypeVar("T")


class RequestLimiter:
    """
    Usage:
        limiter = RequestLimiter(max_concurrent=5)
        items = await asyncio.gather(
            *(limiter.schedule(lambda i=i: get_item(i)) for i in ids)
        )
    """

    def __init__(
        self,
        max_concurrent: int | None = 5,
        min_interval: float = 0.0,
        reservoir: int | None = None,
        reservoir_refresh_amount: int | None = None,
        reservoir_refresh_interval: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        debug: bool = False,
    ):
        if max_concurrent is not None and max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if reservoir is not None and not (
            reservoir_refresh_amount is not None and reservoir_refresh_interval
        ):
            raise ValueError("reservoir requires a refresh amount and interval")

        self.max_concurrent = max_concurrent
        self.min_interval = min_interval
        self._clock = clock
        self._debug = debug

        self._semaphore = (
            asyncio.Semaphore(max_concurrent) if max_concurrent is not None else None
        )
        self._start_lock = asyncio.Lock()
        self._next_start = 0.0

        self._reservoir = reservoir
        self._refresh_amount = reservoir_refresh_amount
        self._refresh_interval = reservoir_refresh_interval
        self._last_refresh = clock()

        self._running = 0
        self._queued = 0
        self._done = 0

    @classmethod
    def unlimited(cls) -> "RequestLimiter":
        """A limiter that never delays anything."""
        return cls(max_concurrent=None)

    @property
    def running(self) -> int:
        return self._running

    @property
    def queued(self) -> int:
        return self._queued

    async def schedule(self, fn: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``fn`` once the limits allow it.

        Returns:
            Whatever ``fn`` returns; its exceptions propagate unchanged
        """
        self._queued += 1
        try:
            if self._semaphore is not None:
                await self._semaphore.acquire()
        finally:
            self._queued -= 1

        try:
            await self._wait_for_start()
            self._running += 1
            try:
                return await fn()
            finally:
                self._running -= 1
                self._done += 1
        finally:
            if self._semaphore is not None:
                self._semaphore.release()

    async def _wait_for_start(self) -> None:
        if self.min_interval <= 0 and self._reservoir is None:
            return

        async with self._start_lock:
            if self._reservoir is not None:
                await self._take_token()

            if self.min_interval > 0:
                delay = self._next_start - self._clock()
                if delay > 0:
                    self._log(f"Spacing start by {delay:.3f}s")
                    await asyncio.sleep(delay)
                self._next_start = self._clock() + self.min_interval

    async def _take_token(self) -> None:
        while True:
            self._refill()
            if self._reservoir > 0:
                self._reservoir -= 1
                return
            wait = self._last_refresh + self._refresh_interval - self._clock()
            self._log(f"Reservoir empty, waiting {max(wait, 0):.3f}s for refill")
            await asyncio.sleep(max(wait, 0))

    def _refill(self) -> None:
        if not self._refresh_interval or self._refresh_amount is None:
            return
        elapsed = self._clock() - self._last_refresh
        if elapsed >= self._refresh_interval:
            periods = int(elapsed // self._refresh_interval)
            self._last_refresh += periods * self._refresh_interval
            self._reservoir = self._refresh_amount

    def get_stats(self) -> dict[str, Any]:
        """Get limiter statistics."""
        return {
            "max_concurrent": self.max_concurrent,
            "running": self._running,
            "queued": self._queued,
            "done": self._done,
            "reservoir": self._reservoir,
        }

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[Limiter] {message}")
