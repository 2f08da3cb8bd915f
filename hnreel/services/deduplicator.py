"""
RequestDeduplicator - Single-flight registry of pending fetches.

When multiple callers request the same key simultaneously,
only one actual load runs and every caller awaits its result.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

T = TypeVar("T")


class RequestDeduplicator:
    """
    Tracks at most one pending fetch (an asyncio.Task) per key.

    A record is registered the moment a fetch starts and removed the
    instant it settles, whether it succeeded, failed or was cancelled.
    Waiters are shielded: cancelling one waiter does not cancel the
    shared fetch for the others.

    Usage:
        pending_loads = RequestDeduplicator()

        async def fetch_data(url: str):
            pending = pending_loads.join(url)
            if pending is None:
                pending = asyncio.shield(
                    pending_loads.start(url, lambda: http_client.get(url))
                )
            return await pending
    """

    def __init__(self, debug: bool = False):
        self._in_flight: dict[str, asyncio.Task[Any]] = {}
        self._debug = debug
        self._stats = SingleFlightStats()

    def get(self, key: str) -> asyncio.Task[Any] | None:
        """Get the pending fetch for a key, if any."""
        return self._in_flight.get(key)

    def is_in_flight(self, key: str) -> bool:
        return key in self._in_flight

    def join(self, key: str) -> asyncio.Future[Any] | None:
        """
        Join the pending fetch for a key.

        Returns:
            A shielded future resolving to the shared result, or None if
            nothing is in flight for the key
        """
        task = self._in_flight.get(key)
        if task is None:
            return None
        self._stats.joined += 1
        self._log(f"JOIN: {key[:50]}...")
        return asyncio.shield(task)

    def start(
        self,
        key: str,
        request_fn: Callable[[], Awaitable[T]],
    ) -> asyncio.Task[T]:
        """
        Start a new fetch for ``key`` and register it as the pending one.

        A previously registered fetch for the key keeps running but is no
        longer joinable.
        """
        self._stats.started += 1
        self._log(f"START: {key[:50]}...")
        task = asyncio.create_task(self._run_and_release(key, request_fn))
        self._in_flight[key] = task
        return task

    async def _run_and_release(
        self,
        key: str,
        request_fn: Callable[[], Awaitable[T]],
    ) -> T:
        try:
            return await request_fn()
        finally:
            if self._in_flight.get(key) is asyncio.current_task():
                del self._in_flight[key]
                self._log(f"SETTLED: {key[:50]}...")

    def forget(self, key: str) -> bool:
        """Drop the pending record for a key without cancelling the fetch."""
        if self._in_flight.pop(key, None) is not None:
            self._log(f"FORGET: {key[:50]}...")
            return True
        return False

    def forget_all(self) -> int:
        """Drop every pending record without cancelling the fetches."""
        count = len(self._in_flight)
        self._in_flight.clear()
        if count:
            self._log(f"FORGET_ALL: {count} records dropped")
        return count

    def __len__(self) -> int:
        return len(self._in_flight)

    def get_stats(self) -> "SingleFlightStats":
        self._stats.in_flight = len(self._in_flight)
        return self._stats

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[SingleFlight] {message}")


@dataclass
class SingleFlightStats:
    """Fetches started versus callers that joined one already running."""

    started: int = 0
    joined: int = 0
    in_flight: int = 0

    @property
    def join_rate(self) -> float:
        calls = self.started + self.joined
        return self.joined / calls if calls else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "started": self.started,
            "joined": self.joined,
            "in_flight": self.in_flight,
            "join_rate": f"{self.join_rate:.2%}",
        }
