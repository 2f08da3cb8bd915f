"""
SWRCache - In-memory cache with stale-while-revalidate, single-flight and LRU eviction.

Temperature of an entry is decided by its age since the last write:
- fresh (< fresh_window): served as is, no loader call
- stale (< stale_window): served as is, one background revalidation started
- expired (or missing): caller blocks on a load, shared with concurrent callers

All bookkeeping is synchronous; the only suspension points are the loads
themselves, so a temperature check and the action it picks cannot interleave
with another task.
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, TypeVar

from loguru import logger

from hnreel.services.deduplicator import RequestDeduplicator

T = TypeVar("T")

Loader = Callable[[], Awaitable[T]]
RevalidateErrorHandler = Callable[[str, BaseException], None]


@dataclass
class CacheEntry(Generic[T]):
    """A single cache entry with metadata."""

    data: T
    cached_at: float
    last_accessed: float

    def age(self, now: float) -> float:
        return now - self.cached_at


@dataclass(frozen=True)
class CacheConfig:
    """Per-cache freshness windows and capacity."""

    fresh_window: timedelta = timedelta(minutes=1)
    stale_window: timedelta = timedelta(minutes=5)
    capacity: int | None = None  # None means unbounded


class CacheTemperature(str, Enum):
    """Temperature bands of a cache entry."""

    FRESH = "fresh"
    STALE = "stale"
    EXPIRED = "expired"


def log_revalidate_error(key: str, error: BaseException) -> None:
    """Default side channel for failed background revalidations."""
    logger.warning(f"Background cache refresh failed for key '{key}': {error}")


class SWRCache(Generic[T]):
    """
    Async cache keyed by string with stale-while-revalidate semantics.

    Usage:
        cache = SWRCache(CacheConfig(
            fresh_window=timedelta(minutes=5),
            stale_window=timedelta(hours=1),
            capacity=2000,
        ))

        item = await cache.get("item:1", lambda: fetch_item(1))
    """

    def __init__(
        self,
        config: CacheConfig | None = None,
        *,
        name: str = "cache",
        on_revalidate_error: RevalidateErrorHandler | None = None,
        clock: Callable[[], float] = time.monotonic,
        debug: bool = False,
    ):
        self._config = config or CacheConfig()
        self._name = name
        self._on_revalidate_error = on_revalidate_error or log_revalidate_error
        self._clock = clock
        self._debug = debug

        self._memory: dict[str, CacheEntry[T]] = {}
        self._pending = RequestDeduplicator(debug=debug)
        # Every running load per key, including ones superseded by refresh()
        self._loads: dict[str, set[asyncio.Task[Any]]] = {}
        # Loads whose result must not be stored (key invalidated meanwhile)
        self._discarded: set[asyncio.Task[Any]] = set()
        self._stats = CacheStats()

    @property
    def config(self) -> CacheConfig:
        return self._config

    def temperature(self, entry: CacheEntry[T], now: float | None = None) -> CacheTemperature:
        """Classify an entry by its age."""
        age = entry.age(self._clock() if now is None else now)
        if age < self._config.fresh_window.total_seconds():
            return CacheTemperature.FRESH
        if age < self._config.stale_window.total_seconds():
            return CacheTemperature.STALE
        return CacheTemperature.EXPIRED

    async def get(self, key: str, loader: Loader[T]) -> T:
        """
        Get value for ``key``, calling ``loader`` when needed.

        Args:
            key: Cache key
            loader: Async function producing a fresh value

        Returns:
            The cached or newly loaded value

        Raises:
            Exception: Any error from a blocking load is propagated to
                every caller waiting on it
        """
        now = self._clock()
        entry = self._memory.get(key)

        if entry is not None:
            temperature = self.temperature(entry, now)

            if temperature is CacheTemperature.FRESH:
                entry.last_accessed = now
                self._stats.hits += 1
                self._log(f"HIT: {key[:50]}...")
                return entry.data

            if temperature is CacheTemperature.STALE:
                if not self._pending.is_in_flight(key):
                    self._revalidate_in_background(key, loader)
                entry.last_accessed = now
                self._stats.stale_hits += 1
                self._log(f"STALE HIT: {key[:50]}...")
                return entry.data

            self._log(f"EXPIRED: {key[:50]}...")
        else:
            self._log(f"MISS: {key[:50]}...")

        self._stats.misses += 1
        pending = self._pending.join(key)
        if pending is None:
            pending = asyncio.shield(self._start_load(key, loader))
        return await pending

    async def refresh(self, key: str, loader: Loader[T]) -> T:
        """Force a load and replace the cached value regardless of temperature."""
        self._log(f"REFRESH: {key[:50]}...")
        return await asyncio.shield(self._start_load(key, loader))

    def invalidate(self, key: str) -> None:
        """
        Remove a key and its in-flight record.

        Callers already awaiting an in-flight load still get its result,
        but that result is not stored.
        """
        for task in self._loads.get(key, ()):
            self._discarded.add(task)
        self._pending.forget(key)
        if self._memory.pop(key, None) is not None:
            self._log(f"INVALIDATE: {key[:50]}...")

    def clear(self) -> None:
        """Clear all cache entries and in-flight records."""
        for tasks in self._loads.values():
            self._discarded.update(tasks)
        self._pending.forget_all()
        count = len(self._memory)
        self._memory.clear()
        self._log(f"CLEAR: {count} entries removed")

    def has(self, key: str) -> bool:
        """Report presence without touching timestamps."""
        return key in self._memory

    def __len__(self) -> int:
        return len(self._memory)

    def _start_load(self, key: str, loader: Loader[T]) -> asyncio.Task[T]:
        task = self._pending.start(key, lambda: self._load_and_store(key, loader))
        self._loads.setdefault(key, set()).add(task)
        return task

    async def _load_and_store(self, key: str, loader: Loader[T]) -> T:
        task = asyncio.current_task()
        try:
            data = await loader()
            if task in self._discarded:
                self._log(f"DISCARD: {key[:50]}... (invalidated while loading)")
            else:
                self._store(key, data)
            return data
        finally:
            loads = self._loads.get(key)
            if loads is not None:
                loads.discard(task)
                if not loads:
                    del self._loads[key]
            self._discarded.discard(task)

    def _revalidate_in_background(self, key: str, loader: Loader[T]) -> None:
        """Refresh data in the background without blocking."""
        self._stats.revalidations += 1
        self._log(f"REVALIDATE: {key[:50]}...")
        task = self._start_load(key, loader)
        task.add_done_callback(lambda t: self._on_revalidated(key, t))

    def _on_revalidated(self, key: str, task: asyncio.Task[Any]) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self._stats.revalidation_failures += 1
            self._on_revalidate_error(key, error)

    def _store(self, key: str, data: T) -> None:
        now = self._clock()
        # Re-insert so write order breaks last_accessed ties during eviction
        self._memory.pop(key, None)
        self._memory[key] = CacheEntry(data=data, cached_at=now, last_accessed=now)
        self._log(f"SET: {key[:50]}...")
        self._evict_if_needed()

    def _evict_if_needed(self) -> None:
        """Evict the least recently accessed entries beyond capacity."""
        capacity = self._config.capacity
        if capacity is None or len(self._memory) <= capacity:
            return

        excess = len(self._memory) - capacity
        oldest = sorted(
            self._memory.items(),
            key=lambda item: item[1].last_accessed,
        )[:excess]
        for key, _ in oldest:
            del self._memory[key]
            self._stats.evictions += 1
            self._log(f"EVICT: {key[:50]}...")

    def get_stats(self) -> "CacheStats":
        """Get cache statistics."""
        self._stats.size = len(self._memory)
        self._stats.capacity = self._config.capacity
        pending = self._pending.get_stats()
        self._stats.in_flight = pending.in_flight
        self._stats.joined = pending.joined
        return self._stats

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[{self._name}] {message}")


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    stale_hits: int = 0
    misses: int = 0
    revalidations: int = 0
    revalidation_failures: int = 0
    evictions: int = 0
    size: int = 0
    capacity: int | None = None
    in_flight: int = 0
    joined: int = 0  # Callers that awaited a load already running

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.stale_hits + self.misses
        if total == 0:
            return 0.0
        return (self.hits + self.stale_hits) / total

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "stale_hits": self.stale_hits,
            "misses": self.misses,
            "revalidations": self.revalidations,
            "revalidation_failures": self.revalidation_failures,
            "evictions": self.evictions,
            "size": self.size,
            "capacity": self.capacity,
            "in_flight": self.in_flight,
            "joined": self.joined,
            "hit_rate": f"{self.hit_rate:.2%}",
        }
