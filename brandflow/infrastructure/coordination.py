"""Request de-duplication and the TTL result cache.

Both primitives are owned by one :class:`CoordinationService` that is created
per client (or per test) and torn down with :meth:`CoordinationService.close`.
A process-wide default is kept for callers that do not wire their own.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL = 10 * 60.0
DEFAULT_SWEEP_INTERVAL = 5 * 60.0


class Deduplicator:
    """Collapse concurrent calls that share an operation key into one task."""

    def __init__(self) -> None:
        self._in_flight: dict[str, asyncio.Task[Any]] = {}

    @property
    def pending_count(self) -> int:
        return len(self._in_flight)

    def in_flight(self, key: str) -> bool:
        return key in self._in_flight

    def _release(self, key: str, task: asyncio.Task[Any]) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]

    async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._in_flight[key] = task
            task.add_done_callback(lambda done, key=key: self._release(key, done))
        else:
            logger.debug("joining in-flight operation %s", key)
        # one caller giving up must not cancel the call for the others
        return await asyncio.shield(task)

    def clear(self) -> None:
        for task in self._in_flight.values():
            task.cancel()
        self._in_flight.clear()


@dataclass(frozen=True, slots=True)
class CacheEntry(Generic[T]):
    loading: bool = False
    data: T | None = None
    error: str | None = None
    timestamp: float = 0.0


class ResultCache:
    """Per-key store of :class:`CacheEntry` values with TTL expiry."""

    def __init__(
        self,
        deduplicator: Deduplicator | None = None,
        *,
        ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: dict[str, CacheEntry[Any]] = {}
        # bumped on invalidation; a load only writes back under its own generation
        self._generations: dict[str, int] = {}
        self._dedup = deduplicator or Deduplicator()
        self._clock = clock
        self.ttl = ttl

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def _expired(self, entry: CacheEntry[Any]) -> bool:
        return self._clock() - entry.timestamp > self.ttl

    def get(self, key: str) -> CacheEntry[Any] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._expired(entry):
            del self._entries[key]
            return None
        return entry

    def set(self, key: str, entry: CacheEntry[Any]) -> None:
        if not entry.timestamp:
            entry = replace(entry, timestamp=self._clock())
        self._entries[key] = entry

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def generation(self, key: str) -> int:
        return self._generations.get(key, 0)

    def invalidate(self, key: str) -> None:
        """Drop ``key`` and fence off any load for it that is still in flight."""

        self._entries.pop(key, None)
        self._generations[key] = self.generation(key) + 1

    def invalidate_prefix(self, prefix: str) -> int:
        keys = [key for key in self._entries if key.startswith(prefix)]
        for key in keys:
            self.invalidate(key)
        return len(keys)

    def sweep(self) -> int:
        """Drop every entry older than the TTL and return how many were removed."""

        expired = [key for key, entry in self._entries.items() if self._expired(entry)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("swept %d expired cache entries", len(expired))
        return len(expired)

    async def fetch(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        """Return fresh cached data or run ``factory`` exactly once for all callers.

        Only the caller that owns the dedup task writes the loading and the
        terminal entry. Failures remove the entry so the next call goes back
        to the network. A load that started before :meth:`invalidate` still
        answers its own callers but never writes into the cache, and callers
        arriving after the invalidation start a new load.
        """

        entry = self.get(key)
        if entry is not None and not entry.loading and entry.data is not None:
            return entry.data

        generation = self.generation(key)

        async def load() -> T:
            if self.generation(key) == generation:
                self.set(key, CacheEntry(loading=True, timestamp=self._clock()))
            try:
                data = await factory()
            except BaseException:
                if self.generation(key) == generation:
                    self.delete(key)
                raise
            if self.generation(key) != generation:
                logger.debug("discarding result for invalidated cache key %s", key)
                return data
            self.set(key, CacheEntry(loading=False, data=data, timestamp=self._clock()))
            return data

        return await self._dedup.run(f"cache:{key}#{generation}", load)

    def clear(self) -> None:
        for key in list(self._entries):
            self.invalidate(key)


class CoordinationService:
    """Lifecycle owner of the dedup registry, the result cache and its sweeper."""

    def __init__(
        self,
        *,
        ttl: float = DEFAULT_TTL,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.deduplicator = Deduplicator()
        self.cache = ResultCache(self.deduplicator, ttl=ttl, clock=clock)
        self._sweep_interval = sweep_interval
        self._sweeper: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    def init(self) -> None:
        """Start the periodic sweep; requires a running event loop."""

        if self.running:
            return
        self._sweeper = asyncio.get_running_loop().create_task(self._sweep_forever())

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            self.cache.sweep()

    def clear(self) -> None:
        self.cache.clear()
        self.deduplicator.clear()

    def close(self) -> None:
        if self._sweeper is not None:
            self._sweeper.cancel()
            self._sweeper = None
        self.clear()


_service = CoordinationService()


def get_coordination_service() -> CoordinationService:
    """Return the process-wide coordination service."""

    return _service


def reset_coordination_state() -> None:
    """Drop cached results and in-flight registrations (used in tests)."""

    _service.close()


__all__ = [
    "CacheEntry",
    "CoordinationService",
    "Deduplicator",
    "ResultCache",
    "get_coordination_service",
    "reset_coordination_state",
]
