import asyncio
import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from brandflow.infrastructure import (
    CacheEntry,
    CoordinationService,
    Deduplicator,
    ResultCache,
    get_coordination_service,
    reset_coordination_state,
)


@pytest.fixture(autouse=True)
def reset_state():
    reset_coordination_state()
    yield
    reset_coordination_state()


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_concurrent_calls_share_one_execution():
    dedup = Deduplicator()
    calls = 0
    release = asyncio.Event()

    async def factory():
        nonlocal calls
        calls += 1
        await release.wait()
        return {"id": "b1"}

    waiters = [asyncio.create_task(dedup.run("GET /brands/b1", factory)) for _ in range(5)]
    await asyncio.sleep(0)
    assert dedup.in_flight("GET /brands/b1")
    assert dedup.pending_count == 1

    release.set()
    results = await asyncio.gather(*waiters)
    await asyncio.sleep(0)

    assert calls == 1
    assert all(result is results[0] for result in results)
    assert dedup.pending_count == 0


@pytest.mark.asyncio
async def test_concurrent_callers_observe_the_same_rejection():
    dedup = Deduplicator()
    calls = 0
    release = asyncio.Event()

    async def factory():
        nonlocal calls
        calls += 1
        await release.wait()
        raise ValueError("backend exploded")

    waiters = [asyncio.create_task(dedup.run("POST /brands/b1/progress", factory)) for _ in range(3)]
    await asyncio.sleep(0)
    release.set()
    results = await asyncio.gather(*waiters, return_exceptions=True)

    assert calls == 1
    assert all(isinstance(result, ValueError) for result in results)
    assert all(result is results[0] for result in results)

    # the failed operation is not remembered: the next call executes again
    release.set()
    with pytest.raises(ValueError):
        await dedup.run("POST /brands/b1/progress", factory)
    assert calls == 2


@pytest.mark.asyncio
async def test_sequential_calls_are_not_collapsed():
    dedup = Deduplicator()
    calls = 0

    async def factory():
        nonlocal calls
        calls += 1
        return calls

    assert await dedup.run("GET /brands", factory) == 1
    assert await dedup.run("GET /brands", factory) == 2


@pytest.mark.asyncio
async def test_one_caller_cancelling_does_not_cancel_the_others():
    dedup = Deduplicator()
    release = asyncio.Event()

    async def factory():
        await release.wait()
        return "done"

    first = asyncio.create_task(dedup.run("GET /brands/b1", factory))
    second = asyncio.create_task(dedup.run("GET /brands/b1", factory))
    await asyncio.sleep(0)

    first.cancel()
    release.set()

    assert await second == "done"
    with pytest.raises(asyncio.CancelledError):
        await first


@pytest.mark.asyncio
async def test_cache_serves_fresh_entries_and_refetches_after_ttl():
    clock = FakeClock()
    cache = ResultCache(ttl=600, clock=clock)
    calls = 0

    async def factory():
        nonlocal calls
        calls += 1
        return {"analysis": calls}

    assert await cache.fetch("b1:feedback", factory) == {"analysis": 1}

    clock.now += 599
    assert await cache.fetch("b1:feedback", factory) == {"analysis": 1}
    assert calls == 1

    clock.now += 2
    assert await cache.fetch("b1:feedback", factory) == {"analysis": 2}
    assert calls == 2


@pytest.mark.asyncio
async def test_cache_does_not_keep_failures():
    cache = ResultCache(clock=FakeClock())
    attempts = 0

    async def factory():
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            raise RuntimeError("analysis failed")
        return "ok"

    with pytest.raises(RuntimeError):
        await cache.fetch("b1:feedback", factory)
    assert "b1:feedback" not in cache

    assert await cache.fetch("b1:feedback", factory) == "ok"
    assert attempts == 2


@pytest.mark.asyncio
async def test_concurrent_cache_fetches_run_the_factory_once():
    cache = ResultCache(clock=FakeClock())
    release = asyncio.Event()
    calls = 0

    async def factory():
        nonlocal calls
        calls += 1
        await release.wait()
        return ["insight"]

    waiters = [asyncio.create_task(cache.fetch("b1:feedback", factory)) for _ in range(4)]
    await asyncio.sleep(0)
    await asyncio.sleep(0)

    entry = cache.get("b1:feedback")
    assert entry is not None and entry.loading

    release.set()
    results = await asyncio.gather(*waiters)

    assert calls == 1
    assert results == [["insight"]] * 4
    entry = cache.get("b1:feedback")
    assert entry is not None and not entry.loading and entry.data == ["insight"]


def test_invalidate_prefix_only_touches_one_entity():
    clock = FakeClock()
    cache = ResultCache(clock=clock)
    cache.set("b1:feedback", CacheEntry(data=1))
    cache.set("b1:summary-adjustment", CacheEntry(data=2))
    cache.set("b10:feedback", CacheEntry(data=3))

    assert cache.invalidate_prefix("b1:") == 2
    assert "b10:feedback" in cache
    assert len(cache) == 1


@pytest.mark.asyncio
async def test_invalidation_fences_a_load_already_in_flight():
    cache = ResultCache(clock=FakeClock())
    release = asyncio.Event()
    calls = 0

    async def factory():
        nonlocal calls
        calls += 1
        if calls == 1:
            await release.wait()
            return "before-edit"
        return "after-edit"

    stale = asyncio.create_task(cache.fetch("b1:feedback", factory))
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    assert cache.get("b1:feedback").loading

    assert cache.invalidate_prefix("b1:") == 1
    fresh = await cache.fetch("b1:feedback", factory)
    release.set()

    assert await stale == "before-edit"
    assert fresh == "after-edit"
    assert calls == 2
    assert cache.get("b1:feedback").data == "after-edit"
    assert await cache.fetch("b1:feedback", factory) == "after-edit"
    assert calls == 2


def test_sweep_removes_expired_entries():
    clock = FakeClock()
    cache = ResultCache(ttl=10, clock=clock)
    cache.set("b1:feedback", CacheEntry(data="old"))
    clock.now += 5
    cache.set("b2:feedback", CacheEntry(data="new"))
    clock.now += 6

    assert cache.sweep() == 1
    assert "b1:feedback" not in cache
    assert cache.get("b2:feedback").data == "new"


@pytest.mark.asyncio
async def test_coordination_service_lifecycle():
    service = CoordinationService(ttl=60, sweep_interval=0.01)
    service.init()
    assert service.running
    service.init()

    service.cache.set("b1:feedback", CacheEntry(data="x", timestamp=1.0))
    service.clear()
    assert len(service.cache) == 0

    service.close()
    assert not service.running


def test_reset_clears_the_default_service():
    service = get_coordination_service()
    service.cache.set("b1:feedback", CacheEntry(data="stale"))

    reset_coordination_state()

    assert get_coordination_service() is service
    assert len(service.cache) == 0
