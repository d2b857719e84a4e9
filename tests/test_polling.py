import asyncio
import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from brandflow.core.errors import ConnectionFailure, JobFailed, PollTimeout
from brandflow.workers import BackoffPolicy, JobPoller, PollRegistry, ProbeResult, SessionStatus


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


class BlockingSleep:
    """Never wakes up on its own; only cancellation ends it."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.Event().wait()


async def spin_until(predicate, limit: int = 200) -> None:
    for _ in range(limit):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition was not reached")


@pytest.mark.asyncio
async def test_poller_stops_after_exactly_max_attempts():
    probes = 0
    failures = []

    async def probe():
        nonlocal probes
        probes += 1
        return ProbeResult.not_ready()

    sleep = RecordingSleep()
    poller = JobPoller(probe, BackoffPolicy(interval=1.0, max_attempts=4), on_failure=failures.append, sleep=sleep)
    outcome = await poller.run()

    for _ in range(10):
        await asyncio.sleep(0)

    assert probes == 4
    assert outcome.status is SessionStatus.FAILED
    assert isinstance(outcome.error, PollTimeout)
    assert outcome.attempts == 4
    # no timer is scheduled after the final attempt
    assert sleep.delays == [1.0, 1.0, 1.0]
    assert len(failures) == 1 and isinstance(failures[0], PollTimeout)
    assert not poller.active


@pytest.mark.asyncio
async def test_poller_succeeds_with_first_interval_then_regular_interval():
    answers = iter([ProbeResult.not_ready(), ProbeResult.not_ready(), ProbeResult.ready({"id": "a1"})])
    received = []

    async def probe():
        return next(answers)

    sleep = RecordingSleep()
    policy = BackoffPolicy(interval=5.0, first_interval=3.0, max_attempts=10)
    poller = JobPoller(probe, policy, on_success=received.append, sleep=sleep)
    outcome = await poller.run()

    assert outcome.succeeded
    assert outcome.value == {"id": "a1"}
    assert received == [{"id": "a1"}]
    assert sleep.delays == [3.0, 5.0]
    assert poller.session.status is SessionStatus.SUCCEEDED


@pytest.mark.asyncio
async def test_cancel_freezes_probe_count_and_silences_callbacks():
    probes = 0
    called = []

    async def probe():
        nonlocal probes
        probes += 1
        return ProbeResult.not_ready()

    poller = JobPoller(
        probe,
        BackoffPolicy(interval=1.0, max_attempts=50),
        on_success=called.append,
        on_failure=called.append,
        sleep=BlockingSleep(),
    )
    poller.start()
    await spin_until(lambda: probes == 1)

    poller.cancel()
    poller.cancel()
    outcome = await poller.wait()
    for _ in range(20):
        await asyncio.sleep(0)

    assert probes == 1
    assert called == []
    assert outcome.status is SessionStatus.CANCELLED
    assert poller.cancelled


@pytest.mark.asyncio
async def test_result_of_probe_in_flight_at_cancel_is_discarded():
    release = asyncio.Event()
    probes = 0
    called = []

    async def probe():
        nonlocal probes
        probes += 1
        await release.wait()
        return ProbeResult.ready("late")

    poller = JobPoller(probe, BackoffPolicy(interval=1.0, max_attempts=5), on_success=called.append)
    poller.start()
    await spin_until(lambda: probes == 1)

    poller.cancel()
    release.set()
    outcome = await poller.wait()
    for _ in range(10):
        await asyncio.sleep(0)

    assert called == []
    assert probes == 1
    assert outcome.status is SessionStatus.CANCELLED


@pytest.mark.asyncio
async def test_transient_errors_use_the_error_interval():
    answers = iter([ConnectionFailure(), ProbeResult.ready("assets")])

    async def probe():
        answer = next(answers)
        if isinstance(answer, Exception):
            raise answer
        return answer

    sleep = RecordingSleep()
    policy = BackoffPolicy(interval=5.0, error_interval=10.0, max_attempts=5, retry_on=(ConnectionFailure,))
    outcome = await JobPoller(probe, policy, sleep=sleep).run()

    assert outcome.succeeded
    assert outcome.attempts == 2
    assert sleep.delays == [10.0]


@pytest.mark.asyncio
async def test_unexpected_probe_error_is_terminal():
    probes = 0

    async def probe():
        nonlocal probes
        probes += 1
        raise KeyError("status")

    outcome = await JobPoller(probe, BackoffPolicy(interval=1.0, max_attempts=5), sleep=RecordingSleep()).run()

    assert probes == 1
    assert outcome.status is SessionStatus.FAILED
    assert isinstance(outcome.error, KeyError)


@pytest.mark.asyncio
async def test_failed_probe_with_message_becomes_job_failed():
    async def probe():
        return ProbeResult.failed("Processing failed.")

    outcome = await JobPoller(probe, BackoffPolicy(interval=1.0, max_attempts=5), sleep=RecordingSleep()).run()

    assert isinstance(outcome.error, JobFailed)
    assert str(outcome.error) == "Processing failed."


@pytest.mark.asyncio
async def test_initial_delay_runs_before_the_first_probe():
    sleep = RecordingSleep()

    async def probe():
        return ProbeResult.ready(True)

    await JobPoller(probe, BackoffPolicy(interval=1.0, initial_delay=2.0, max_attempts=1), sleep=sleep).run()

    assert sleep.delays == [2.0]


def test_backoff_growth_is_capped():
    policy = BackoffPolicy(interval=2.0, growth=2.0, max_interval=5.0, max_attempts=10)

    assert policy.delay(1) == 2.0
    assert policy.delay(2) == 4.0
    assert policy.delay(3) == 5.0


def test_backoff_jitter_uses_the_supplied_random_source():
    policy = BackoffPolicy(interval=10.0, jitter=0.5, max_attempts=3)

    assert policy.delay(1, rng=lambda: 1.0) == 15.0
    assert policy.delay(1, rng=lambda: 0.0) == 10.0


def test_backoff_rejects_non_positive_bound():
    with pytest.raises(ValueError):
        BackoffPolicy(interval=1.0, max_attempts=0)


@pytest.mark.asyncio
async def test_registry_keeps_one_poller_per_entity_and_kind():
    created = 0

    async def probe():
        return ProbeResult.not_ready()

    def factory():
        nonlocal created
        created += 1
        return JobPoller(probe, BackoffPolicy(interval=1.0, max_attempts=100), sleep=BlockingSleep())

    registry = PollRegistry()
    first = registry.start("b1", "asset_generation", factory)
    second = registry.start("b1", "asset_generation", factory)
    other = registry.start("b2", "asset_generation", factory)

    assert first is second
    assert other is not first
    assert created == 2
    assert len(registry) == 2

    registry.cancel("b1", "asset_generation")
    assert first.cancelled
    assert registry.get("b1", "asset_generation") is None

    registry.cancel_all()
    assert other.cancelled
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_wait_starts_an_idle_poller():
    async def probe():
        return ProbeResult.ready("done")

    poller = JobPoller(probe, BackoffPolicy(interval=1.0, max_attempts=1), sleep=RecordingSleep())
    assert poller.status is SessionStatus.IDLE

    outcome = await poller.wait()

    assert outcome.succeeded and outcome.value == "done"
    assert poller.status is SessionStatus.SUCCEEDED
