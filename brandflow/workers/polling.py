"""Bounded, cancellable polling of backend jobs.

A :class:`JobPoller` repeatedly calls a ``probe`` coroutine that classifies the
job as ready, not ready or failed. The delay between probes comes from a
:class:`BackoffPolicy`; the attempt bound is enforced before every probe.
After :meth:`JobPoller.cancel` no probe is issued, no state is mutated and no
callback runs, including for a probe that was already in flight.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, TypeVar

from brandflow.core.errors import JobFailed, PollTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ProbeState(str, Enum):
    READY = "ready"
    NOT_READY = "not_ready"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class ProbeResult(Generic[T]):
    state: ProbeState
    value: T | None = None
    error: BaseException | None = None

    @classmethod
    def ready(cls, value: Any = None) -> "ProbeResult[Any]":
        return cls(ProbeState.READY, value)

    @classmethod
    def not_ready(cls, value: Any = None, error: BaseException | None = None) -> "ProbeResult[Any]":
        return cls(ProbeState.NOT_READY, value, error)

    @classmethod
    def failed(cls, error: BaseException | str) -> "ProbeResult[Any]":
        if isinstance(error, str):
            error = JobFailed(error)
        return cls(ProbeState.FAILED, None, error)


@dataclass(frozen=True, slots=True)
class BackoffPolicy:
    """Delay schedule and attempt bound for one kind of job.

    ``first_interval`` overrides the delay after the first probe, ``growth``
    multiplies the regular interval per further attempt (capped by
    ``max_interval``), and exceptions in ``retry_on`` count as a not-ready
    attempt followed by ``error_interval``.
    """

    interval: float
    max_attempts: int
    initial_delay: float = 0.0
    first_interval: float | None = None
    error_interval: float | None = None
    growth: float = 1.0
    max_interval: float | None = None
    jitter: float = 0.0
    retry_on: tuple[type[BaseException], ...] = ()

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.interval < 0:
            raise ValueError("interval must not be negative")

    def delay(self, attempt: int, *, after_error: bool = False, rng: Callable[[], float] = random.random) -> float:
        """Seconds to wait after probe number ``attempt`` (1-based)."""

        if after_error and self.error_interval is not None:
            value = self.error_interval
        elif attempt <= 1 and self.first_interval is not None:
            value = self.first_interval
        else:
            steps = attempt - (2 if self.first_interval is not None else 1)
            value = self.interval * (self.growth ** max(steps, 0))
        if self.max_interval is not None:
            value = min(value, self.max_interval)
        if self.jitter:
            value += value * self.jitter * rng()
        return value


class SessionStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({SessionStatus.SUCCEEDED, SessionStatus.FAILED, SessionStatus.CANCELLED})


@dataclass(frozen=True, slots=True)
class PollSession:
    """Snapshot of a poller for status displays and logs."""

    name: str
    attempt: int
    max_attempts: int
    status: SessionStatus
    cancelled: bool
    error: str | None = None


@dataclass(frozen=True, slots=True)
class PollOutcome(Generic[T]):
    status: SessionStatus
    attempts: int
    value: T | None = None
    error: BaseException | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is SessionStatus.SUCCEEDED


Callback = Callable[[Any], Any]


class JobPoller(Generic[T]):
    def __init__(
        self,
        probe: Callable[[], Awaitable[ProbeResult[T]]],
        policy: BackoffPolicy,
        *,
        on_success: Callback | None = None,
        on_failure: Callback | None = None,
        name: str = "job",
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._probe = probe
        self.policy = policy
        self._on_success = on_success
        self._on_failure = on_failure
        self.name = name
        self._sleep = sleep

        self.attempt = 0
        self.status = SessionStatus.IDLE
        self.error: BaseException | None = None
        self._cancelled = False
        self._probing = False
        self._task: asyncio.Task[None] | None = None
        self._finished: asyncio.Future[PollOutcome[T]] | None = None

    # ------------------------------------------------------------------
    # state
    # ------------------------------------------------------------------
    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def active(self) -> bool:
        return self.status in (SessionStatus.IDLE, SessionStatus.RUNNING) and not self._cancelled

    @property
    def session(self) -> PollSession:
        return PollSession(
            name=self.name,
            attempt=self.attempt,
            max_attempts=self.policy.max_attempts,
            status=self.status,
            cancelled=self._cancelled,
            error=str(self.error) if self.error else None,
        )

    def _outcome(self, value: T | None = None) -> PollOutcome[T]:
        return PollOutcome(self.status, self.attempt, value, self.error)

    def _resolve(self, outcome: PollOutcome[T]) -> None:
        if self._finished is not None and not self._finished.done():
            self._finished.set_result(outcome)

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    def start(self) -> asyncio.Task[None]:
        """Schedule the poll loop; calling it again returns the same task."""

        if self._task is not None:
            return self._task
        loop = asyncio.get_running_loop()
        self._finished = loop.create_future()
        if self._cancelled:
            self._resolve(self._outcome())
        self.status = SessionStatus.RUNNING if not self._cancelled else self.status
        self._task = loop.create_task(self._run())
        return self._task

    async def wait(self) -> PollOutcome[T]:
        self.start()
        finished = self._finished
        if finished is None:
            raise RuntimeError(f"poll {self.name} was never started")
        return await asyncio.shield(finished)

    async def run(self) -> PollOutcome[T]:
        """Start (if needed) and wait for the terminal outcome."""

        self.start()
        return await self.wait()

    def cancel(self) -> None:
        """Idempotent: stop probing, drop the pending timer, silence callbacks."""

        if self._cancelled:
            return
        self._cancelled = True
        if self.status not in TERMINAL_STATUSES:
            self.status = SessionStatus.CANCELLED
            logger.info("poll %s cancelled after %d attempt(s)", self.name, self.attempt)
        task = self._task
        if task is not None and not task.done():
            try:
                current = asyncio.current_task()
            except RuntimeError:
                current = None
            if task is not current:
                task.cancel()
        self._resolve(self._outcome())

    # ------------------------------------------------------------------
    # loop
    # ------------------------------------------------------------------
    async def _invoke(self, callback: Callback | None, argument: Any) -> None:
        if callback is None or self._cancelled:
            return
        result = callback(argument)
        if inspect.isawaitable(result):
            await result

    async def _finish(self, status: SessionStatus, *, value: T | None = None, error: BaseException | None = None) -> None:
        self.status = status
        self.error = error
        outcome = self._outcome(value)
        if status is SessionStatus.SUCCEEDED:
            logger.info("poll %s succeeded after %d attempt(s)", self.name, self.attempt)
            await self._invoke(self._on_success, value)
        else:
            logger.warning("poll %s failed after %d attempt(s): %s", self.name, self.attempt, error)
            await self._invoke(self._on_failure, error)
        self._resolve(outcome)

    async def _probe_once(self) -> tuple[ProbeResult[T], bool]:
        self._probing = True
        try:
            return await self._probe(), False
        except self.policy.retry_on as exc:
            logger.info("poll %s attempt %d transient error: %s", self.name, self.attempt, exc)
            return ProbeResult.not_ready(error=exc), True
        except Exception as exc:
            return ProbeResult.failed(exc), False
        finally:
            self._probing = False

    async def _run(self) -> None:
        try:
            if self.policy.initial_delay:
                await self._sleep(self.policy.initial_delay)
            while True:
                # a probe scheduled before cancellation is skipped entirely
                if self._cancelled or self._probing:
                    return
                if self.attempt >= self.policy.max_attempts:
                    await self._finish(SessionStatus.FAILED, error=PollTimeout(self.attempt))
                    return

                self.attempt += 1
                logger.debug("poll %s attempt %d/%d", self.name, self.attempt, self.policy.max_attempts)
                result, after_error = await self._probe_once()
                if self._cancelled:
                    return

                if result.state is ProbeState.READY:
                    await self._finish(SessionStatus.SUCCEEDED, value=result.value)
                    return
                if result.state is ProbeState.FAILED:
                    await self._finish(SessionStatus.FAILED, error=result.error or JobFailed())
                    return
                if self.attempt >= self.policy.max_attempts:
                    await self._finish(SessionStatus.FAILED, error=PollTimeout(self.attempt))
                    return

                # a probe may report a transient error itself
                after_error = after_error or result.error is not None
                await self._sleep(self.policy.delay(self.attempt, after_error=after_error))
        except asyncio.CancelledError:
            if not self._cancelled:
                self._cancelled = True
                self.status = SessionStatus.CANCELLED
                self._resolve(self._outcome())
            raise
        except Exception as exc:
            logger.exception("poll %s callback raised", self.name)
            if self._finished is not None and not self._finished.done():
                self._finished.set_exception(exc)


class PollRegistry:
    """At most one active poller per ``(entity_id, kind)``."""

    def __init__(self) -> None:
        self._sessions: dict[tuple[str, str], JobPoller[Any]] = {}

    def __len__(self) -> int:
        return sum(1 for poller in self._sessions.values() if poller.active)

    def get(self, entity_id: str, kind: str) -> JobPoller[Any] | None:
        poller = self._sessions.get((entity_id, kind))
        if poller is not None and not poller.active:
            del self._sessions[(entity_id, kind)]
            return None
        return poller

    def find(self, entity_id: str, kind: str) -> JobPoller[Any] | None:
        """Last poller registered for the key, finished or not."""

        return self._sessions.get((entity_id, kind))

    def start(self, entity_id: str, kind: str, factory: Callable[[], JobPoller[Any]]) -> JobPoller[Any]:
        existing = self.get(entity_id, kind)
        if existing is not None:
            logger.debug("reusing active %s poll for %s", kind, entity_id)
            return existing
        poller = factory()
        self._sessions[(entity_id, kind)] = poller
        poller.start()
        return poller

    def cancel(self, entity_id: str, kind: str) -> None:
        poller = self._sessions.pop((entity_id, kind), None)
        if poller is not None:
            poller.cancel()

    def cancel_all(self) -> None:
        sessions, self._sessions = self._sessions, {}
        for poller in sessions.values():
            poller.cancel()


__all__ = [
    "BackoffPolicy",
    "JobPoller",
    "PollOutcome",
    "PollRegistry",
    "PollSession",
    "ProbeResult",
    "ProbeState",
    "SessionStatus",
]
