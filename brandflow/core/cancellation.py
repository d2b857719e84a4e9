"""Liveness token shared by every continuation a controller schedules."""
from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Cancelled(Exception):
    """Raised by :meth:`CancellationToken.guard` once the token is cancelled."""


class CancellationToken:
    def __init__(self) -> None:
        self._cancelled = False
        self._callbacks: list[Callable[[], Any]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def alive(self) -> bool:
        return not self._cancelled

    def on_cancel(self, callback: Callable[[], Any]) -> None:
        """Register cleanup to run on cancel (immediately if already cancelled)."""

        if self._cancelled:
            callback()
            return
        self._callbacks.append(callback)

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise Cancelled()

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` and refuse to hand its result to a dead owner."""

        if self._cancelled:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise Cancelled()
        result = await awaitable
        self.raise_if_cancelled()
        return result

    def cancel(self) -> None:
        """Idempotent teardown: flag, then callbacks."""

        if self._cancelled:
            return
        self._cancelled = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:  # pragma: no cover - cleanup must not abort teardown
                logger.exception("cancellation callback failed")


__all__ = ["CancellationToken", "Cancelled"]
