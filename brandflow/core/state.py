"""Finite-state value describing one asynchronously loaded resource.

Controllers never flip individual ``is_loading``/``has_loaded`` flags; they
replace their :class:`EntityState` with the result of one of the pure
transition functions below.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class LoadPhase(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class EntityState(Generic[T]):
    phase: LoadPhase = LoadPhase.IDLE
    data: T | None = None
    error: str | None = None
    updated_at: float = 0.0

    @property
    def is_loading(self) -> bool:
        return self.phase is LoadPhase.LOADING

    @property
    def is_loaded(self) -> bool:
        return self.phase is LoadPhase.LOADED

    @property
    def is_error(self) -> bool:
        return self.phase is LoadPhase.ERROR


def start_loading(state: EntityState[T], *, now: float | None = None) -> EntityState[T]:
    # previously loaded data stays visible while a refresh is running
    return replace(state, phase=LoadPhase.LOADING, error=None, updated_at=now if now is not None else time.time())


def resolve(state: EntityState[T], data: Any, *, now: float | None = None) -> EntityState[T]:
    return replace(state, phase=LoadPhase.LOADED, data=data, error=None, updated_at=now if now is not None else time.time())


def reject(state: EntityState[T], error: str, *, now: float | None = None) -> EntityState[T]:
    return replace(state, phase=LoadPhase.ERROR, error=error, updated_at=now if now is not None else time.time())


def reset(_: EntityState[T] | None = None) -> EntityState[T]:
    return EntityState()


__all__ = ["EntityState", "LoadPhase", "reject", "reset", "resolve", "start_loading"]
