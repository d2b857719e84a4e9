"""Navigation hook consumed by the workflow layer."""
from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class Navigator(Protocol):
    """Contract for whatever renders the routes (router, CLI, test double)."""

    def navigate(self, path: str, *, replace: bool = False) -> None:
        """Move the user to ``path``."""


class HistoryNavigator:
    """Records visited routes; the default when no UI router is attached."""

    def __init__(self, initial: str | None = None) -> None:
        self.history: list[str] = [initial] if initial else []

    @property
    def current(self) -> str | None:
        return self.history[-1] if self.history else None

    def navigate(self, path: str, *, replace: bool = False) -> None:
        logger.debug("navigate %s%s", path, " (replace)" if replace else "")
        if replace and self.history:
            self.history[-1] = path
        else:
            self.history.append(path)


__all__ = ["HistoryNavigator", "Navigator"]
