"""Controller base class and cached analysis controllers.

A controller is what a view does while it is mounted: it loads data, owns
the finite-state value the UI renders and tears everything down on
``unmount``. Every continuation that would change state is gated by the
controller's :class:`~brandflow.core.cancellation.CancellationToken`, so a
response arriving after unmount is dropped instead of applied.
"""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Generic, TypeVar

from brandflow.core import state as transitions
from brandflow.core.cancellation import CancellationToken, Cancelled
from brandflow.core.errors import BrandflowError, describe_error
from brandflow.core.keys import cache_key, entity_prefix
from brandflow.core.schema import Brand
from brandflow.core.state import EntityState
from brandflow.infrastructure.brands_api import BrandsAPI
from brandflow.infrastructure.coordination import CoordinationService, get_coordination_service

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[EntityState[Any]], None]


class BrandController(Generic[T]):
    def __init__(
        self,
        api: BrandsAPI,
        brand_id: str,
        *,
        coordination: CoordinationService | None = None,
    ) -> None:
        self.api = api
        self.brand_id = brand_id
        self.coordination = coordination or get_coordination_service()
        self.token = CancellationToken()
        self.state: EntityState[T] = EntityState()
        self.brand: Brand | None = None
        self._listeners: list[Listener] = []
        self._mounted = False

    # ------------------------------------------------------------------
    # state
    # ------------------------------------------------------------------
    @property
    def mounted(self) -> bool:
        return self._mounted

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, new_state: EntityState[T]) -> bool:
        if self.token.cancelled:
            return False
        self.state = new_state
        for listener in list(self._listeners):
            listener(new_state)
        return True

    def _fail(self, exc: BaseException) -> None:
        message = describe_error(exc)
        logger.warning("%s for brand %s failed: %s", type(self).__name__, self.brand_id, message)
        self._set_state(transitions.reject(self.state, message))

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    async def mount(self) -> None:
        if self._mounted:
            return
        if self.token.cancelled:
            # remount after unmount gets a fresh liveness token
            self.token = CancellationToken()
        self._mounted = True
        await self.on_mount()

    async def on_mount(self) -> None:
        self._set_state(transitions.start_loading(self.state))
        try:
            brand = await self.refresh()
        except BrandflowError as exc:
            self._fail(exc)
            return
        if brand is not None:
            self._set_state(transitions.resolve(self.state, brand))

    async def retry(self) -> None:
        await self.on_mount()

    def unmount(self) -> None:
        """Idempotent teardown of every task and poll session of this controller."""

        self._mounted = False
        self.token.cancel()

    async def refresh(self) -> Brand | None:
        """Re-fetch the full brand; the recovery path for inconsistent local state."""

        try:
            brand = await self.token.guard(self.api.get_brand(self.brand_id, fresh=True))
        except Cancelled:
            return None
        self.brand = brand
        return brand

    async def mutate(self, operation: Callable[[], Awaitable[Any]]) -> Any:
        """Run a mutation, then drop cached analyses and re-fetch the brand.

        Mutation errors are raised to the caller so they surface at the
        action that caused them; they are never cached.
        """

        result = await operation()
        self.coordination.cache.invalidate_prefix(entity_prefix(self.brand_id))
        await self.refresh()
        return result


class AnalysisController(BrandController[Any]):
    """Load one expensive, cached analysis of a brand."""

    def __init__(
        self,
        api: BrandsAPI,
        brand_id: str,
        kind: str,
        fetcher: Callable[[BrandsAPI, str], Awaitable[Any]],
        *,
        coordination: CoordinationService | None = None,
    ) -> None:
        super().__init__(api, brand_id, coordination=coordination)
        self.kind = kind
        self._fetcher = fetcher

    @property
    def key(self) -> str:
        return cache_key(self.brand_id, self.kind)

    async def on_mount(self) -> None:
        await self.load()

    async def load(self) -> Any:
        self._set_state(transitions.start_loading(self.state))
        try:
            data = await self.token.guard(
                self.coordination.cache.fetch(self.key, lambda: self._fetcher(self.api, self.brand_id))
            )
        except Cancelled:
            return None
        except BrandflowError as exc:
            self._fail(exc)
            return None
        self._set_state(transitions.resolve(self.state, data))
        return data

    async def reload(self) -> Any:
        """Discard the cached result and ask the server for a fresh analysis."""

        self.coordination.cache.invalidate(self.key)
        return await self.load()

    retry = reload


FEEDBACK_ANALYSIS = "feedback"
SUMMARY_ADJUSTMENT = "summary-adjustment"
ARCHETYPE_ADJUSTMENT = "archetype-adjustment"


def feedback_analysis(api: BrandsAPI, brand_id: str, **kwargs: Any) -> AnalysisController:
    return AnalysisController(api, brand_id, FEEDBACK_ANALYSIS, lambda a, b: a.analyze_feedback(b), **kwargs)


def summary_adjustment(api: BrandsAPI, brand_id: str, **kwargs: Any) -> AnalysisController:
    return AnalysisController(api, brand_id, SUMMARY_ADJUSTMENT, lambda a, b: a.adjust_summary(b), **kwargs)


def archetype_adjustment(api: BrandsAPI, brand_id: str, **kwargs: Any) -> AnalysisController:
    return AnalysisController(
        api, brand_id, ARCHETYPE_ADJUSTMENT, lambda a, b: a.suggest_archetype_adjustment(b), **kwargs
    )


__all__ = [
    "ARCHETYPE_ADJUSTMENT",
    "AnalysisController",
    "BrandController",
    "FEEDBACK_ANALYSIS",
    "SUMMARY_ADJUSTMENT",
    "archetype_adjustment",
    "feedback_analysis",
    "summary_adjustment",
]
