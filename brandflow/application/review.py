"""Feedback review: a bounded linear sub-workflow driven by server status."""
from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Sequence

from brandflow.core.schema import Brand
from brandflow.core.status import WorkflowStatus, brand_home, parse_status
from brandflow.infrastructure.brands_api import BrandsAPI

from .workflow import WorkflowEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ReviewStep:
    id: str
    bound_status: WorkflowStatus
    title: str = ""
    handler: Callable[[Brand], Any] | None = None


DEFAULT_REVIEW_STEPS: tuple[ReviewStep, ...] = (
    ReviewStep("summary", WorkflowStatus.FEEDBACK_REVIEW_SUMMARY, "Review Brand Summary"),
    ReviewStep("jtbd", WorkflowStatus.FEEDBACK_REVIEW_JTBD, "Review Jobs-to-be-Done"),
    ReviewStep("primary-persona", WorkflowStatus.PRIMARY_PERSONA_SELECTION, "Select Primary Persona"),
    ReviewStep("archetype", WorkflowStatus.FEEDBACK_REVIEW_ARCHETYPE, "Review Brand Archetype"),
)


class ReviewStepSequencer:
    """Position is always re-derived from the server status, never incremented."""

    def __init__(
        self,
        api: BrandsAPI,
        engine: WorkflowEngine,
        steps: Sequence[ReviewStep] = DEFAULT_REVIEW_STEPS,
    ) -> None:
        if not steps:
            raise ValueError("at least one review step is required")
        self._api = api
        self._engine = engine
        self.steps: tuple[ReviewStep, ...] = tuple(steps)
        self.brand_id: str | None = None
        self.brand: Brand | None = None
        self.index = 0

    # ------------------------------------------------------------------
    # position
    # ------------------------------------------------------------------
    def index_for(self, status: object) -> int | None:
        parsed = parse_status(status)
        for position, step in enumerate(self.steps):
            if step.bound_status is parsed:
                return position
        return None

    @property
    def past_end(self) -> bool:
        return self.index >= len(self.steps)

    @property
    def current_step(self) -> ReviewStep | None:
        return None if self.past_end else self.steps[self.index]

    def route_for_current(self) -> str:
        step = self.current_step
        if self.brand_id is None or step is None:
            return brand_home(self.brand_id)
        return f"{brand_home(self.brand_id)}/feedback-review/{step.id}"

    def _require_brand_id(self) -> str:
        if self.brand_id is None:
            raise RuntimeError("sequencer has not been activated")
        return self.brand_id

    # ------------------------------------------------------------------
    # transitions
    # ------------------------------------------------------------------
    async def activate(self, brand_id: str) -> ReviewStep | None:
        self.brand_id = brand_id
        self.brand = await self._api.get_brand(brand_id, fresh=True)
        position = self.index_for(self.brand.current_status)
        if position is None:
            logger.info(
                "brand %s status %r is not a review step; starting at the first step",
                brand_id,
                self.brand.current_status,
            )
            position = 0
        self.index = position
        return self.current_step

    async def complete_step(self) -> Brand:
        brand_id = self._require_brand_id()

        if self.index >= len(self.steps) - 1:
            # last step (or beyond): hand over to the main workflow
            brand = await self._engine.advance(brand_id)
            self.brand = brand
            position = self.index_for(brand.current_status)
            self.index = len(self.steps) if position is None else position
            return brand

        target = self.steps[self.index + 1].bound_status
        await self._api.update_status(brand_id, target)
        brand = await self._api.get_brand(brand_id, fresh=True)
        self.brand = brand

        position = self.index_for(brand.current_status)
        if position is None:
            logger.info("brand %s left the review flow at %r", brand_id, brand.current_status)
            self.index = len(self.steps)
        else:
            if brand.current_status != target.value:
                logger.info("brand %s moved to %r instead of %r", brand_id, brand.current_status, target.value)
            self.index = position
        self._engine.navigate_to_status(brand_id, brand.current_status)
        return brand

    async def run_current(self) -> Brand:
        """Run the current step's handler, then complete the step."""

        step = self.current_step
        if step is not None and step.handler is not None and self.brand is not None:
            result = step.handler(self.brand)
            if inspect.isawaitable(result):
                await result
        return await self.complete_step()


__all__ = ["DEFAULT_REVIEW_STEPS", "ReviewStep", "ReviewStepSequencer"]
