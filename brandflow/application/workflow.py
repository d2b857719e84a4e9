"""Server-authoritative workflow progression."""
from __future__ import annotations

import logging
from typing import Any, Mapping

from brandflow.core.schema import Brand, ProgressResponse
from brandflow.core.status import (
    UNROUTED_IN_LEGACY_TABLE,
    WorkflowStatus,
    brand_home,
    is_legacy_status,
    parse_status,
    route_for,
)
from brandflow.infrastructure.brands_api import BrandsAPI
from brandflow.infrastructure.navigation import Navigator

logger = logging.getLogger(__name__)


class WorkflowEngine:
    """Advance the workflow on the server and navigate to whatever it reports.

    The engine never derives a next status locally: after every progression
    call it re-reads the brand and routes on ``current_status`` as returned,
    even when the server skipped, branched or held the status.
    """

    def __init__(self, api: BrandsAPI, navigator: Navigator) -> None:
        self._api = api
        self.navigator = navigator

    @staticmethod
    def route_for(status: object, brand_id: str | None = None) -> str:
        return route_for(status, brand_id)

    @staticmethod
    def check_status(status: object) -> WorkflowStatus | None:
        parsed = parse_status(status)
        if parsed is None:
            if is_legacy_status(status):
                logger.warning("server reported legacy status %r with no canonical route", status)
            else:
                logger.warning("server reported unmapped status %r", status)
        elif parsed in UNROUTED_IN_LEGACY_TABLE:
            logger.debug("status %s is missing from the legacy route table", parsed.value)
        return parsed

    def navigate_to_status(self, brand_id: str, status: object, *, replace: bool = False) -> str:
        self.check_status(status)
        path = route_for(status, brand_id)
        self.navigator.navigate(path, replace=replace)
        return path

    def navigate_after_progress(self, brand_id: str, update: Brand | ProgressResponse | Mapping[str, Any]) -> str:
        """Navigate from either a ``{"status": ...}`` payload or a brand."""

        if isinstance(update, Brand):
            status = update.current_status
        elif isinstance(update, ProgressResponse):
            status = update.reported_status
        else:
            status = update.get("status") or update.get("current_status")
        if not status:
            logger.error("no status found in progression payload for brand %s: %r", brand_id, update)
            path = brand_home(brand_id)
            self.navigator.navigate(path)
            return path
        return self.navigate_to_status(brand_id, status)

    async def sync(self, brand_id: str, *, replace: bool = True) -> Brand:
        """Fetch the brand and move the user to the route of its current status."""

        brand = await self._api.get_brand(brand_id, fresh=True)
        self.navigate_to_status(brand_id, brand.current_status, replace=replace)
        return brand

    async def advance(self, brand_id: str, *, expected: WorkflowStatus | str | None = None) -> Brand:
        """Progress once on the server, re-fetch, and route on the returned status."""

        progress = await self._api.progress_status(brand_id)
        brand = await self._api.get_brand(brand_id, fresh=True)

        reported = progress.reported_status
        if reported and reported != brand.current_status:
            logger.info(
                "progress for %s acknowledged %r but brand now reports %r; following the brand",
                brand_id,
                reported,
                brand.current_status,
            )
        expected_value = expected.value if isinstance(expected, WorkflowStatus) else expected
        if expected_value and expected_value != brand.current_status:
            logger.info("brand %s moved to %r instead of expected %r", brand_id, brand.current_status, expected_value)

        self.navigate_to_status(brand_id, brand.current_status)
        return brand


__all__ = ["WorkflowEngine"]
