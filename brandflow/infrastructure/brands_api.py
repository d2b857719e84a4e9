"""Typed wrappers around the brand backend endpoints."""
from __future__ import annotations

from typing import Any

from brandflow.core.schema import (
    AssetList,
    AudioProcessingStatus,
    AudioSubmission,
    Brand,
    ProgressResponse,
)
from brandflow.core.status import WorkflowStatus

from .gateway import RequestGateway


class BrandsAPI:
    """Endpoint catalogue; every call goes through the shared gateway."""

    def __init__(self, gateway: RequestGateway) -> None:
        self._gateway = gateway

    @property
    def gateway(self) -> RequestGateway:
        return self._gateway

    # ------------------------------------------------------------------
    # entity
    # ------------------------------------------------------------------
    async def get_brand(self, brand_id: str, *, fresh: bool = False) -> Brand:
        """Fetch the full brand.

        ``fresh`` bypasses the in-flight registry so that a read issued after
        a mutation never joins a request that started before it.
        """

        payload = await self._gateway.get(f"/brands/{brand_id}", dedupe=not fresh)
        return Brand.model_validate(payload)

    async def patch_brand(self, brand_id: str, updates: dict[str, Any]) -> Any:
        return await self._gateway.patch(f"/brands/{brand_id}", updates)

    # ------------------------------------------------------------------
    # workflow
    # ------------------------------------------------------------------
    async def progress_status(self, brand_id: str) -> ProgressResponse:
        payload = await self._gateway.post(f"/brands/{brand_id}/progress", dedupe=True)
        return ProgressResponse.model_validate(payload or {})

    async def update_status(self, brand_id: str, status: WorkflowStatus | str) -> Any:
        value = status.value if isinstance(status, WorkflowStatus) else status
        return await self._gateway.put(f"/brands/{brand_id}/status", {"status": value}, dedupe=True)

    # ------------------------------------------------------------------
    # jobs
    # ------------------------------------------------------------------
    async def produce_assets(self, brand_id: str) -> AssetList:
        payload = await self._gateway.post(f"/brands/{brand_id}/produce-assets/", dedupe=True)
        return AssetList.model_validate(payload or {})

    async def list_assets(self, brand_id: str) -> AssetList:
        payload = await self._gateway.get(f"/brands/{brand_id}/assets")
        return AssetList.model_validate(payload or {})

    async def submit_audio(
        self,
        brand_id: str,
        answer_id: str,
        filename: str,
        content: bytes,
        content_type: str = "audio/webm",
    ) -> AudioSubmission:
        payload = await self._gateway.request_json(
            "POST",
            f"/brands/{brand_id}/answers/{answer_id}/audio-batch",
            files={"audio_file": (filename, content, content_type)},
        )
        return AudioSubmission.model_validate(payload)

    async def get_audio_status(self, brand_id: str, answer_id: str, processing_id: str) -> AudioProcessingStatus:
        payload = await self._gateway.get(f"/brands/{brand_id}/answers/{answer_id}/audio/{processing_id}")
        return AudioProcessingStatus.model_validate(payload)

    async def complete_payment_flow(self, brand_id: str) -> Brand:
        payload = await self._gateway.post(f"/brands/{brand_id}/payment/complete", dedupe=True)
        return Brand.model_validate(payload)

    # ------------------------------------------------------------------
    # analyses (expensive, cached by the callers)
    # ------------------------------------------------------------------
    async def analyze_feedback(self, brand_id: str) -> Any:
        return await self._gateway.post(f"/brands/{brand_id}/feedback", dedupe=True)

    async def adjust_summary(self, brand_id: str) -> Any:
        return await self._gateway.post(f"/brands/{brand_id}/adjust/summary", dedupe=True)

    async def suggest_archetype_adjustment(self, brand_id: str) -> Any:
        return await self._gateway.post(f"/brands/{brand_id}/adjust/archetype", dedupe=True)


__all__ = ["BrandsAPI"]
