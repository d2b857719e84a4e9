"""Probe functions and schedules for the backend jobs the client waits on."""
from __future__ import annotations

import logging
from typing import Awaitable, Callable

from brandflow.core.errors import ConnectionFailure, EmptyTranscription, HTTPStatusFailure, JobFailed, JobNotReady
from brandflow.core.schema import AssetList, Brand
from brandflow.infrastructure.brands_api import BrandsAPI

from .polling import BackoffPolicy, ProbeResult

logger = logging.getLogger(__name__)

ASSET_GENERATION = "asset_generation"
AUDIO_TRANSCRIPTION = "audio_transcription"
PAYMENT_CONFIRMATION = "payment_confirmation"

# 3s after the trigger, 5s thereafter, 10s after a transport error.
ASSET_POLICY = BackoffPolicy(
    interval=5.0,
    first_interval=3.0,
    error_interval=10.0,
    max_attempts=120,
    retry_on=(ConnectionFailure,),
)

TRANSCRIPTION_POLICY = BackoffPolicy(interval=2.0, max_attempts=90)

# 20 x 10s, roughly a 200s ceiling.
PAYMENT_POLICY = BackoffPolicy(interval=10.0, max_attempts=20, retry_on=(ConnectionFailure,))

TRANSCRIPTION_PENDING = frozenset({"processing", "queued", "pending"})

PAYMENT_NO_SESSION = "No payment session found. Please complete the payment flow first."
PAYMENT_NOT_READY = "Brand is not ready for payment completion."
PAYMENT_TIMEOUT = "Failed to verify payment. Please contact support if you completed payment."
TRANSCRIPTION_FAILED = "Failed to process audio. Please try again or type your answer."


def asset_generation_probe(api: BrandsAPI, brand_id: str) -> Callable[[], Awaitable[ProbeResult[AssetList]]]:
    async def probe() -> ProbeResult[AssetList]:
        try:
            assets = await api.list_assets(brand_id)
        except HTTPStatusFailure as exc:
            # 5xx is transient while assets render; 4xx stays terminal
            if exc.status_code >= 500:
                logger.info("asset list for %s returned %d, retrying", brand_id, exc.status_code)
                return ProbeResult.not_ready(error=exc)
            raise
        if assets.assets:
            return ProbeResult.ready(assets)
        return ProbeResult.not_ready(assets)

    return probe


def transcription_probe(
    api: BrandsAPI,
    brand_id: str,
    answer_id: str,
    processing_id: str,
) -> Callable[[], Awaitable[ProbeResult[str]]]:
    async def probe() -> ProbeResult[str]:
        status = await api.get_audio_status(brand_id, answer_id, processing_id)
        value = (status.status or "").strip().lower()
        if value == "completed":
            text = (status.text or "").strip()
            if text:
                return ProbeResult.ready(text)
            return ProbeResult.failed(EmptyTranscription())
        if value in TRANSCRIPTION_PENDING:
            return ProbeResult.not_ready()
        if value == "failed":
            logger.warning("transcription %s failed: %s", processing_id, status.error)
            return ProbeResult.failed(TRANSCRIPTION_FAILED)
        # unknown states fail closed instead of polling forever
        logger.warning("transcription %s reported unrecognised status %r", processing_id, status.status)
        return ProbeResult.failed(JobFailed(f"Unrecognised processing status {status.status!r}."))

    return probe


def payment_probe(api: BrandsAPI, brand_id: str) -> Callable[[], Awaitable[ProbeResult[Brand]]]:
    async def probe() -> ProbeResult[Brand]:
        try:
            brand = await api.complete_payment_flow(brand_id)
        except HTTPStatusFailure as exc:
            if exc.status_code == 402:
                return ProbeResult.not_ready(error=JobNotReady(correlation_id=exc.correlation_id))
            if exc.status_code == 403:
                return ProbeResult.failed(JobFailed(PAYMENT_NO_SESSION, correlation_id=exc.correlation_id))
            if exc.status_code == 400:
                detail = exc.detail if isinstance(exc.detail, str) and exc.detail else PAYMENT_NOT_READY
                return ProbeResult.failed(JobFailed(detail, correlation_id=exc.correlation_id))
            raise
        if brand.is_paid:
            return ProbeResult.ready(brand)
        return ProbeResult.not_ready(brand)

    return probe


__all__ = [
    "ASSET_GENERATION",
    "ASSET_POLICY",
    "AUDIO_TRANSCRIPTION",
    "PAYMENT_CONFIRMATION",
    "PAYMENT_POLICY",
    "TRANSCRIPTION_POLICY",
    "asset_generation_probe",
    "payment_probe",
    "transcription_probe",
]
