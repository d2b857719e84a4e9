"""Controllers that trigger backend jobs and wait for them with a poller."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

from brandflow.core import state as transitions
from brandflow.core.cancellation import CancellationToken, Cancelled
from brandflow.core.errors import BrandflowError, PollTimeout
from brandflow.core.schema import AssetList, Brand
from brandflow.core.status import WorkflowStatus
from brandflow.infrastructure.brands_api import BrandsAPI
from brandflow.infrastructure.coordination import CoordinationService
from brandflow.workers.jobs import (
    ASSET_GENERATION,
    ASSET_POLICY,
    AUDIO_TRANSCRIPTION,
    PAYMENT_CONFIRMATION,
    PAYMENT_POLICY,
    PAYMENT_TIMEOUT,
    TRANSCRIPTION_FAILED,
    TRANSCRIPTION_POLICY,
    asset_generation_probe,
    payment_probe,
    transcription_probe,
)
from brandflow.workers.polling import BackoffPolicy, JobPoller, PollOutcome, PollRegistry, ProbeResult

from .controllers import BrandController
from .workflow import WorkflowEngine

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[Any]]


class JobController(BrandController[T]):
    kind = "job"
    timeout_message: str | None = None

    def __init__(
        self,
        api: BrandsAPI,
        brand_id: str,
        *,
        policy: BackoffPolicy,
        registry: PollRegistry | None = None,
        sleep: Sleep = asyncio.sleep,
        coordination: CoordinationService | None = None,
    ) -> None:
        super().__init__(api, brand_id, coordination=coordination)
        self.policy = policy
        self.registry = registry or PollRegistry()
        self._sleep = sleep
        self._hooked_token: CancellationToken | None = None

    @property
    def entity_key(self) -> str:
        return self.brand_id

    @property
    def poller(self) -> JobPoller[Any] | None:
        return self.registry.get(self.entity_key, self.kind)

    def _start_poll(self, probe: Callable[[], Awaitable[ProbeResult[Any]]]) -> JobPoller[Any]:
        entity_key = self.entity_key

        def factory() -> JobPoller[Any]:
            return JobPoller(
                probe,
                self.policy,
                on_success=self._on_success,
                on_failure=self._on_failure,
                name=f"{self.kind}:{entity_key}",
                sleep=self._sleep,
            )

        poller = self.registry.start(entity_key, self.kind, factory)
        if self._hooked_token is not self.token:
            self.token.on_cancel(self.cancel)
            self._hooked_token = self.token
        return poller

    async def _on_success(self, value: Any) -> None:
        self._set_state(transitions.resolve(self.state, value))

    async def _on_failure(self, error: BaseException) -> None:
        if isinstance(error, PollTimeout) and self.timeout_message:
            error = PollTimeout(error.attempts, self.timeout_message)
        self._fail(error)

    async def wait(self) -> PollOutcome[Any] | None:
        poller = self.registry.find(self.entity_key, self.kind)
        if poller is None:
            return None
        return await poller.wait()

    def cancel(self) -> None:
        self.registry.cancel(self.entity_key, self.kind)


class AssetGenerationController(JobController[AssetList]):
    """Trigger asset production and poll the asset list until it is non-empty."""

    kind = ASSET_GENERATION

    def __init__(self, api: BrandsAPI, brand_id: str, *, policy: BackoffPolicy = ASSET_POLICY, **kwargs: Any) -> None:
        super().__init__(api, brand_id, policy=policy, **kwargs)

    async def on_mount(self) -> None:
        await self.generate()

    async def generate(self) -> JobPoller[Any] | None:
        existing = self.poller
        if existing is not None:
            return existing

        self._set_state(transitions.start_loading(self.state))
        try:
            response = await self.token.guard(self.api.produce_assets(self.brand_id))
        except Cancelled:
            return None
        except BrandflowError as exc:
            self._fail(exc)
            return None

        if response.assets:
            self._set_state(transitions.resolve(self.state, response))
            return None
        return self._start_poll(asset_generation_probe(self.api, self.brand_id))

    retry = generate


class TranscriptionController(JobController[str]):
    """Upload a recording and wait for its transcription."""

    kind = AUDIO_TRANSCRIPTION
    timeout_message = TRANSCRIPTION_FAILED

    def __init__(
        self,
        api: BrandsAPI,
        brand_id: str,
        answer_id: str,
        *,
        policy: BackoffPolicy = TRANSCRIPTION_POLICY,
        **kwargs: Any,
    ) -> None:
        super().__init__(api, brand_id, policy=policy, **kwargs)
        self.answer_id = answer_id
        self.processing_id: str | None = None

    @property
    def entity_key(self) -> str:
        return f"{self.brand_id}/{self.answer_id}"

    async def on_mount(self) -> None:
        return None

    async def retry(self) -> None:
        # a failed recording is replaced by a new upload, not re-polled
        self.cancel()
        self.processing_id = None
        self._set_state(transitions.reset(self.state))

    async def submit(self, filename: str, content: bytes, content_type: str = "audio/webm") -> JobPoller[Any] | None:
        self._set_state(transitions.start_loading(self.state))
        try:
            submission = await self.token.guard(
                self.api.submit_audio(self.brand_id, self.answer_id, filename, content, content_type)
            )
        except Cancelled:
            return None
        except BrandflowError as exc:
            self._fail(exc)
            return None
        return self.watch(submission.processing_id)

    def watch(self, processing_id: str) -> JobPoller[Any]:
        """Poll an already started transcription job."""

        if self.token.cancelled:
            raise Cancelled()
        self.processing_id = processing_id
        if not self.state.is_loading:
            self._set_state(transitions.start_loading(self.state))
        return self._start_poll(transcription_probe(self.api, self.brand_id, self.answer_id, processing_id))


class PaymentConfirmationController(JobController[Brand]):
    """Confirm a completed checkout and route on the status the server reports."""

    kind = PAYMENT_CONFIRMATION
    timeout_message = PAYMENT_TIMEOUT

    def __init__(
        self,
        api: BrandsAPI,
        brand_id: str,
        engine: WorkflowEngine,
        *,
        policy: BackoffPolicy = PAYMENT_POLICY,
        redirect_delay: float = 2.0,
        **kwargs: Any,
    ) -> None:
        super().__init__(api, brand_id, policy=policy, **kwargs)
        self.engine = engine
        self.redirect_delay = redirect_delay

    async def on_mount(self) -> None:
        await self.confirm()

    async def confirm(self) -> JobPoller[Any] | None:
        existing = self.poller
        if existing is not None:
            return existing

        self._set_state(transitions.start_loading(self.state))
        try:
            await self.refresh()
        except BrandflowError as exc:
            self._fail(exc)
            return None
        if self.token.cancelled:
            return None
        return self._start_poll(payment_probe(self.api, self.brand_id))

    retry = confirm

    async def _on_success(self, value: Any) -> None:
        try:
            brand = await self.token.guard(self.api.get_brand(self.brand_id, fresh=True))
        except Cancelled:
            return
        except BrandflowError as exc:
            self._fail(exc)
            return
        self.brand = brand
        if not self._set_state(transitions.resolve(self.state, brand)):
            return
        if self.redirect_delay:
            await self._sleep(self.redirect_delay)
        if self.token.alive:
            self.engine.navigate_to_status(self.brand_id, brand.current_status)

    def return_to_payment(self) -> str:
        return self.engine.navigate_to_status(self.brand_id, WorkflowStatus.PAYMENT)


__all__ = [
    "AssetGenerationController",
    "JobController",
    "PaymentConfirmationController",
    "TranscriptionController",
]
