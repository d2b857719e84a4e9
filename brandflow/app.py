from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

import httpx

from brandflow.application import (
    AnalysisController,
    AssetGenerationController,
    BrandController,
    PaymentConfirmationController,
    ReviewStepSequencer,
    TranscriptionController,
    WorkflowEngine,
    archetype_adjustment,
    feedback_analysis,
    summary_adjustment,
)
from brandflow.config import Settings, load_settings
from brandflow.infrastructure import (
    BrandsAPI,
    CoordinationService,
    FileTokenStore,
    HistoryNavigator,
    Navigator,
    RequestGateway,
    TokenStore,
    configure_token_store,
    get_token_store,
)
from brandflow.workers import PollRegistry

logger = logging.getLogger(__name__)


class BrandflowClient:
    """Everything one session needs, wired to a single gateway and cache."""

    def __init__(
        self,
        settings: Settings,
        gateway: RequestGateway,
        coordination: CoordinationService,
        navigator: Navigator,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.gateway = gateway
        self.coordination = coordination
        self.navigator = navigator
        self.api = BrandsAPI(gateway)
        self.engine = WorkflowEngine(self.api, navigator)
        self.polls = PollRegistry()
        self._sleep = sleep

    # ------------------------------------------------------------------
    # controller factories
    # ------------------------------------------------------------------
    def brand(self, brand_id: str) -> BrandController[Any]:
        return BrandController(self.api, brand_id, coordination=self.coordination)

    def review(self) -> ReviewStepSequencer:
        return ReviewStepSequencer(self.api, self.engine)

    def asset_generation(self, brand_id: str) -> AssetGenerationController:
        return AssetGenerationController(
            self.api, brand_id, registry=self.polls, sleep=self._sleep, coordination=self.coordination
        )

    def transcription(self, brand_id: str, answer_id: str) -> TranscriptionController:
        return TranscriptionController(
            self.api, brand_id, answer_id, registry=self.polls, sleep=self._sleep, coordination=self.coordination
        )

    def payment_confirmation(self, brand_id: str, *, redirect_delay: float = 2.0) -> PaymentConfirmationController:
        return PaymentConfirmationController(
            self.api,
            brand_id,
            self.engine,
            redirect_delay=redirect_delay,
            registry=self.polls,
            sleep=self._sleep,
            coordination=self.coordination,
        )

    def feedback_analysis(self, brand_id: str) -> AnalysisController:
        return feedback_analysis(self.api, brand_id, coordination=self.coordination)

    def summary_adjustment(self, brand_id: str) -> AnalysisController:
        return summary_adjustment(self.api, brand_id, coordination=self.coordination)

    def archetype_adjustment(self, brand_id: str) -> AnalysisController:
        return archetype_adjustment(self.api, brand_id, coordination=self.coordination)

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    async def __aenter__(self) -> "BrandflowClient":
        self.coordination.init()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        self.polls.cancel_all()
        self.coordination.close()
        await self.gateway.aclose()


def create_client(
    settings: Settings | None = None,
    *,
    http_client: httpx.AsyncClient | None = None,
    token_store: TokenStore | None = None,
    navigator: Navigator | None = None,
    coordination: CoordinationService | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> BrandflowClient:
    settings = settings or load_settings()

    if token_store is None and settings.token_file is not None:
        token_store = FileTokenStore(settings.token_file)
    if token_store is not None:
        configure_token_store(token_store)

    coordination = coordination or CoordinationService(
        ttl=settings.cache_ttl, sweep_interval=settings.cache_sweep_interval
    )
    navigator = navigator or HistoryNavigator()
    gateway = RequestGateway(
        settings.base_url,
        token_store=get_token_store(),
        navigator=navigator,
        deduplicator=coordination.deduplicator,
        timeout=settings.timeout,
        debug=settings.debug,
        http_client=http_client,
    )
    logger.debug("brandflow client configured for %s", settings.base_url)
    return BrandflowClient(settings, gateway, coordination, navigator, sleep=sleep)


__all__ = ["BrandflowClient", "create_client"]
