"""Single HTTP choke point for every call to the brand backend."""
from __future__ import annotations

import logging
import uuid
from typing import Any, Callable

import httpx
from pydantic import ValidationError

from brandflow.core.errors import AuthenticationError, ConnectionFailure, HTTPStatusFailure
from brandflow.core.keys import operation_key
from brandflow.core.schema import TokenPair
from brandflow.core.status import LOGIN_ROUTE

from .coordination import Deduplicator
from .navigation import HistoryNavigator, Navigator
from .tokens import TokenStore, get_token_store

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


def _new_correlation_id() -> str:
    return uuid.uuid4().hex


class RequestGateway:
    """Attach auth and correlation ids, refresh once on 401, translate failures."""

    def __init__(
        self,
        base_url: str,
        *,
        token_store: TokenStore | None = None,
        navigator: Navigator | None = None,
        deduplicator: Deduplicator | None = None,
        refresh_path: str = "/auth/token/refresh",
        login_route: str = LOGIN_ROUTE,
        timeout: float = 30.0,
        debug: bool = False,
        http_client: httpx.AsyncClient | None = None,
        correlation_id_factory: Callable[[], str] = _new_correlation_id,
    ) -> None:
        parsed = httpx.URL(base_url)
        if not parsed.scheme or not parsed.host:
            raise ValueError("base_url must include scheme and host")

        self._base_url = base_url.rstrip("/")
        self._tokens = token_store or get_token_store()
        self._navigator = navigator or HistoryNavigator()
        self._dedup = deduplicator or Deduplicator()
        self._refresh_path = refresh_path
        self._login_route = login_route
        self._debug = debug
        self._new_correlation_id = correlation_id_factory
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    @property
    def deduplicator(self) -> Deduplicator:
        return self._dedup

    @property
    def navigator(self) -> Navigator:
        return self._navigator

    def url_for(self, path: str) -> str:
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{self._base_url}{path}"

    def _headers(self, correlation_id: str, token: str | None) -> dict[str, str]:
        headers = {CORRELATION_HEADER: correlation_id}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    @staticmethod
    def _detail(response: httpx.Response) -> Any:
        try:
            payload = response.json()
        except ValueError:
            return response.text or None
        if isinstance(payload, dict) and "detail" in payload:
            return payload["detail"]
        return payload

    def _log_connection_error(self, exc: httpx.TransportError, url: str, correlation_id: str) -> None:
        hint = ""
        if isinstance(exc, httpx.ConnectError):
            hint = (
                " - check that the backend server is running and that BRANDFLOW_API_URL"
                f" points at it (currently {self._base_url})"
            )
        logger.error(
            "connection failure [%s] %s %s: %s%s",
            correlation_id,
            type(exc).__name__,
            url,
            exc,
            hint,
        )

    async def _send(
        self,
        method: str,
        url: str,
        correlation_id: str,
        *,
        token: str | None,
        **kwargs: Any,
    ) -> httpx.Response:
        if self._debug:
            logger.debug("request [%s] %s %s %s", correlation_id, method, url, kwargs.get("json"))
        try:
            response = await self._client.request(method, url, headers=self._headers(correlation_id, token), **kwargs)
        except httpx.TransportError as exc:
            self._log_connection_error(exc, url, correlation_id)
            raise ConnectionFailure(url=url, correlation_id=correlation_id) from exc
        if self._debug:
            logger.debug("response [%s] %s %s", correlation_id, response.status_code, response.text[:2000])
        return response

    def _force_logout(self, correlation_id: str) -> None:
        logger.warning("authentication could not be restored [%s]; clearing credentials", correlation_id)
        self._tokens.clear()
        self._navigator.navigate(self._login_route, replace=True)

    async def _refresh_access_token(self, correlation_id: str) -> str:
        refresh_token = self._tokens.refresh_token
        if not refresh_token:
            self._force_logout(correlation_id)
            raise AuthenticationError("No refresh token available.", correlation_id=correlation_id)

        async def refresh() -> str:
            url = self.url_for(self._refresh_path)
            try:
                response = await self._send(
                    "POST", url, correlation_id, token=None, json={"refresh_token": refresh_token}
                )
            except ConnectionFailure as exc:
                raise AuthenticationError(correlation_id=correlation_id) from exc
            if response.is_error:
                raise AuthenticationError(correlation_id=correlation_id)
            try:
                pair = TokenPair.model_validate(response.json())
            except (ValueError, ValidationError) as exc:
                raise AuthenticationError(correlation_id=correlation_id) from exc
            self._tokens.set_tokens(pair.access_token, pair.refresh_token)
            logger.info("access token refreshed [%s]", correlation_id)
            return pair.access_token

        try:
            # concurrent 401s share a single refresh round trip
            return await self._dedup.run(f"auth-refresh:{refresh_token}", refresh)
        except AuthenticationError:
            self._force_logout(correlation_id)
            raise

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    async def request(self, method: str, path: str, *, retry_auth: bool = True, **kwargs: Any) -> httpx.Response:
        """Send one call; raises :class:`BrandflowError` subclasses on failure."""

        method = method.upper()
        url = self.url_for(path)
        correlation_id = self._new_correlation_id()

        response = await self._send(method, url, correlation_id, token=self._tokens.access_token, **kwargs)

        if response.status_code == 401 and retry_auth:
            token = await self._refresh_access_token(correlation_id)
            response = await self._send(method, url, correlation_id, token=token, **kwargs)
            if response.status_code == 401:
                self._force_logout(correlation_id)
                raise AuthenticationError(correlation_id=correlation_id)

        if response.is_error:
            detail = self._detail(response)
            logger.warning("[%s] %s %s -> %s", correlation_id, method, url, response.status_code)
            raise HTTPStatusFailure(response.status_code, detail, url=url, correlation_id=correlation_id)
        return response

    async def request_json(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self.request(method, path, **kwargs)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def call(self, method: str, path: str, *, json: Any = None, dedupe: bool = False, **kwargs: Any) -> Any:
        if json is not None:
            kwargs["json"] = json
        if not dedupe:
            return await self.request_json(method, path, **kwargs)
        key = operation_key(method, path, json)
        return await self._dedup.run(key, lambda: self.request_json(method, path, **kwargs))

    async def get(self, path: str, *, params: dict[str, Any] | None = None, dedupe: bool = True) -> Any:
        kwargs: dict[str, Any] = {}
        if params:
            kwargs["params"] = params
        body = params if params else None
        if not dedupe:
            return await self.request_json("GET", path, **kwargs)
        return await self._dedup.run(
            operation_key("GET", path, body), lambda: self.request_json("GET", path, **kwargs)
        )

    async def post(self, path: str, json: Any = None, *, dedupe: bool = False, **kwargs: Any) -> Any:
        return await self.call("POST", path, json=json, dedupe=dedupe, **kwargs)

    async def put(self, path: str, json: Any = None, *, dedupe: bool = False, **kwargs: Any) -> Any:
        return await self.call("PUT", path, json=json, dedupe=dedupe, **kwargs)

    async def patch(self, path: str, json: Any = None, *, dedupe: bool = False, **kwargs: Any) -> Any:
        return await self.call("PATCH", path, json=json, dedupe=dedupe, **kwargs)

    async def delete(self, path: str, *, dedupe: bool = False) -> Any:
        return await self.call("DELETE", path, dedupe=dedupe)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "RequestGateway":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


__all__ = ["CORRELATION_HEADER", "RequestGateway"]
