"""Error taxonomy shared by the gateway, the poller and the controllers."""
from __future__ import annotations

from typing import Any


class BrandflowError(RuntimeError):
    """Base class for every error surfaced by the client."""

    retryable: bool = True
    default_message = "An unexpected error occurred. Please try again."

    def __init__(self, message: str | None = None, *, correlation_id: str | None = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.correlation_id = correlation_id


class ConnectionFailure(BrandflowError):
    """Raised when the backend could not be reached at all."""

    default_message = (
        "Unable to connect to the server. Please check your internet connection or try again later."
    )

    def __init__(
        self,
        message: str | None = None,
        *,
        url: str | None = None,
        correlation_id: str | None = None,
    ) -> None:
        super().__init__(message, correlation_id=correlation_id)
        self.url = url


class HTTPStatusFailure(BrandflowError):
    """Raised for any non-2xx response that is not handled by the gateway."""

    def __init__(
        self,
        status_code: int,
        detail: Any = None,
        *,
        url: str | None = None,
        correlation_id: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.detail = detail
        self.url = url
        super().__init__(f"HTTP {status_code}: {detail}" if detail else f"HTTP {status_code}", correlation_id=correlation_id)


class AuthenticationError(BrandflowError):
    """Raised once the single refresh-and-replay attempt has failed."""

    retryable = False
    default_message = "Your session has expired. Please sign in again."


class JobNotReady(BrandflowError):
    """Transient state of a backend job (HTTP 402 or an explicit processing status)."""

    default_message = "The job is still processing."


class JobFailed(BrandflowError):
    """Terminal failure reported by a backend job."""


class PollTimeout(JobFailed):
    """Raised when a poll session exhausts its attempt bound."""

    def __init__(self, attempts: int, message: str | None = None, *, correlation_id: str | None = None) -> None:
        self.attempts = attempts
        super().__init__(message or f"No result after {attempts} attempts.", correlation_id=correlation_id)


class EmptyTranscription(JobFailed):
    """A transcription job completed without producing any text."""

    default_message = "No speech was recognised in the recording. Please try again or type your answer."


def _server_detail(detail: Any) -> str | None:
    if isinstance(detail, str) and detail.strip():
        return detail.strip()
    if isinstance(detail, dict):
        for key in ("message", "detail"):
            value = detail.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return None


def describe_error(exc: BaseException) -> str:
    """Map an exception to the message shown next to its retry action."""

    if isinstance(exc, ConnectionFailure):
        return exc.message
    if isinstance(exc, HTTPStatusFailure):
        if exc.status_code >= 500:
            return "The server is experiencing issues. Please try again later."
        server_message = _server_detail(exc.detail)
        if server_message:
            return server_message
        return {
            400: "Invalid request. Please check your input and try again.",
            401: "Invalid credentials. Please sign in again.",
            403: "Access denied. Please contact support if this persists.",
            404: "Not found. Please try again later.",
        }.get(exc.status_code, "An error occurred. Please try again.")
    if isinstance(exc, BrandflowError):
        return exc.message
    return BrandflowError.default_message


__all__ = [
    "AuthenticationError",
    "BrandflowError",
    "ConnectionFailure",
    "EmptyTranscription",
    "HTTPStatusFailure",
    "JobFailed",
    "JobNotReady",
    "PollTimeout",
    "describe_error",
]
