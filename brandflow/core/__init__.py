"""Pure building blocks: status table, errors, state values and keys."""

from .errors import (
    AuthenticationError,
    BrandflowError,
    ConnectionFailure,
    EmptyTranscription,
    HTTPStatusFailure,
    JobFailed,
    JobNotReady,
    PollTimeout,
    describe_error,
)
from .status import WorkflowStatus, route_for

__all__ = [
    "AuthenticationError",
    "BrandflowError",
    "ConnectionFailure",
    "EmptyTranscription",
    "HTTPStatusFailure",
    "JobFailed",
    "JobNotReady",
    "PollTimeout",
    "WorkflowStatus",
    "describe_error",
    "route_for",
]
