"""Background job polling."""

from .jobs import (
    ASSET_GENERATION,
    ASSET_POLICY,
    AUDIO_TRANSCRIPTION,
    PAYMENT_CONFIRMATION,
    PAYMENT_POLICY,
    TRANSCRIPTION_POLICY,
    asset_generation_probe,
    payment_probe,
    transcription_probe,
)
from .polling import (
    BackoffPolicy,
    JobPoller,
    PollOutcome,
    PollRegistry,
    PollSession,
    ProbeResult,
    ProbeState,
    SessionStatus,
)

__all__ = [
    "ASSET_GENERATION",
    "ASSET_POLICY",
    "AUDIO_TRANSCRIPTION",
    "BackoffPolicy",
    "JobPoller",
    "PAYMENT_CONFIRMATION",
    "PAYMENT_POLICY",
    "PollOutcome",
    "PollRegistry",
    "PollSession",
    "ProbeResult",
    "ProbeState",
    "SessionStatus",
    "TRANSCRIPTION_POLICY",
    "asset_generation_probe",
    "payment_probe",
    "transcription_probe",
]
