"""Application services: workflow progression, review steps and controllers."""

from .controllers import (
    ARCHETYPE_ADJUSTMENT,
    FEEDBACK_ANALYSIS,
    SUMMARY_ADJUSTMENT,
    AnalysisController,
    BrandController,
    archetype_adjustment,
    feedback_analysis,
    summary_adjustment,
)
from .jobs import AssetGenerationController, JobController, PaymentConfirmationController, TranscriptionController
from .review import DEFAULT_REVIEW_STEPS, ReviewStep, ReviewStepSequencer
from .workflow import WorkflowEngine

__all__ = [
    "ARCHETYPE_ADJUSTMENT",
    "AnalysisController",
    "AssetGenerationController",
    "BrandController",
    "DEFAULT_REVIEW_STEPS",
    "FEEDBACK_ANALYSIS",
    "JobController",
    "PaymentConfirmationController",
    "ReviewStep",
    "ReviewStepSequencer",
    "SUMMARY_ADJUSTMENT",
    "TranscriptionController",
    "WorkflowEngine",
    "archetype_adjustment",
    "feedback_analysis",
    "summary_adjustment",
]
