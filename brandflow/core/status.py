"""Workflow status enumeration and the status to route table."""
from __future__ import annotations

from enum import Enum
from typing import Mapping


class WorkflowStatus(str, Enum):
    NEW_BRAND = "new_brand"
    QUESTIONNAIRE = "questionnaire"
    SUMMARY = "summary"
    JTBD = "jtbd"
    CREATE_SURVEY = "create_survey"
    COLLECT_FEEDBACK = "collect_feedback"
    FEEDBACK_REVIEW_SUMMARY = "feedback_review_summary"
    FEEDBACK_REVIEW_JTBD = "feedback_review_jtbd"
    PRIMARY_PERSONA_SELECTION = "primary_persona_selection"
    FEEDBACK_REVIEW_ARCHETYPE = "feedback_review_archetype"
    PICK_NAME = "pick_name"
    CREATE_ASSETS = "create_assets"
    TESTIMONIAL = "testimonial"
    PAYMENT = "payment"
    COMPLETED = "completed"


# Route suffixes appended to /brands/{brand_id}.
STATUS_ROUTES: Mapping[WorkflowStatus, str] = {
    WorkflowStatus.NEW_BRAND: "/explanation",
    WorkflowStatus.QUESTIONNAIRE: "/questionnaire",
    WorkflowStatus.SUMMARY: "/summary",
    WorkflowStatus.JTBD: "/jtbd",
    WorkflowStatus.CREATE_SURVEY: "/survey",
    WorkflowStatus.COLLECT_FEEDBACK: "/collect-feedback",
    WorkflowStatus.FEEDBACK_REVIEW_SUMMARY: "/feedback-review/summary",
    WorkflowStatus.FEEDBACK_REVIEW_JTBD: "/feedback-review/jtbd",
    WorkflowStatus.PRIMARY_PERSONA_SELECTION: "/feedback-review/primary-persona",
    WorkflowStatus.FEEDBACK_REVIEW_ARCHETYPE: "/feedback-review/archetype",
    WorkflowStatus.PICK_NAME: "/pick-name",
    WorkflowStatus.CREATE_ASSETS: "/create-assets",
    WorkflowStatus.TESTIMONIAL: "/testimonial",
    WorkflowStatus.PAYMENT: "/payment",
    WorkflowStatus.COMPLETED: "/completed",
}

# Values emitted by the older, shorter enumeration. They have no canonical
# counterpart and are reported instead of being mapped onto a guessed route.
LEGACY_STATUSES: frozenset[str] = frozenset({"feedback_review", "complete"})

# Present in the canonical enumeration but missing from the older route table.
UNROUTED_IN_LEGACY_TABLE: frozenset[WorkflowStatus] = frozenset({WorkflowStatus.PRIMARY_PERSONA_SELECTION})

BRANDS_HOME = "/brands"
LOGIN_ROUTE = "/login"


def parse_status(value: object) -> WorkflowStatus | None:
    """Return the canonical status for ``value`` or ``None`` when unmapped."""

    if isinstance(value, WorkflowStatus):
        return value
    if not isinstance(value, str):
        return None
    try:
        return WorkflowStatus(value.strip())
    except ValueError:
        return None


def brand_home(brand_id: str | None = None) -> str:
    return f"{BRANDS_HOME}/{brand_id}" if brand_id else BRANDS_HOME


def route_for(status: object, brand_id: str | None = None) -> str:
    """Map a server-reported status to a route.

    Total and deterministic: any value outside the canonical enumeration
    (including legacy values and ``None``) lands on the brand home.
    """

    parsed = parse_status(status)
    if parsed is None or brand_id is None:
        return brand_home(brand_id)
    return f"{brand_home(brand_id)}{STATUS_ROUTES[parsed]}"


def is_legacy_status(value: object) -> bool:
    return isinstance(value, str) and value.strip() in LEGACY_STATUSES


__all__ = [
    "BRANDS_HOME",
    "LEGACY_STATUSES",
    "LOGIN_ROUTE",
    "STATUS_ROUTES",
    "UNROUTED_IN_LEGACY_TABLE",
    "WorkflowStatus",
    "brand_home",
    "is_legacy_status",
    "parse_status",
    "route_for",
]
