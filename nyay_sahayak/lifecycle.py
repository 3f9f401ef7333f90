"""Application lifecycle vocabulary.

Status values, the forward-only transition table and the per-scheme
application id format. Both the store and the review workflow validate
against this module so the state machine lives in one place.
"""

from __future__ import annotations

import re
from enum import Enum


class ApplicationType(str, Enum):
    ATROCITY_RELIEF = "ATROCITY_RELIEF"
    INTERCASTE_MARRIAGE = "INTERCASTE_MARRIAGE"


class ApplicationStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    PAYMENT_INITIATED = "PAYMENT_INITIATED"
    COMPLETED = "COMPLETED"


class DocumentVerificationStatus(str, Enum):
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


class DetailsVerificationStatus(str, Enum):
    """Verification state of the FIR / marriage registration payload."""

    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    INVALID = "INVALID"


class CasteCategory(str, Enum):
    GENERAL = "GENERAL"
    OBC = "OBC"
    SC = "SC"
    ST = "ST"


class ReviewAction(str, Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"


ALLOWED_TRANSITIONS: dict[ApplicationStatus, frozenset[ApplicationStatus]] = {
    ApplicationStatus.DRAFT: frozenset({ApplicationStatus.SUBMITTED}),
    ApplicationStatus.SUBMITTED: frozenset(
        {ApplicationStatus.UNDER_REVIEW, ApplicationStatus.APPROVED, ApplicationStatus.REJECTED}
    ),
    ApplicationStatus.UNDER_REVIEW: frozenset({ApplicationStatus.APPROVED, ApplicationStatus.REJECTED}),
    ApplicationStatus.APPROVED: frozenset({ApplicationStatus.PAYMENT_INITIATED}),
    ApplicationStatus.PAYMENT_INITIATED: frozenset({ApplicationStatus.COMPLETED}),
    ApplicationStatus.REJECTED: frozenset(),
    ApplicationStatus.COMPLETED: frozenset(),
}

TERMINAL_STATUSES = frozenset({ApplicationStatus.REJECTED, ApplicationStatus.COMPLETED})

# Officer queues: awaiting a decision.
PENDING_STATUSES = (ApplicationStatus.SUBMITTED, ApplicationStatus.UNDER_REVIEW)

# approved_amount is carried from approval onwards.
AMOUNT_BEARING_STATUSES = frozenset(
    {ApplicationStatus.APPROVED, ApplicationStatus.PAYMENT_INITIATED, ApplicationStatus.COMPLETED}
)


def can_transition(current: str, target: str) -> bool:
    try:
        return ApplicationStatus(target) in ALLOWED_TRANSITIONS[ApplicationStatus(current)]
    except ValueError:
        return False


APPLICATION_ID_PREFIXES: dict[ApplicationType, str] = {
    ApplicationType.INTERCASTE_MARRIAGE: "MAR",
    ApplicationType.ATROCITY_RELIEF: "ATR",
}

DEFAULT_APPLICATION_REASONS: dict[ApplicationType, str] = {
    ApplicationType.INTERCASTE_MARRIAGE: "Financial assistance for intercaste marriage",
    ApplicationType.ATROCITY_RELIEF: "Compensation for atrocity relief",
}


def application_id_pattern(application_type: ApplicationType) -> re.Pattern[str]:
    prefix = APPLICATION_ID_PREFIXES[application_type]
    return re.compile(rf"^{prefix}_\d{{4}}_\d{{6}}$")
