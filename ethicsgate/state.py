from enum import Enum
from typing import Dict, List

from .errors import InvalidTransition, ValidationError


class ProposalStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    REVISE_AND_RESUBMIT = "revise_and_resubmit"


class ReviewDecision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    REVISE_AND_RESUBMIT = "revise_and_resubmit"


ALLOWED_TRANSITIONS: Dict[ProposalStatus, List[ProposalStatus]] = {
    ProposalStatus.DRAFT: [ProposalStatus.SUBMITTED],
    ProposalStatus.SUBMITTED: [ProposalStatus.UNDER_REVIEW],
    ProposalStatus.UNDER_REVIEW: [
        ProposalStatus.APPROVED,
        ProposalStatus.REJECTED,
        ProposalStatus.REVISE_AND_RESUBMIT,
    ],
    ProposalStatus.APPROVED: [],
    ProposalStatus.REJECTED: [],
    ProposalStatus.REVISE_AND_RESUBMIT: [ProposalStatus.DRAFT],
}

DECISION_OUTCOMES: Dict[ReviewDecision, ProposalStatus] = {
    ReviewDecision.APPROVE: ProposalStatus.APPROVED,
    ReviewDecision.REJECT: ProposalStatus.REJECTED,
    ReviewDecision.REVISE_AND_RESUBMIT: ProposalStatus.REVISE_AND_RESUBMIT,
}

STATUS_LABELS: Dict[ProposalStatus, str] = {
    ProposalStatus.DRAFT: "Draft",
    ProposalStatus.SUBMITTED: "Submitted",
    ProposalStatus.UNDER_REVIEW: "Under Review",
    ProposalStatus.APPROVED: "Approved",
    ProposalStatus.REJECTED: "Rejected",
    ProposalStatus.REVISE_AND_RESUBMIT: "Revise & Resubmit",
}


def can_transition(current: ProposalStatus, target: ProposalStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, [])


def transition(current: ProposalStatus, target: ProposalStatus) -> ProposalStatus:
    if not can_transition(current, target):
        raise InvalidTransition(f"Illegal transition: {current.value} -> {target.value}")
    return target


def is_terminal(status: ProposalStatus) -> bool:
    return not ALLOWED_TRANSITIONS.get(status)


def parse_status(raw: str) -> ProposalStatus:
    try:
        return ProposalStatus(raw)
    except ValueError as exc:
        raise ValidationError(f"Unknown proposal status: {raw}", field="status") from exc


def parse_decision(raw: str) -> ReviewDecision:
    try:
        return ReviewDecision(raw)
    except ValueError as exc:
        raise ValidationError(f"Unknown review decision: {raw}", field="decision") from exc


def status_label(status: ProposalStatus) -> str:
    return STATUS_LABELS.get(status, status.value)
