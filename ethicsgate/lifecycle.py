"""Proposal lifecycle: the only code path that changes a proposal's status.

Operations take the acting user and the current proposal snapshot and return
new values; inputs are never mutated and nothing is persisted here. Callers
write the result back with a conditional update (see ``Store.update_proposal``).
"""

import logging
from dataclasses import replace
from typing import Any, Callable, Dict, Iterable, Optional, Tuple, Union

from .access import REQUIRED_STATUS, AccessEvaluator, ProposalAction
from .errors import InvalidTransition, NotFound, PermissionDenied, ValidationError
from .models import Proposal, Review, User
from .state import DECISION_OUTCOMES, ProposalStatus, ReviewDecision, parse_decision, transition
from .storage import Store
from .utils import unique, utc_now
from .validators import validate_content, validate_non_empty, validate_title

logger = logging.getLogger(__name__)


def authorize(
    evaluator: AccessEvaluator, actor: User, action: ProposalAction, proposal: Proposal
) -> None:
    """Raise unless ``actor`` may perform ``action`` on ``proposal`` right now.

    Permission is judged as if the proposal were already in the status the
    action needs, so an actor who could never act gets PermissionDenied while
    an eligible actor arriving at the wrong moment gets InvalidTransition.
    """
    required = REQUIRED_STATUS.get(action)
    probe = replace(proposal, status=required) if required is not None else proposal
    if not evaluator.can_perform(actor, action, probe):
        raise PermissionDenied(f"User {actor.id} may not {action.value} proposal {proposal.id}")
    if required is not None and proposal.status != required:
        raise InvalidTransition(
            f"Cannot {action.value} proposal {proposal.id} while it is {proposal.status.value}"
        )


class LifecycleManager:
    def __init__(
        self,
        directory: Store,
        evaluator: Optional[AccessEvaluator] = None,
        clock: Callable[[], str] = utc_now,
    ) -> None:
        # directory is only read: reviewer lookups, annotations, prior reviews
        self.directory = directory
        self.evaluator = evaluator or AccessEvaluator()
        self.clock = clock

    def create(
        self,
        author: User,
        organization_id: str,
        title: str,
        content: Optional[Dict[str, Any]] = None,
    ) -> Proposal:
        if not self.evaluator.can_create(author, organization_id):
            raise PermissionDenied(
                f"User {author.id} may not create proposals in organization {organization_id}"
            )
        title = validate_title(title)
        body = validate_content(content if content is not None else {})
        now = self.clock()
        return Proposal(
            organization_id=organization_id,
            title=title,
            content=body,
            submitted_by=author.id,
            created_at=now,
            updated_at=now,
        )

    def save_draft(
        self,
        actor: User,
        proposal: Proposal,
        title: Optional[str] = None,
        content: Optional[Dict[str, Any]] = None,
    ) -> Proposal:
        authorize(self.evaluator, actor, ProposalAction.EDIT, proposal)
        return self._with_edits(proposal, title, content)

    def submit(self, actor: User, proposal: Proposal) -> Proposal:
        authorize(self.evaluator, actor, ProposalAction.SUBMIT, proposal)
        now = self.clock()
        return replace(
            proposal,
            status=transition(proposal.status, ProposalStatus.SUBMITTED),
            assigned_reviewers=[],
            submitted_at=now,
            updated_at=now,
        )

    def assign_reviewers(
        self, actor: User, proposal: Proposal, reviewer_ids: Iterable[str]
    ) -> Proposal:
        authorize(self.evaluator, actor, ProposalAction.ASSIGN_REVIEWERS, proposal)
        ids = unique(reviewer_ids)
        if not ids:
            raise ValidationError("At least one reviewer must be assigned", field="assigned_reviewers")
        for reviewer_id in ids:
            try:
                user = self.directory.get_user(reviewer_id)
            except NotFound:
                user = None
            if user is None or not self.evaluator.is_eligible_reviewer(user, proposal.organization_id):
                raise ValidationError(
                    f"{reviewer_id} is not a reviewer in this organization",
                    field="assigned_reviewers",
                )
        return replace(
            proposal,
            status=transition(proposal.status, ProposalStatus.UNDER_REVIEW),
            assigned_reviewers=ids,
            updated_at=self.clock(),
        )

    def record_review(
        self,
        actor: User,
        proposal: Proposal,
        decision: Union[ReviewDecision, str],
        reason: str,
        linked_annotation_ids: Iterable[str] = (),
    ) -> Tuple[Proposal, Review]:
        """Record ``actor``'s decision and move the proposal to its outcome.

        The first recorded decision is final for the cycle; there is no
        quorum across assigned reviewers.
        """
        authorize(self.evaluator, actor, ProposalAction.RECORD_REVIEW, proposal)
        if not isinstance(decision, ReviewDecision):
            decision = parse_decision(decision)
        reason = validate_non_empty(reason, "reason")

        linked = unique(linked_annotation_ids)
        for annotation_id in linked:
            try:
                annotation = self.directory.get_annotation(annotation_id)
            except NotFound:
                annotation = None
            if annotation is None or annotation.proposal_id != proposal.id:
                raise ValidationError(
                    f"Annotation {annotation_id} does not belong to proposal {proposal.id}",
                    field="linked_annotation_ids",
                )

        for prior in self.directory.list_reviews(proposal.id):
            if prior.reviewer_id == actor.id and prior.review_cycle == proposal.review_cycle:
                raise InvalidTransition(
                    f"User {actor.id} already reviewed proposal {proposal.id} in this cycle"
                )

        now = self.clock()
        review = Review(
            proposal_id=proposal.id,
            reviewer_id=actor.id,
            decision=decision,
            reason=reason,
            linked_annotation_ids=linked,
            review_cycle=proposal.review_cycle,
            created_at=now,
        )
        updated = replace(
            proposal,
            status=transition(proposal.status, DECISION_OUTCOMES[decision]),
            updated_at=now,
        )
        logger.debug(
            "lifecycle.review_computed proposal=%s decision=%s", proposal.id, decision.value
        )
        return updated, review

    def resubmit(
        self,
        actor: User,
        proposal: Proposal,
        title: Optional[str] = None,
        content: Optional[Dict[str, Any]] = None,
    ) -> Proposal:
        authorize(self.evaluator, actor, ProposalAction.RESUBMIT, proposal)
        revised = self._with_edits(proposal, title, content)
        return replace(
            revised,
            status=transition(proposal.status, ProposalStatus.DRAFT),
            assigned_reviewers=[],
            submitted_at=None,
            review_cycle=proposal.review_cycle + 1,
        )

    def _with_edits(
        self, proposal: Proposal, title: Optional[str], content: Optional[Dict[str, Any]]
    ) -> Proposal:
        changes: Dict[str, Any] = {"updated_at": self.clock()}
        if title is not None:
            changes["title"] = validate_title(title)
        if content is not None:
            changes["content"] = validate_content(content)
        return replace(proposal, **changes)
