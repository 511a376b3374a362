"""Role-scoped access control.

This is the only module that branches on a user's role. Everything else asks
:class:`AccessEvaluator` and surfaces a denial however suits the caller.
"""

from enum import Enum
from typing import Iterable, List

from .models import Proposal, Role, User
from .state import ProposalStatus


class ProposalAction(str, Enum):
    VIEW = "view"
    VIEW_ANY = "view_any"
    EDIT = "edit"
    SUBMIT = "submit"
    RESUBMIT = "resubmit"
    ASSIGN_REVIEWERS = "assign_reviewers"
    ANNOTATE = "annotate"
    RESOLVE_ANNOTATION = "resolve_annotation"
    REPLY = "reply"
    RECORD_REVIEW = "record_review"


# Status each action is restricted to, for actions that have one
REQUIRED_STATUS = {
    ProposalAction.EDIT: ProposalStatus.DRAFT,
    ProposalAction.SUBMIT: ProposalStatus.DRAFT,
    ProposalAction.RESUBMIT: ProposalStatus.REVISE_AND_RESUBMIT,
    ProposalAction.ASSIGN_REVIEWERS: ProposalStatus.SUBMITTED,
    ProposalAction.ANNOTATE: ProposalStatus.UNDER_REVIEW,
    ProposalAction.RESOLVE_ANNOTATION: ProposalStatus.UNDER_REVIEW,
    ProposalAction.RECORD_REVIEW: ProposalStatus.UNDER_REVIEW,
}

_REVIEWER_ACTIONS = {
    ProposalAction.ANNOTATE,
    ProposalAction.RESOLVE_ANNOTATION,
    ProposalAction.RECORD_REVIEW,
}


class AccessEvaluator:
    """Stateless permission predicates over (actor, action, proposal)."""

    def can_perform(self, actor: User, action: ProposalAction, proposal: Proposal) -> bool:
        if actor.organization_id != proposal.organization_id:
            return False
        if action == ProposalAction.REPLY:
            return self.can_perform(actor, ProposalAction.VIEW, proposal)

        status = proposal.status
        required = REQUIRED_STATUS.get(action)
        in_status = required is None or status == required

        if actor.role == Role.ADMIN:
            if action == ProposalAction.ASSIGN_REVIEWERS:
                return in_status
            return action in (ProposalAction.VIEW_ANY, ProposalAction.VIEW)
        elif actor.role == Role.RESEARCHER:
            if not proposal.is_author(actor.id):
                return False
            if action in (ProposalAction.EDIT, ProposalAction.SUBMIT, ProposalAction.RESUBMIT):
                return in_status
            return action == ProposalAction.VIEW
        elif actor.role == Role.REVIEWER:
            if not proposal.is_assigned(actor.id):
                return False
            if action in _REVIEWER_ACTIONS:
                return in_status
            return action == ProposalAction.VIEW
        return False

    def can_create(self, actor: User, organization_id: str) -> bool:
        return actor.organization_id == organization_id and actor.role == Role.RESEARCHER

    def can_administer(self, actor: User, organization_id: str) -> bool:
        return actor.organization_id == organization_id and actor.role == Role.ADMIN

    def is_eligible_reviewer(self, user: User, organization_id: str) -> bool:
        return user.organization_id == organization_id and user.role == Role.REVIEWER

    def is_admin(self, user: User) -> bool:
        return user.role == Role.ADMIN

    def visible_proposals(self, actor: User, proposals: Iterable[Proposal]) -> List[Proposal]:
        """Proposals the actor may list: own for researchers, assigned for
        reviewers, the whole organization for admins."""
        visible = []
        for proposal in proposals:
            if self.can_perform(actor, ProposalAction.VIEW_ANY, proposal) or self.can_perform(
                actor, ProposalAction.VIEW, proposal
            ):
                visible.append(proposal)
        return visible


def can_perform(actor: User, action: ProposalAction, proposal: Proposal) -> bool:
    return _default.can_perform(actor, action, proposal)


_default = AccessEvaluator()
