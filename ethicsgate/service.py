"""Application service: loads records, runs the managers, persists, audits.

The CLI and the HTTP API both talk to :class:`EthicsGate`; neither touches
the store or a proposal's status directly.
"""

import logging
from collections import Counter
from functools import partial
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from .access import AccessEvaluator, ProposalAction
from .annotations import AnnotationManager
from .audit import record_event
from .errors import CollaboratorError, NotFound, PermissionDenied
from .lifecycle import LifecycleManager
from .models import Annotation, AnnotationReply, Organization, Proposal, Review, User
from .organizations import OrganizationManager
from .state import ProposalStatus
from .storage import Store, YamlStore
from .utils import utc_now
from .validators import slugify

logger = logging.getLogger(__name__)


class EthicsGate:
    def __init__(
        self,
        store: Optional[Store] = None,
        evaluator: Optional[AccessEvaluator] = None,
        clock: Callable[[], str] = utc_now,
        recorder: Optional[Callable[..., Any]] = None,
        audit_log: Optional[Path] = None,
        audit_db: Optional[Path] = None,
    ) -> None:
        self.store = store or YamlStore()
        self.evaluator = evaluator or AccessEvaluator()
        self.lifecycle = LifecycleManager(self.store, self.evaluator, clock)
        self.annotations = AnnotationManager(self.evaluator, clock)
        self.organizations = OrganizationManager(self.store, self.evaluator, clock)
        self.recorder = recorder or partial(record_event, log_file=audit_log, db_file=audit_db)

    # lookups

    def _user_in_tenant(self, actor: User, user_id: str) -> User:
        user = self.store.get_user(user_id)
        if user.organization_id != actor.organization_id:
            raise NotFound(f"user {user_id} not found")
        return user

    def _proposal(self, actor: User, proposal_id: str) -> Proposal:
        proposal = self.store.get_proposal(proposal_id)
        # Other tenants' proposals are indistinguishable from missing ones
        if proposal.organization_id != actor.organization_id:
            raise NotFound(f"proposal {proposal_id} not found")
        return proposal

    def _annotation(self, proposal: Proposal, annotation_id: str) -> Annotation:
        annotation = self.store.get_annotation(annotation_id)
        if annotation.proposal_id != proposal.id:
            raise NotFound(f"annotation {annotation_id} not found")
        return annotation

    def _audit(self, event: str, actor: User, subject_id: str, data: Dict[str, Any]) -> None:
        self.recorder(event, actor.organization_id, subject_id, actor.id, data)

    def _commit(
        self,
        actor: User,
        snapshot: Proposal,
        updated: Proposal,
        event: str,
        review: Optional[Review] = None,
        **data: Any,
    ) -> Proposal:
        stored = self.store.update_proposal(updated, snapshot.version, review=review)
        data.setdefault("status", stored.status.value)
        try:
            self._audit(event, actor, stored.id, data)
        except CollaboratorError:
            # An unaudited transition is rolled back
            self.store.revert_proposal(snapshot, stored.version, review=review)
            raise
        logger.info("%s id=%s actor=%s status=%s", event, stored.id, actor.id, stored.status.value)
        return stored

    # organizations and members

    def register(
        self, name: str, email: str, full_name: str, slug: Optional[str] = None
    ) -> Tuple[Organization, User]:
        organization, admin = self.organizations.register(
            name, slug or slugify(name), email, full_name
        )
        self.store.insert_organization(organization)
        self.store.insert_user(admin)
        self._audit("organization.registered", admin, organization.id, {"slug": organization.slug})
        logger.info("organization.registered id=%s slug=%s", organization.id, organization.slug)
        return organization, admin

    def invite(self, actor: User, email: str, full_name: str, role: str = "researcher") -> User:
        user = self.organizations.invite(actor, email, full_name, role)
        self.store.insert_user(user)
        self._audit("member.invited", actor, user.id, {"email": user.email, "role": user.role.value})
        logger.info("member.invited id=%s role=%s actor=%s", user.id, user.role.value, actor.id)
        return user

    def change_role(self, actor: User, user_id: str, role: str) -> User:
        target = self._user_in_tenant(actor, user_id)
        updated = self.organizations.change_role(actor, target, role)
        self.store.update_user(updated)
        self._audit(
            "member.role_changed",
            actor,
            updated.id,
            {"from": target.role.value, "to": updated.role.value},
        )
        logger.info("member.role_changed id=%s role=%s actor=%s", updated.id, updated.role.value, actor.id)
        return updated

    def update_organization(
        self, actor: User, name: Optional[str] = None, settings: Optional[Dict[str, Any]] = None
    ) -> Organization:
        organization = self.store.get_organization(actor.organization_id)
        updated = self.organizations.update_organization(actor, organization, name, settings)
        self.store.update_organization(updated)
        self._audit("organization.updated", actor, updated.id, {"name": updated.name})
        return updated

    def list_members(self, actor: User) -> List[User]:
        if not self.evaluator.can_administer(actor, actor.organization_id):
            raise PermissionDenied(f"User {actor.id} may not list members")
        return self.store.list_users(actor.organization_id)

    # reads

    def get_proposal(self, actor: User, proposal_id: str) -> Proposal:
        proposal = self._proposal(actor, proposal_id)
        if not self.evaluator.visible_proposals(actor, [proposal]):
            raise PermissionDenied(f"User {actor.id} may not view proposal {proposal_id}")
        return proposal

    def list_proposals(self, actor: User, status: Optional[ProposalStatus] = None) -> List[Proposal]:
        proposals = self.evaluator.visible_proposals(
            actor, self.store.list_proposals(actor.organization_id)
        )
        if status is not None:
            proposals = [p for p in proposals if p.status == status]
        return proposals

    def proposal_detail(self, actor: User, proposal_id: str) -> Dict[str, Any]:
        proposal = self.get_proposal(actor, proposal_id)
        threads = []
        for annotation in self.store.list_annotations(proposal.id):
            threads.append(
                {"annotation": annotation, "replies": self.store.list_replies(annotation.id)}
            )
        return {
            "proposal": proposal,
            "annotations": threads,
            "reviews": [
                r for r in self.store.list_reviews(proposal.id) if r.review_cycle == proposal.review_cycle
            ],
        }

    def dashboard_stats(self, actor: User) -> Dict[str, int]:
        counts = Counter(p.status.value for p in self.list_proposals(actor))
        stats = {status.value: counts.get(status.value, 0) for status in ProposalStatus}
        stats["total"] = sum(counts.values())
        return stats

    # lifecycle

    def create_proposal(
        self, actor: User, title: str, content: Optional[Dict[str, Any]] = None
    ) -> Proposal:
        proposal = self.lifecycle.create(actor, actor.organization_id, title, content)
        self.store.insert_proposal(proposal)
        try:
            self._audit("proposal.created", actor, proposal.id, {"title": proposal.title})
        except CollaboratorError:
            self.store.delete_proposal(proposal.id)
            raise
        logger.info("proposal.created id=%s actor=%s", proposal.id, actor.id)
        return proposal

    def save_draft(
        self,
        actor: User,
        proposal_id: str,
        title: Optional[str] = None,
        content: Optional[Dict[str, Any]] = None,
    ) -> Proposal:
        snapshot = self._proposal(actor, proposal_id)
        updated = self.lifecycle.save_draft(actor, snapshot, title, content)
        return self._commit(actor, snapshot, updated, "proposal.draft_saved")

    def submit(self, actor: User, proposal_id: str) -> Proposal:
        snapshot = self._proposal(actor, proposal_id)
        updated = self.lifecycle.submit(actor, snapshot)
        return self._commit(actor, snapshot, updated, "proposal.submitted")

    def assign_reviewers(self, actor: User, proposal_id: str, reviewer_ids: Iterable[str]) -> Proposal:
        snapshot = self._proposal(actor, proposal_id)
        updated = self.lifecycle.assign_reviewers(actor, snapshot, reviewer_ids)
        return self._commit(
            actor,
            snapshot,
            updated,
            "proposal.reviewers_assigned",
            reviewers=list(updated.assigned_reviewers),
        )

    def record_review(
        self,
        actor: User,
        proposal_id: str,
        decision: str,
        reason: str,
        linked_annotation_ids: Iterable[str] = (),
    ) -> Tuple[Proposal, Review]:
        snapshot = self._proposal(actor, proposal_id)
        updated, review = self.lifecycle.record_review(
            actor, snapshot, decision, reason, linked_annotation_ids
        )
        # The conditional update decides the race; only the winner stores a review
        stored = self._commit(
            actor,
            snapshot,
            updated,
            "proposal.reviewed",
            review=review,
            decision=review.decision.value,
        )
        return stored, review

    def resubmit(
        self,
        actor: User,
        proposal_id: str,
        title: Optional[str] = None,
        content: Optional[Dict[str, Any]] = None,
    ) -> Proposal:
        snapshot = self._proposal(actor, proposal_id)
        updated = self.lifecycle.resubmit(actor, snapshot, title, content)
        return self._commit(
            actor, snapshot, updated, "proposal.resubmitted", review_cycle=updated.review_cycle
        )

    # annotations

    def annotate(
        self,
        actor: User,
        proposal_id: str,
        highlight_from: int,
        highlight_to: int,
        comment_text: str,
        annotation_type: str = "comment",
    ) -> Annotation:
        proposal = self._proposal(actor, proposal_id)
        annotation = self.annotations.annotate(
            actor, proposal, highlight_from, highlight_to, comment_text, annotation_type
        )
        self.store.insert_annotation(annotation)
        self._audit(
            "annotation.created",
            actor,
            annotation.id,
            {"proposal_id": proposal.id, "type": annotation.annotation_type.value},
        )
        return annotation

    def reply(self, actor: User, proposal_id: str, annotation_id: str, reply_text: str) -> AnnotationReply:
        proposal = self._proposal(actor, proposal_id)
        annotation = self._annotation(proposal, annotation_id)
        reply = self.annotations.reply(actor, proposal, annotation, reply_text)
        self.store.insert_reply(reply)
        self._audit("annotation.replied", actor, annotation.id, {"reply_id": reply.id})
        return reply

    def resolve_annotation(
        self, actor: User, proposal_id: str, annotation_id: str, resolved: bool = True
    ) -> Annotation:
        proposal = self._proposal(actor, proposal_id)
        annotation = self._annotation(proposal, annotation_id)
        updated = self.annotations.resolve(actor, proposal, annotation, resolved)
        self.store.update_annotation(updated)
        self._audit("annotation.resolved", actor, annotation.id, {"resolved": resolved})
        return updated
