"""Plain records for organizations, users, proposals and review artifacts.

Every record round-trips through ``to_dict``/``from_dict`` so stores can
persist it as YAML (or anything else that handles plain mappings).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import ValidationError
from .state import ProposalStatus, ReviewDecision, parse_decision, parse_status
from .utils import generate_id, utc_now


class Role(str, Enum):
    RESEARCHER = "researcher"
    REVIEWER = "reviewer"
    ADMIN = "admin"


class AnnotationType(str, Enum):
    COMMENT = "comment"
    CONCERN = "concern"
    SUGGESTION = "suggestion"


def parse_role(raw: str) -> Role:
    try:
        return Role(raw)
    except ValueError as exc:
        raise ValidationError(f"Unknown role: {raw}", field="role") from exc


def parse_annotation_type(raw: str) -> AnnotationType:
    try:
        return AnnotationType(raw)
    except ValueError as exc:
        raise ValidationError(f"Unknown annotation type: {raw}", field="annotation_type") from exc


@dataclass
class Organization:
    name: str
    slug: str
    settings: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=generate_id)
    created_at: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "settings": self.settings,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Organization":
        return cls(
            id=data["id"],
            name=data["name"],
            slug=data["slug"],
            settings=data.get("settings") or {},
            created_at=data.get("created_at", utc_now()),
        )


@dataclass
class User:
    organization_id: str
    email: str
    full_name: str
    role: Role = Role.RESEARCHER
    avatar_url: Optional[str] = None
    id: str = field(default_factory=generate_id)
    created_at: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "email": self.email,
            "full_name": self.full_name,
            "role": self.role.value,
            "avatar_url": self.avatar_url,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        return cls(
            id=data["id"],
            organization_id=data["organization_id"],
            email=data["email"],
            full_name=data["full_name"],
            role=parse_role(data.get("role", "researcher")),
            avatar_url=data.get("avatar_url"),
            created_at=data.get("created_at", utc_now()),
        )


@dataclass
class Proposal:
    organization_id: str
    title: str
    submitted_by: str
    content: Dict[str, Any] = field(default_factory=dict)
    status: ProposalStatus = ProposalStatus.DRAFT
    assigned_reviewers: List[str] = field(default_factory=list)
    attachments: List[str] = field(default_factory=list)
    submitted_at: Optional[str] = None
    review_cycle: int = 1
    version: int = 1
    id: str = field(default_factory=generate_id)
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)

    def is_author(self, user_id: str) -> bool:
        return self.submitted_by == user_id

    def is_assigned(self, user_id: str) -> bool:
        return user_id in self.assigned_reviewers

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "title": self.title,
            "content": self.content,
            "status": self.status.value,
            "submitted_by": self.submitted_by,
            "assigned_reviewers": list(self.assigned_reviewers),
            "attachments": list(self.attachments),
            "submitted_at": self.submitted_at,
            "review_cycle": self.review_cycle,
            "version": self.version,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Proposal":
        return cls(
            id=data["id"],
            organization_id=data["organization_id"],
            title=data["title"],
            content=data.get("content") or {},
            status=parse_status(data.get("status", "draft")),
            submitted_by=data["submitted_by"],
            assigned_reviewers=list(data.get("assigned_reviewers") or []),
            attachments=list(data.get("attachments") or []),
            submitted_at=data.get("submitted_at"),
            review_cycle=int(data.get("review_cycle", 1)),
            version=int(data.get("version", 1)),
            created_at=data.get("created_at", utc_now()),
            updated_at=data.get("updated_at", utc_now()),
        )


@dataclass
class Annotation:
    proposal_id: str
    reviewer_id: str
    highlight_from: int
    highlight_to: int
    comment_text: str
    annotation_type: AnnotationType = AnnotationType.COMMENT
    is_resolved: bool = False
    id: str = field(default_factory=generate_id)
    created_at: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "proposal_id": self.proposal_id,
            "reviewer_id": self.reviewer_id,
            "highlight_from": self.highlight_from,
            "highlight_to": self.highlight_to,
            "comment_text": self.comment_text,
            "annotation_type": self.annotation_type.value,
            "is_resolved": self.is_resolved,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Annotation":
        return cls(
            id=data["id"],
            proposal_id=data["proposal_id"],
            reviewer_id=data["reviewer_id"],
            highlight_from=int(data["highlight_from"]),
            highlight_to=int(data["highlight_to"]),
            comment_text=data["comment_text"],
            annotation_type=parse_annotation_type(data.get("annotation_type", "comment")),
            is_resolved=bool(data.get("is_resolved", False)),
            created_at=data.get("created_at", utc_now()),
        )


@dataclass
class AnnotationReply:
    annotation_id: str
    user_id: str
    reply_text: str
    id: str = field(default_factory=generate_id)
    created_at: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "annotation_id": self.annotation_id,
            "user_id": self.user_id,
            "reply_text": self.reply_text,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnnotationReply":
        return cls(
            id=data["id"],
            annotation_id=data["annotation_id"],
            user_id=data["user_id"],
            reply_text=data["reply_text"],
            created_at=data.get("created_at", utc_now()),
        )


@dataclass
class Review:
    proposal_id: str
    reviewer_id: str
    decision: ReviewDecision
    reason: str
    linked_annotation_ids: List[str] = field(default_factory=list)
    review_cycle: int = 1
    id: str = field(default_factory=generate_id)
    created_at: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "proposal_id": self.proposal_id,
            "reviewer_id": self.reviewer_id,
            "decision": self.decision.value,
            "reason": self.reason,
            "linked_annotation_ids": list(self.linked_annotation_ids),
            "review_cycle": self.review_cycle,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Review":
        return cls(
            id=data["id"],
            proposal_id=data["proposal_id"],
            reviewer_id=data["reviewer_id"],
            decision=parse_decision(data["decision"]),
            reason=data.get("reason", ""),
            linked_annotation_ids=list(data.get("linked_annotation_ids") or []),
            review_cycle=int(data.get("review_cycle", 1)),
            created_at=data.get("created_at", utc_now()),
        )
