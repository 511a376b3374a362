from dataclasses import replace
from typing import Callable, Optional, Union

from .access import AccessEvaluator, ProposalAction
from .errors import NotFound, ValidationError
from .lifecycle import authorize
from .models import Annotation, AnnotationReply, AnnotationType, Proposal, User, parse_annotation_type
from .utils import utc_now
from .validators import validate_non_empty


def _check_range(highlight_from: int, highlight_to: int) -> None:
    for bound in (highlight_from, highlight_to):
        if isinstance(bound, bool) or not isinstance(bound, int):
            raise ValidationError("Highlight bounds must be integers", field="highlight_from")
    if highlight_from < 0 or highlight_to <= highlight_from:
        raise ValidationError(
            f"Invalid highlight range [{highlight_from}, {highlight_to})", field="highlight_to"
        )


def _belongs(annotation: Annotation, proposal: Proposal) -> None:
    if annotation.proposal_id != proposal.id:
        raise NotFound(f"annotation {annotation.id} not found on proposal {proposal.id}")


class AnnotationManager:
    """Inline reviewer comments and their reply threads."""

    def __init__(
        self, evaluator: Optional[AccessEvaluator] = None, clock: Callable[[], str] = utc_now
    ) -> None:
        self.evaluator = evaluator or AccessEvaluator()
        self.clock = clock

    def annotate(
        self,
        actor: User,
        proposal: Proposal,
        highlight_from: int,
        highlight_to: int,
        comment_text: str,
        annotation_type: Union[AnnotationType, str] = AnnotationType.COMMENT,
    ) -> Annotation:
        authorize(self.evaluator, actor, ProposalAction.ANNOTATE, proposal)
        _check_range(highlight_from, highlight_to)
        if not isinstance(annotation_type, AnnotationType):
            annotation_type = parse_annotation_type(annotation_type)
        return Annotation(
            proposal_id=proposal.id,
            reviewer_id=actor.id,
            highlight_from=highlight_from,
            highlight_to=highlight_to,
            comment_text=validate_non_empty(comment_text, "comment_text"),
            annotation_type=annotation_type,
            created_at=self.clock(),
        )

    def reply(
        self, actor: User, proposal: Proposal, annotation: Annotation, reply_text: str
    ) -> AnnotationReply:
        _belongs(annotation, proposal)
        authorize(self.evaluator, actor, ProposalAction.REPLY, proposal)
        return AnnotationReply(
            annotation_id=annotation.id,
            user_id=actor.id,
            reply_text=validate_non_empty(reply_text, "reply_text"),
            created_at=self.clock(),
        )

    def resolve(
        self, actor: User, proposal: Proposal, annotation: Annotation, resolved: bool = True
    ) -> Annotation:
        _belongs(annotation, proposal)
        authorize(self.evaluator, actor, ProposalAction.RESOLVE_ANNOTATION, proposal)
        return replace(annotation, is_resolved=resolved)
