"""FastAPI wrapper exposing the proposal review workflow over HTTP."""

from typing import Any, Dict, List, Optional

try:
    from fastapi import Depends, FastAPI, Header, Request
    from fastapi.responses import JSONResponse
    from pydantic import BaseModel, Field
except ImportError as exc:  # pragma: no cover
    raise SystemExit(
        "FastAPI not installed. Install with: pip install 'ethicsgate[api]'\n"
        "You can still use the CLI via `python -m ethicsgate.cli`."
    ) from exc

from .auth import IdentityProvider, TokenIdentityProvider
from .errors import (
    AuthenticationError,
    CollaboratorError,
    EthicsGateError,
    InvalidTransition,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from .log import configure_logging
from .models import User
from .service import EthicsGate
from .state import parse_status

ERROR_STATUS = {
    AuthenticationError: 401,
    PermissionDenied: 403,
    NotFound: 404,
    InvalidTransition: 409,
    ValidationError: 422,
    CollaboratorError: 502,
}


class RegisterIn(BaseModel):
    name: str
    email: str
    full_name: str
    slug: Optional[str] = None


class InviteIn(BaseModel):
    email: str
    full_name: str
    role: str = "researcher"


class RoleIn(BaseModel):
    role: str


class OrganizationIn(BaseModel):
    name: Optional[str] = None
    settings: Optional[Dict[str, Any]] = None


class ProposalIn(BaseModel):
    title: str
    content: Dict[str, Any] = Field(default_factory=dict)


class DraftIn(BaseModel):
    title: Optional[str] = None
    content: Optional[Dict[str, Any]] = None


class ReviewersIn(BaseModel):
    reviewer_ids: List[str]


class ReviewIn(BaseModel):
    decision: str
    reason: str
    linked_annotation_ids: List[str] = Field(default_factory=list)


class AnnotationIn(BaseModel):
    highlight_from: int
    highlight_to: int
    comment_text: str
    annotation_type: str = "comment"


class ReplyIn(BaseModel):
    reply_text: str


class ResolveIn(BaseModel):
    resolved: bool = True


def _error_response(_: Request, exc: EthicsGateError) -> JSONResponse:
    status = 400
    for error_type, code in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            status = code
            break
    body: Dict[str, Any] = {"detail": str(exc), "error": type(exc).__name__}
    if isinstance(exc, ValidationError) and exc.field:
        body["field"] = exc.field
    return JSONResponse(status_code=status, content=body)


def create_app(
    gate: Optional[EthicsGate] = None, identity: Optional[IdentityProvider] = None
) -> FastAPI:
    configure_logging()
    gate = gate or EthicsGate()
    identity = identity or TokenIdentityProvider(gate.store)

    app = FastAPI(title="EthicsGate API", version="0.1.0")
    app.add_exception_handler(EthicsGateError, _error_response)

    def current_user(x_api_token: Optional[str] = Header(None)) -> User:
        return identity.current_user(x_api_token)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.post("/organizations", status_code=201)
    def register(body: RegisterIn):
        organization, admin = gate.register(body.name, body.email, body.full_name, slug=body.slug)
        return {"organization": organization.to_dict(), "admin": admin.to_dict()}

    @app.patch("/organization")
    def update_organization(body: OrganizationIn, actor: User = Depends(current_user)):
        return gate.update_organization(actor, name=body.name, settings=body.settings).to_dict()

    @app.get("/organization/members")
    def members(actor: User = Depends(current_user)):
        return [u.to_dict() for u in gate.list_members(actor)]

    @app.post("/organization/members", status_code=201)
    def invite(body: InviteIn, actor: User = Depends(current_user)):
        return gate.invite(actor, body.email, body.full_name, body.role).to_dict()

    @app.put("/organization/members/{user_id}/role")
    def change_role(user_id: str, body: RoleIn, actor: User = Depends(current_user)):
        return gate.change_role(actor, user_id, body.role).to_dict()

    @app.get("/proposals")
    def list_proposals(status: Optional[str] = None, actor: User = Depends(current_user)):
        wanted = parse_status(status) if status else None
        return [p.to_dict() for p in gate.list_proposals(actor, wanted)]

    @app.get("/stats")
    def stats(actor: User = Depends(current_user)):
        return gate.dashboard_stats(actor)

    @app.post("/proposals", status_code=201)
    def create_proposal(body: ProposalIn, actor: User = Depends(current_user)):
        return gate.create_proposal(actor, body.title, body.content).to_dict()

    @app.get("/proposals/{proposal_id}")
    def get_proposal(proposal_id: str, actor: User = Depends(current_user)):
        detail = gate.proposal_detail(actor, proposal_id)
        return {
            "proposal": detail["proposal"].to_dict(),
            "annotations": [
                {
                    **thread["annotation"].to_dict(),
                    "replies": [r.to_dict() for r in thread["replies"]],
                }
                for thread in detail["annotations"]
            ],
            "reviews": [r.to_dict() for r in detail["reviews"]],
        }

    @app.patch("/proposals/{proposal_id}")
    def save_draft(proposal_id: str, body: DraftIn, actor: User = Depends(current_user)):
        return gate.save_draft(actor, proposal_id, body.title, body.content).to_dict()

    @app.post("/proposals/{proposal_id}/submit")
    def submit(proposal_id: str, actor: User = Depends(current_user)):
        return gate.submit(actor, proposal_id).to_dict()

    @app.post("/proposals/{proposal_id}/reviewers")
    def assign_reviewers(proposal_id: str, body: ReviewersIn, actor: User = Depends(current_user)):
        return gate.assign_reviewers(actor, proposal_id, body.reviewer_ids).to_dict()

    @app.post("/proposals/{proposal_id}/reviews", status_code=201)
    def record_review(proposal_id: str, body: ReviewIn, actor: User = Depends(current_user)):
        proposal, review = gate.record_review(
            actor, proposal_id, body.decision, body.reason, body.linked_annotation_ids
        )
        return {"proposal": proposal.to_dict(), "review": review.to_dict()}

    @app.post("/proposals/{proposal_id}/resubmit")
    def resubmit(proposal_id: str, body: DraftIn, actor: User = Depends(current_user)):
        return gate.resubmit(actor, proposal_id, body.title, body.content).to_dict()

    @app.post("/proposals/{proposal_id}/annotations", status_code=201)
    def annotate(proposal_id: str, body: AnnotationIn, actor: User = Depends(current_user)):
        return gate.annotate(
            actor,
            proposal_id,
            body.highlight_from,
            body.highlight_to,
            body.comment_text,
            body.annotation_type,
        ).to_dict()

    @app.post("/proposals/{proposal_id}/annotations/{annotation_id}/replies", status_code=201)
    def reply(proposal_id: str, annotation_id: str, body: ReplyIn, actor: User = Depends(current_user)):
        return gate.reply(actor, proposal_id, annotation_id, body.reply_text).to_dict()

    @app.post("/proposals/{proposal_id}/annotations/{annotation_id}/resolve")
    def resolve(proposal_id: str, annotation_id: str, body: ResolveIn, actor: User = Depends(current_user)):
        return gate.resolve_annotation(actor, proposal_id, annotation_id, body.resolved).to_dict()

    return app


app = create_app()
