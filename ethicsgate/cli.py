import argparse
import json
from typing import Any, Dict, Optional

from .auth import StaticIdentityProvider
from .db import list_events
from .errors import EthicsGateError
from .log import configure_logging
from .models import Proposal, User
from .service import EthicsGate
from .state import parse_status, status_label


def _service() -> EthicsGate:
    return EthicsGate()


def _actor(gate: EthicsGate, args: argparse.Namespace) -> User:
    return StaticIdentityProvider(gate.store, args.actor).current_user()


def _content(args: argparse.Namespace) -> Optional[Dict[str, Any]]:
    if getattr(args, "content_file", None):
        with open(args.content_file, encoding="utf-8") as f:
            return json.load(f)
    if getattr(args, "text", None) is not None:
        # Minimal rich-text document wrapping plain text
        return {
            "type": "doc",
            "content": [{"type": "paragraph", "content": [{"type": "text", "text": args.text}]}],
        }
    return None


def _print_proposal(proposal: Proposal) -> None:
    print(f"{proposal.id} [{status_label(proposal.status)}] {proposal.title}")


def handle_register(args: argparse.Namespace) -> None:
    gate = _service()
    organization, admin = gate.register(args.name, args.email, args.full_name, slug=args.slug)
    print(f"Registered organization {organization.name} ({organization.slug})")
    print(f"  organization id: {organization.id}")
    print(f"  admin user id:   {admin.id}")


def handle_invite(args: argparse.Namespace) -> None:
    gate = _service()
    user = gate.invite(_actor(gate, args), args.email, args.full_name, args.role)
    print(f"Invited {user.email} as {user.role.value} (id {user.id})")


def handle_set_role(args: argparse.Namespace) -> None:
    gate = _service()
    user = gate.change_role(_actor(gate, args), args.user_id, args.role)
    print(f"{user.email} is now {user.role.value}")


def handle_members(args: argparse.Namespace) -> None:
    gate = _service()
    for user in gate.list_members(_actor(gate, args)):
        print(f"{user.id} {user.role.value:<10} {user.email} ({user.full_name})")


def handle_settings(args: argparse.Namespace) -> None:
    gate = _service()
    settings = None
    if args.set:
        settings = {}
        for pair in args.set:
            key, _, value = pair.partition("=")
            settings[key] = value
    organization = gate.update_organization(_actor(gate, args), name=args.name, settings=settings)
    print(f"{organization.name} ({organization.slug})")
    for key, value in organization.settings.items():
        print(f"  {key}: {value}")


def handle_create(args: argparse.Namespace) -> None:
    gate = _service()
    proposal = gate.create_proposal(_actor(gate, args), args.title, _content(args))
    print(f"Created proposal {proposal.id}")
    _print_proposal(proposal)


def handle_save(args: argparse.Namespace) -> None:
    gate = _service()
    proposal = gate.save_draft(_actor(gate, args), args.proposal_id, args.title, _content(args))
    print("Draft saved")
    _print_proposal(proposal)


def handle_submit(args: argparse.Namespace) -> None:
    gate = _service()
    proposal = gate.submit(_actor(gate, args), args.proposal_id)
    print(f"Submitted proposal {proposal.id} at {proposal.submitted_at}")


def handle_assign(args: argparse.Namespace) -> None:
    gate = _service()
    proposal = gate.assign_reviewers(_actor(gate, args), args.proposal_id, args.reviewers)
    print(f"Assigned {', '.join(proposal.assigned_reviewers)} to {proposal.id}")
    print(f"State:  {status_label(proposal.status)}")


def handle_annotate(args: argparse.Namespace) -> None:
    gate = _service()
    annotation = gate.annotate(
        _actor(gate, args),
        args.proposal_id,
        args.start,
        args.end,
        args.comment,
        args.type,
    )
    print(f"Annotation {annotation.id} [{annotation.annotation_type.value}] on {args.start}-{args.end}")


def handle_reply(args: argparse.Namespace) -> None:
    gate = _service()
    reply = gate.reply(_actor(gate, args), args.proposal_id, args.annotation_id, args.text)
    print(f"Reply {reply.id} added to annotation {args.annotation_id}")


def handle_resolve(args: argparse.Namespace) -> None:
    gate = _service()
    annotation = gate.resolve_annotation(
        _actor(gate, args), args.proposal_id, args.annotation_id, resolved=not args.reopen
    )
    print(f"Annotation {annotation.id} {'resolved' if annotation.is_resolved else 'reopened'}")


def handle_review(args: argparse.Namespace) -> None:
    gate = _service()
    proposal, review = gate.record_review(
        _actor(gate, args), args.proposal_id, args.decision, args.reason, args.link or []
    )
    print(f"{review.decision.value.upper()} proposal {proposal.id} by {review.reviewer_id}")
    print(f"Reason: {review.reason}")
    print(f"State:  {status_label(proposal.status)}")


def handle_resubmit(args: argparse.Namespace) -> None:
    gate = _service()
    proposal = gate.resubmit(_actor(gate, args), args.proposal_id, args.title, _content(args))
    print(f"Proposal {proposal.id} reopened as draft (cycle {proposal.review_cycle})")


def handle_list(args: argparse.Namespace) -> None:
    gate = _service()
    status = parse_status(args.status) if args.status else None
    proposals = gate.list_proposals(_actor(gate, args), status)
    if not proposals:
        print("No proposals recorded.")
        return
    for proposal in proposals:
        _print_proposal(proposal)


def handle_show(args: argparse.Namespace) -> None:
    gate = _service()
    detail = gate.proposal_detail(_actor(gate, args), args.proposal_id)
    proposal = detail["proposal"]
    print(f"id: {proposal.id}")
    print(f"title: {proposal.title}")
    print(f"status: {status_label(proposal.status)}")
    print(f"author: {proposal.submitted_by}")
    print(f"reviewers: {', '.join(proposal.assigned_reviewers) or '(none)'}")
    print(f"submitted_at: {proposal.submitted_at or '-'}")
    print(f"review_cycle: {proposal.review_cycle}")
    for thread in detail["annotations"]:
        annotation = thread["annotation"]
        flag = " (resolved)" if annotation.is_resolved else ""
        print(
            f"  annotation {annotation.id} [{annotation.annotation_type.value}]"
            f" {annotation.highlight_from}-{annotation.highlight_to}{flag}: {annotation.comment_text}"
        )
        for reply in thread["replies"]:
            print(f"    reply {reply.user_id}: {reply.reply_text}")
    for review in detail["reviews"]:
        print(f"  review {review.reviewer_id} cycle {review.review_cycle}: {review.decision.value} - {review.reason}")


def handle_stats(args: argparse.Namespace) -> None:
    gate = _service()
    for key, value in gate.dashboard_stats(_actor(gate, args)).items():
        print(f"{key}: {value}")


def handle_audit(args: argparse.Namespace) -> None:
    gate = _service()
    actor = _actor(gate, args)
    if not gate.evaluator.can_administer(actor, actor.organization_id):
        raise SystemExit("Only admins can read the audit trail.")
    events = list_events(limit=args.limit, organization_id=actor.organization_id)
    if not events:
        print("No audit events.")
        return
    for ev in events:
        print(f"{ev['timestamp']} {ev['event']} subject={ev['subject_id']} actor={ev['actor']} data={ev['data']}")


def _add_content_args(cmd: argparse.ArgumentParser) -> None:
    group = cmd.add_mutually_exclusive_group()
    group.add_argument("--text", help="Plain-text body (wrapped into a document)")
    group.add_argument("--content-file", help="Path to a JSON document body")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="EthicsGate proposal review CLI")
    parser.add_argument("--as", dest="actor", help="Acting user id (default: $ETHICSGATE_USER)")
    parser.add_argument("--log-level", help="Log level (default: $ETHICSGATE_LOG_LEVEL or INFO)")
    sub = parser.add_subparsers(dest="command")

    register = sub.add_parser("register", help="Create an organization and its admin")
    register.add_argument("--name", required=True, help="Organization name")
    register.add_argument("--slug", help="URL slug (derived from the name by default)")
    register.add_argument("--email", required=True, help="Admin email")
    register.add_argument("--full-name", required=True, help="Admin full name")
    register.set_defaults(func=handle_register)

    invite = sub.add_parser("invite", help="Add a member to your organization")
    invite.add_argument("--email", required=True)
    invite.add_argument("--full-name", required=True)
    invite.add_argument("--role", default="researcher", choices=["researcher", "reviewer", "admin"])
    invite.set_defaults(func=handle_invite)

    set_role = sub.add_parser("set-role", help="Change a member's role")
    set_role.add_argument("user_id")
    set_role.add_argument("role", choices=["researcher", "reviewer", "admin"])
    set_role.set_defaults(func=handle_set_role)

    members = sub.add_parser("members", help="List organization members")
    members.set_defaults(func=handle_members)

    settings = sub.add_parser("settings", help="Rename the organization or update settings")
    settings.add_argument("--name", help="New display name")
    settings.add_argument("--set", nargs="*", metavar="KEY=VALUE", help="Settings entries to merge")
    settings.set_defaults(func=handle_settings)

    create = sub.add_parser("create", help="Start a new proposal draft")
    create.add_argument("--title", required=True)
    _add_content_args(create)
    create.set_defaults(func=handle_create)

    save = sub.add_parser("save", help="Save changes to a draft")
    save.add_argument("proposal_id")
    save.add_argument("--title")
    _add_content_args(save)
    save.set_defaults(func=handle_save)

    submit = sub.add_parser("submit", help="Submit a draft for review")
    submit.add_argument("proposal_id")
    submit.set_defaults(func=handle_submit)

    assign = sub.add_parser("assign", help="Assign reviewers to a submitted proposal")
    assign.add_argument("proposal_id")
    assign.add_argument("reviewers", nargs="+", help="Reviewer user ids")
    assign.set_defaults(func=handle_assign)

    annotate = sub.add_parser("annotate", help="Comment on a range of the proposal body")
    annotate.add_argument("proposal_id")
    annotate.add_argument("--start", type=int, required=True, help="Range start (inclusive)")
    annotate.add_argument("--end", type=int, required=True, help="Range end (exclusive)")
    annotate.add_argument("--comment", required=True)
    annotate.add_argument("--type", default="comment", choices=["comment", "concern", "suggestion"])
    annotate.set_defaults(func=handle_annotate)

    reply = sub.add_parser("reply", help="Reply to an annotation")
    reply.add_argument("proposal_id")
    reply.add_argument("annotation_id")
    reply.add_argument("text")
    reply.set_defaults(func=handle_reply)

    resolve = sub.add_parser("resolve", help="Mark an annotation resolved")
    resolve.add_argument("proposal_id")
    resolve.add_argument("annotation_id")
    resolve.add_argument("--reopen", action="store_true", help="Mark it unresolved instead")
    resolve.set_defaults(func=handle_resolve)

    review = sub.add_parser("review", help="Record a review decision")
    review.add_argument("proposal_id")
    review.add_argument("decision", choices=["approve", "reject", "revise_and_resubmit"])
    review.add_argument("--reason", required=True)
    review.add_argument("--link", nargs="*", help="Supporting annotation ids")
    review.set_defaults(func=handle_review)

    resubmit = sub.add_parser("resubmit", help="Reopen a proposal sent back for revision")
    resubmit.add_argument("proposal_id")
    resubmit.add_argument("--title")
    _add_content_args(resubmit)
    resubmit.set_defaults(func=handle_resubmit)

    list_cmd = sub.add_parser("list", help="List proposals visible to you")
    list_cmd.add_argument("--status", help="Only proposals in this status")
    list_cmd.set_defaults(func=handle_list)

    show = sub.add_parser("show", help="Show proposal details, annotations and reviews")
    show.add_argument("proposal_id")
    show.set_defaults(func=handle_show)

    stats = sub.add_parser("stats", help="Proposal counts by status")
    stats.set_defaults(func=handle_stats)

    audit_cmd = sub.add_parser("audit", help="Show recent audit events")
    audit_cmd.add_argument("--limit", type=int, default=50, help="Number of events to show")
    audit_cmd.set_defaults(func=handle_audit)

    return parser


def main(argv: Optional[list] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    try:
        args.func(args)
    except EthicsGateError as exc:
        raise SystemExit(f"{type(exc).__name__}: {exc}")


if __name__ == "__main__":
    main()
