from types import SimpleNamespace
from typing import Any, Dict, List

import pytest

from ethicsgate.lifecycle import LifecycleManager
from ethicsgate.models import Organization, Proposal, Role, User
from ethicsgate.service import EthicsGate
from ethicsgate.state import ProposalStatus
from ethicsgate.storage import MemoryStore


class RecordingAuditor:
    def __init__(self) -> None:
        self.events: List[Dict[str, Any]] = []

    def __call__(self, event, organization_id, subject_id, actor, data):
        entry = {
            "event": event,
            "organization_id": organization_id,
            "subject_id": subject_id,
            "actor": actor,
            "data": data,
        }
        self.events.append(entry)
        return entry

    def names(self) -> List[str]:
        return [e["event"] for e in self.events]


def _member(store: MemoryStore, org: Organization, name: str, role: Role) -> User:
    user = User(
        organization_id=org.id,
        email=f"{name}@{org.slug}.example.org",
        full_name=name.title(),
        role=role,
    )
    return store.insert_user(user)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def world(store: MemoryStore) -> SimpleNamespace:
    """Two tenants; the first has every role, the second an outsider of each kind."""
    o1 = store.insert_organization(Organization(name="Harbor University", slug="harbor"))
    o2 = store.insert_organization(Organization(name="Ridge Institute", slug="ridge"))
    return SimpleNamespace(
        o1=o1,
        o2=o2,
        admin=_member(store, o1, "ada", Role.ADMIN),
        author=_member(store, o1, "rosa", Role.RESEARCHER),
        other_researcher=_member(store, o1, "ivan", Role.RESEARCHER),
        r1=_member(store, o1, "noor", Role.REVIEWER),
        r2=_member(store, o1, "tomas", Role.REVIEWER),
        outsider_admin=_member(store, o2, "olga", Role.ADMIN),
        outsider_researcher=_member(store, o2, "pete", Role.RESEARCHER),
        outsider_reviewer=_member(store, o2, "quinn", Role.REVIEWER),
    )


@pytest.fixture
def manager(store: MemoryStore) -> LifecycleManager:
    return LifecycleManager(store)


@pytest.fixture
def auditor() -> RecordingAuditor:
    return RecordingAuditor()


@pytest.fixture
def gate(store: MemoryStore, auditor: RecordingAuditor) -> EthicsGate:
    return EthicsGate(store=store, recorder=auditor)


def make_proposal(world: SimpleNamespace, status: ProposalStatus, reviewers=None) -> Proposal:
    """A proposal in ``status`` authored by ``world.author``, bypassing the lifecycle."""
    if reviewers is None:
        reviewers = [] if status in (ProposalStatus.DRAFT, ProposalStatus.SUBMITTED) else [world.r1.id]
    return Proposal(
        organization_id=world.o1.id,
        title="Sleep deprivation and recall",
        submitted_by=world.author.id,
        content={"type": "doc", "content": []},
        status=status,
        assigned_reviewers=list(reviewers),
        submitted_at=None if status == ProposalStatus.DRAFT else "2026-01-05T10:00:00+00:00",
    )


@pytest.fixture
def proposal_in(world):
    def factory(status: ProposalStatus, reviewers=None) -> Proposal:
        return make_proposal(world, status, reviewers)

    return factory
