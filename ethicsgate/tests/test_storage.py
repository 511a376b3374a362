from dataclasses import replace

import pytest

from ethicsgate.errors import CollaboratorError, InvalidTransition, NotFound
from ethicsgate.models import Organization, Proposal, Review, User
from ethicsgate.state import ProposalStatus, ReviewDecision
from ethicsgate.storage import MemoryStore, YamlStore


@pytest.fixture(params=["memory", "yaml"])
def any_store(request, tmp_path):
    if request.param == "memory":
        return MemoryStore()
    return YamlStore(tmp_path / "data")


def _proposal(org_id="org-1"):
    return Proposal(
        organization_id=org_id,
        title="Field study of shift work",
        submitted_by="user-1",
        content={"type": "doc", "content": [{"type": "paragraph"}]},
    )


def test_proposal_survives_storage(any_store):
    proposal = _proposal()
    any_store.insert_proposal(proposal)
    loaded = any_store.get_proposal(proposal.id)
    assert loaded == proposal
    assert loaded is not proposal


def test_missing_records_raise_not_found(any_store):
    with pytest.raises(NotFound):
        any_store.get_proposal("nope")
    with pytest.raises(NotFound):
        any_store.get_user("nope")
    with pytest.raises(NotFound):
        any_store.update_user(User(organization_id="o", email="a@b.org", full_name="A B"))


def test_duplicate_insert_is_a_collaborator_error(any_store):
    proposal = any_store.insert_proposal(_proposal())
    with pytest.raises(CollaboratorError):
        any_store.insert_proposal(proposal)


def test_conditional_update_bumps_version(any_store):
    proposal = any_store.insert_proposal(_proposal())
    stored = any_store.update_proposal(
        replace(proposal, status=ProposalStatus.SUBMITTED), expected_version=proposal.version
    )
    assert stored.version == proposal.version + 1
    assert any_store.get_proposal(proposal.id).status == ProposalStatus.SUBMITTED


def test_conditional_update_rejects_stale_snapshot(any_store):
    proposal = any_store.insert_proposal(_proposal())
    any_store.update_proposal(replace(proposal, title="First writer wins"), proposal.version)
    with pytest.raises(InvalidTransition):
        any_store.update_proposal(replace(proposal, title="Second writer loses"), proposal.version)
    assert any_store.get_proposal(proposal.id).title == "First writer wins"


def test_listing_filters_by_parent(any_store):
    mine = any_store.insert_proposal(_proposal("org-1"))
    any_store.insert_proposal(_proposal("org-2"))
    assert [p.id for p in any_store.list_proposals("org-1")] == [mine.id]
    any_store.insert_review(
        Review(proposal_id=mine.id, reviewer_id="r", decision=ReviewDecision.APPROVE, reason="ok")
    )
    assert len(any_store.list_reviews(mine.id)) == 1
    assert any_store.list_reviews("other") == []


def test_find_organization_by_slug(any_store):
    org = any_store.insert_organization(Organization(name="Harbor", slug="harbor"))
    assert any_store.find_organization_by_slug("harbor") == org
    assert any_store.find_organization_by_slug("ridge") is None


def test_yaml_store_layout_and_corrupt_files(tmp_path):
    store = YamlStore(tmp_path / "data")
    proposal = store.insert_proposal(_proposal())
    path = store.record_path("proposals", proposal.id)
    assert path.exists()
    assert "Field study of shift work" in path.read_text()

    path.write_text("id: [unclosed\n")
    with pytest.raises(CollaboratorError):
        store.get_proposal(proposal.id)


def _review(proposal):
    return Review(
        proposal_id=proposal.id,
        reviewer_id="user-2",
        decision=ReviewDecision.APPROVE,
        reason="Looks sound",
    )


def test_conditional_update_stores_review_with_proposal(any_store):
    proposal = any_store.insert_proposal(_proposal())
    review = _review(proposal)
    any_store.update_proposal(replace(proposal, status=ProposalStatus.APPROVED), proposal.version, review=review)
    assert [r.id for r in any_store.list_reviews(proposal.id)] == [review.id]


def test_stale_update_stores_no_review(any_store):
    proposal = any_store.insert_proposal(_proposal())
    any_store.update_proposal(replace(proposal, title="First writer wins"), proposal.version)
    with pytest.raises(InvalidTransition):
        any_store.update_proposal(proposal, proposal.version, review=_review(proposal))
    assert any_store.list_reviews(proposal.id) == []


def test_revert_restores_previous_proposal_and_drops_review(any_store):
    proposal = any_store.insert_proposal(_proposal())
    review = _review(proposal)
    stored = any_store.update_proposal(
        replace(proposal, status=ProposalStatus.APPROVED), proposal.version, review=review
    )
    any_store.revert_proposal(proposal, stored.version, review=review)
    assert any_store.get_proposal(proposal.id) == proposal
    assert any_store.list_reviews(proposal.id) == []
    with pytest.raises(InvalidTransition):
        any_store.revert_proposal(proposal, stored.version)
