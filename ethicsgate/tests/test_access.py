from dataclasses import replace

import pytest

from ethicsgate.access import AccessEvaluator, ProposalAction, can_perform
from ethicsgate.state import ProposalStatus

ALL_STATUSES = list(ProposalStatus)
ALL_ACTIONS = list(ProposalAction)


@pytest.fixture
def evaluator():
    return AccessEvaluator()


@pytest.mark.parametrize("status", ALL_STATUSES)
def test_other_tenant_is_always_denied(world, proposal_in, evaluator, status):
    proposal = proposal_in(status)
    outsiders = [world.outsider_admin, world.outsider_researcher, world.outsider_reviewer]
    for outsider in outsiders:
        # Even an outsider whose id matches the author/reviewer fields is denied
        spoofed = replace(proposal, submitted_by=outsider.id, assigned_reviewers=[outsider.id])
        for action in ALL_ACTIONS:
            assert not evaluator.can_perform(outsider, action, proposal)
            assert not evaluator.can_perform(outsider, action, spoofed)


@pytest.mark.parametrize("status", ALL_STATUSES)
def test_researcher_never_edits_or_submits_others_proposals(world, proposal_in, evaluator, status):
    proposal = proposal_in(status)
    for action in (ProposalAction.EDIT, ProposalAction.SUBMIT, ProposalAction.RESUBMIT, ProposalAction.VIEW):
        assert not evaluator.can_perform(world.other_researcher, action, proposal)


def test_author_edits_and_submits_only_drafts(world, proposal_in, evaluator):
    for status in ALL_STATUSES:
        proposal = proposal_in(status)
        expected = status == ProposalStatus.DRAFT
        assert evaluator.can_perform(world.author, ProposalAction.EDIT, proposal) is expected
        assert evaluator.can_perform(world.author, ProposalAction.SUBMIT, proposal) is expected
        assert evaluator.can_perform(world.author, ProposalAction.VIEW, proposal)
        assert not evaluator.can_perform(world.author, ProposalAction.RECORD_REVIEW, proposal)
        assert not evaluator.can_perform(world.author, ProposalAction.ASSIGN_REVIEWERS, proposal)


def test_author_resubmits_only_when_sent_back(world, proposal_in, evaluator):
    for status in ALL_STATUSES:
        allowed = evaluator.can_perform(world.author, ProposalAction.RESUBMIT, proposal_in(status))
        assert allowed is (status == ProposalStatus.REVISE_AND_RESUBMIT)


@pytest.mark.parametrize("status", ALL_STATUSES)
def test_reviewer_acts_only_when_assigned_and_under_review(world, proposal_in, evaluator, status):
    assigned = proposal_in(status, reviewers=[world.r1.id])
    for action in (ProposalAction.ANNOTATE, ProposalAction.RECORD_REVIEW, ProposalAction.RESOLVE_ANNOTATION):
        expected = status == ProposalStatus.UNDER_REVIEW
        assert evaluator.can_perform(world.r1, action, assigned) is expected
        assert not evaluator.can_perform(world.r2, action, assigned)
    assert evaluator.can_perform(world.r1, ProposalAction.VIEW, assigned)
    assert not evaluator.can_perform(world.r2, ProposalAction.VIEW, assigned)
    assert not evaluator.can_perform(world.r1, ProposalAction.EDIT, assigned)


def test_removing_reviewer_revokes_access_immediately(world, proposal_in, evaluator):
    proposal = proposal_in(ProposalStatus.UNDER_REVIEW, reviewers=[world.r1.id, world.r2.id])
    assert evaluator.can_perform(world.r2, ProposalAction.RECORD_REVIEW, proposal)
    trimmed = replace(proposal, assigned_reviewers=[world.r1.id])
    assert not evaluator.can_perform(world.r2, ProposalAction.RECORD_REVIEW, trimmed)
    assert not evaluator.can_perform(world.r2, ProposalAction.ANNOTATE, trimmed)
    assert not evaluator.can_perform(world.r2, ProposalAction.VIEW, trimmed)


def test_admin_assigns_only_submitted_and_never_authors_or_reviews(world, proposal_in, evaluator):
    for status in ALL_STATUSES:
        proposal = proposal_in(status, reviewers=[world.admin.id])
        assert evaluator.can_perform(world.admin, ProposalAction.ASSIGN_REVIEWERS, proposal) is (
            status == ProposalStatus.SUBMITTED
        )
        assert evaluator.can_perform(world.admin, ProposalAction.VIEW_ANY, proposal)
        assert evaluator.can_perform(world.admin, ProposalAction.VIEW, proposal)
        for action in (
            ProposalAction.EDIT,
            ProposalAction.SUBMIT,
            ProposalAction.RECORD_REVIEW,
            ProposalAction.ANNOTATE,
        ):
            assert not evaluator.can_perform(world.admin, action, proposal)


def test_reply_follows_view(world, proposal_in, evaluator):
    proposal = proposal_in(ProposalStatus.UNDER_REVIEW)
    assert evaluator.can_perform(world.author, ProposalAction.REPLY, proposal)
    assert evaluator.can_perform(world.r1, ProposalAction.REPLY, proposal)
    assert evaluator.can_perform(world.admin, ProposalAction.REPLY, proposal)
    assert not evaluator.can_perform(world.r2, ProposalAction.REPLY, proposal)
    assert not evaluator.can_perform(world.other_researcher, ProposalAction.REPLY, proposal)


def test_create_and_administer_predicates(world, evaluator):
    assert evaluator.can_create(world.author, world.o1.id)
    assert not evaluator.can_create(world.author, world.o2.id)
    assert not evaluator.can_create(world.r1, world.o1.id)
    assert not evaluator.can_create(world.admin, world.o1.id)
    assert evaluator.can_administer(world.admin, world.o1.id)
    assert not evaluator.can_administer(world.admin, world.o2.id)
    assert not evaluator.can_administer(world.author, world.o1.id)


def test_visible_proposals_scoped_by_role(world, proposal_in, evaluator):
    own = proposal_in(ProposalStatus.DRAFT)
    assigned = proposal_in(ProposalStatus.UNDER_REVIEW, reviewers=[world.r1.id])
    foreign = replace(proposal_in(ProposalStatus.SUBMITTED), organization_id=world.o2.id)
    proposals = [own, assigned, foreign]

    assert evaluator.visible_proposals(world.author, proposals) == [own, assigned]
    assert evaluator.visible_proposals(world.other_researcher, proposals) == []
    assert evaluator.visible_proposals(world.r1, proposals) == [assigned]
    assert evaluator.visible_proposals(world.admin, proposals) == [own, assigned]
    assert evaluator.visible_proposals(world.outsider_admin, proposals) == [foreign]


def test_module_level_helper_matches_evaluator(world, proposal_in):
    proposal = proposal_in(ProposalStatus.DRAFT)
    assert can_perform(world.author, ProposalAction.SUBMIT, proposal)
    assert not can_perform(world.r1, ProposalAction.SUBMIT, proposal)
