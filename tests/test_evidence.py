import pytest

from core import config
from core.errors import AlreadyProcessed, AlreadySubmitted, NotAssigned, ValidationError, WrongRole, WrongState
from models.evidence import VerificationStatus
from models.issue import IssueStatus
from services import evidence, issues


def _submit(session, fixer, issue_id, photo="proofs/after.jpg"):
    return evidence.submit_evidence(session, fixer, issue_id, photo, "Replaced the fitting")


def test_submit_moves_issue_under_review(session, assigned_issue, fixer1):
    proof = _submit(session, fixer1, assigned_issue.id)
    assert proof.status == VerificationStatus.pending
    assert proof.fixer_id == fixer1.id
    assert proof.attempts == 1
    assert issues.get_issue(session, assigned_issue.id).status == IssueStatus.under_review


def test_submit_from_in_progress(session, assigned_issue, fixer1):
    issues.start_work(session, fixer1, assigned_issue.id)
    _submit(session, fixer1, assigned_issue.id)
    assert issues.get_issue(session, assigned_issue.id).status == IssueStatus.under_review


def test_only_assigned_fixer_submits(session, assigned_issue, fixer2):
    with pytest.raises(NotAssigned):
        _submit(session, fixer2, assigned_issue.id)
    assert issues.get_issue(session, assigned_issue.id).status == IssueStatus.assigned


def test_unassigned_issue_has_no_assignee(session, make_issue, fixer1):
    issue = make_issue()
    with pytest.raises(NotAssigned):
        _submit(session, fixer1, issue.id)


def test_photo_and_description_required(session, assigned_issue, fixer1):
    with pytest.raises(ValidationError):
        evidence.submit_evidence(session, fixer1, assigned_issue.id, "", "desc")
    with pytest.raises(ValidationError):
        evidence.submit_evidence(session, fixer1, assigned_issue.id, "proofs/a.jpg", " ")


def test_second_submission_is_already_submitted(session, assigned_issue, fixer1):
    _submit(session, fixer1, assigned_issue.id)
    with pytest.raises(AlreadySubmitted):
        _submit(session, fixer1, assigned_issue.id, "proofs/again.jpg")


def test_approve_resolves_issue(session, assigned_issue, fixer1, arbiter):
    proof = _submit(session, fixer1, assigned_issue.id)
    approved = evidence.approve_evidence(session, arbiter, proof.id, "Looks good")
    assert approved.status == VerificationStatus.approved
    assert approved.verified_by == arbiter.id
    assert approved.verified_at is not None
    assert issues.get_issue(session, assigned_issue.id).status == IssueStatus.resolved


def test_approve_twice_is_already_processed(session, assigned_issue, fixer1, arbiter):
    proof = _submit(session, fixer1, assigned_issue.id)
    evidence.approve_evidence(session, arbiter, proof.id)
    with pytest.raises(AlreadyProcessed):
        evidence.approve_evidence(session, arbiter, proof.id)


def test_reject_after_approve_is_wrong_state(session, assigned_issue, fixer1, arbiter):
    proof = _submit(session, fixer1, assigned_issue.id)
    evidence.approve_evidence(session, arbiter, proof.id)
    with pytest.raises(WrongState):
        evidence.reject_evidence(session, arbiter, proof.id, "Blurry photo")
    assert issues.get_issue(session, assigned_issue.id).status == IssueStatus.resolved


def test_reject_requires_feedback(session, assigned_issue, fixer1, arbiter):
    proof = _submit(session, fixer1, assigned_issue.id)
    with pytest.raises(ValidationError):
        evidence.reject_evidence(session, arbiter, proof.id, "")


def test_fixer_cannot_verify(session, assigned_issue, fixer1):
    proof = _submit(session, fixer1, assigned_issue.id)
    with pytest.raises(WrongRole):
        evidence.approve_evidence(session, fixer1, proof.id)


def test_rejection_sends_issue_back_and_blocks_resubmission(session, assigned_issue, fixer1, arbiter):
    proof = _submit(session, fixer1, assigned_issue.id)
    rejected = evidence.reject_evidence(session, arbiter, proof.id, "Blurry photo")

    assert rejected.status == VerificationStatus.rejected
    assert rejected.feedback == "Blurry photo"
    assert issues.get_issue(session, assigned_issue.id).status == IssueStatus.in_progress

    with pytest.raises(AlreadySubmitted):
        _submit(session, fixer1, assigned_issue.id, "proofs/better.jpg")
    assert issues.get_issue(session, assigned_issue.id).status == IssueStatus.in_progress


def test_resubmission_replaces_rejected_proof_when_enabled(
    session, assigned_issue, fixer1, arbiter, monkeypatch
):
    monkeypatch.setattr(config, "ALLOW_EVIDENCE_RESUBMISSION", True)
    proof = _submit(session, fixer1, assigned_issue.id)
    evidence.reject_evidence(session, arbiter, proof.id, "Blurry photo")

    again = _submit(session, fixer1, assigned_issue.id, "proofs/better.jpg")

    assert again.id == proof.id
    assert again.attempts == 2
    assert again.photo_url == "proofs/better.jpg"
    assert again.status == VerificationStatus.pending
    assert again.feedback is None
    assert issues.get_issue(session, assigned_issue.id).status == IssueStatus.under_review


def test_pending_proof_cannot_be_replaced_even_when_enabled(session, assigned_issue, fixer1, monkeypatch):
    monkeypatch.setattr(config, "ALLOW_EVIDENCE_RESUBMISSION", True)
    _submit(session, fixer1, assigned_issue.id)
    with pytest.raises(AlreadySubmitted):
        _submit(session, fixer1, assigned_issue.id, "proofs/other.jpg")


def test_get_evidence_visibility(session, assigned_issue, fixer1, fixer2, reporter, arbiter):
    proof = _submit(session, fixer1, assigned_issue.id)
    for actor in (fixer1, reporter, arbiter):
        assert evidence.get_evidence(session, actor, assigned_issue.id).id == proof.id
    with pytest.raises(NotAssigned):
        evidence.get_evidence(session, fixer2, assigned_issue.id)


def test_pending_queue(session, assigned_issue, fixer1, arbiter):
    proof = _submit(session, fixer1, assigned_issue.id)
    assert [p.id for p in evidence.list_pending_evidence(session)] == [proof.id]
    evidence.approve_evidence(session, arbiter, proof.id)
    assert evidence.list_pending_evidence(session) == []
