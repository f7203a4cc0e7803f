from decimal import Decimal

import pytest

from core.errors import (
    AlreadyAccepted,
    AlreadyProcessed,
    DuplicateBid,
    IssueNotOpen,
    NotFound,
    ValidationError,
    WrongRole,
    WrongState,
)
from models.application import ApplicationStatus
from models.issue import IssueStatus
from services import applications, issues
from services.applications import RIVAL_REJECTION_FEEDBACK


def _bid(session, fixer, issue_id, cost="50"):
    return applications.submit_application(session, fixer, issue_id, Decimal(cost), "2 days", "I can fix this")


class TestSubmit:
    def test_first_bid_moves_issue_to_applied(self, session, make_issue, fixer1):
        issue = make_issue()
        application = _bid(session, fixer1, issue.id)
        assert application.status == ApplicationStatus.submitted
        assert issues.get_issue(session, issue.id).status == IssueStatus.applied

    def test_same_fixer_cannot_bid_twice(self, session, make_issue, fixer1):
        issue = make_issue()
        _bid(session, fixer1, issue.id)
        with pytest.raises(DuplicateBid):
            _bid(session, fixer1, issue.id, "45")
        assert len(applications.list_applications(session, issue.id)) == 1

    @pytest.mark.parametrize("cost", ["0", "-5", "abc", "NaN", "1e30", "123456789012", "100000000"])
    def test_cost_must_be_positive_number(self, session, make_issue, fixer1, cost):
        issue = make_issue()
        with pytest.raises(ValidationError):
            applications.submit_application(session, fixer1, issue.id, cost, "2 days", "proposal")
        assert issues.get_issue(session, issue.id).status == IssueStatus.submitted

    def test_proposal_is_required(self, session, make_issue, fixer1):
        issue = make_issue()
        with pytest.raises(ValidationError):
            applications.submit_application(session, fixer1, issue.id, "10", "2 days", "   ")

    def test_reporters_cannot_bid(self, session, make_issue, reporter):
        issue = make_issue()
        with pytest.raises(WrongRole):
            _bid(session, reporter, issue.id)

    def test_assigned_issue_takes_no_more_bids(self, session, assigned_issue, fixer1):
        from models.user import Actor, UserRole
        import uuid

        latecomer = Actor(id=uuid.uuid4(), role=UserRole.fixer, username="late")
        with pytest.raises(IssueNotOpen):
            _bid(session, latecomer, assigned_issue.id)

    def test_unknown_issue(self, session, fixer1):
        import uuid

        with pytest.raises(NotFound):
            _bid(session, fixer1, uuid.uuid4())


class TestAccept:
    def test_scenario_accept_cascades_to_rivals(self, session, make_issue, fixer1, fixer2, arbiter):
        issue = make_issue()
        first = _bid(session, fixer1, issue.id, "50")
        second = _bid(session, fixer2, issue.id, "60")

        result = applications.accept_application(session, arbiter, issue.id, first.id, "Best price")

        assert result.rejected_rivals == 1
        assert result.application.status == ApplicationStatus.accepted
        assert result.issue.status == IssueStatus.assigned
        assert result.issue.assigned_fixer_id == fixer1.id

        by_id = {a.id: a for a in applications.list_applications(session, issue.id)}
        assert by_id[second.id].status == ApplicationStatus.rejected
        assert by_id[second.id].feedback == RIVAL_REJECTION_FEEDBACK
        assert by_id[second.id].reviewed_by == arbiter.id
        assert not [a for a in by_id.values() if a.status == ApplicationStatus.submitted]

    def test_accepting_twice_is_already_accepted(self, session, make_issue, fixer1, arbiter):
        issue = make_issue()
        first = _bid(session, fixer1, issue.id)
        applications.accept_application(session, arbiter, issue.id, first.id)
        with pytest.raises(AlreadyAccepted):
            applications.accept_application(session, arbiter, issue.id, first.id)

    def test_rejected_rival_cannot_be_accepted_afterwards(self, session, make_issue, fixer1, fixer2, arbiter):
        issue = make_issue()
        first = _bid(session, fixer1, issue.id)
        second = _bid(session, fixer2, issue.id)
        applications.accept_application(session, arbiter, issue.id, first.id)
        with pytest.raises(WrongState):
            applications.accept_application(session, arbiter, issue.id, second.id)
        assert issues.get_issue(session, issue.id).assigned_fixer_id == fixer1.id

    def test_fixer_cannot_accept(self, session, make_issue, fixer1):
        issue = make_issue()
        first = _bid(session, fixer1, issue.id)
        with pytest.raises(WrongRole):
            applications.accept_application(session, fixer1, issue.id, first.id)

    def test_application_must_belong_to_issue(self, session, make_issue, fixer1, arbiter):
        issue = make_issue()
        other = make_issue("Blocked drain")
        bid = _bid(session, fixer1, other.id)
        with pytest.raises(NotFound):
            applications.accept_application(session, arbiter, issue.id, bid.id)


class TestReject:
    def test_reject_needs_feedback(self, session, make_issue, fixer1, arbiter):
        issue = make_issue()
        bid = _bid(session, fixer1, issue.id)
        with pytest.raises(ValidationError):
            applications.reject_application(session, arbiter, issue.id, bid.id, "")

    def test_reject_keeps_issue_applied(self, session, make_issue, fixer1, arbiter):
        issue = make_issue()
        bid = _bid(session, fixer1, issue.id)
        rejected = applications.reject_application(session, arbiter, issue.id, bid.id, "Too expensive")
        assert rejected.status == ApplicationStatus.rejected
        assert rejected.feedback == "Too expensive"
        assert issues.get_issue(session, issue.id).status == IssueStatus.applied

    def test_reject_twice_is_already_processed(self, session, make_issue, fixer1, arbiter):
        issue = make_issue()
        bid = _bid(session, fixer1, issue.id)
        applications.reject_application(session, arbiter, issue.id, bid.id, "No")
        with pytest.raises(AlreadyProcessed):
            applications.reject_application(session, arbiter, issue.id, bid.id, "No")

    def test_accepted_bid_cannot_be_rejected(self, session, assigned_issue, arbiter, fixer1):
        accepted = [
            a for a in applications.list_fixer_applications(session, fixer1.id)
            if a.status == ApplicationStatus.accepted
        ][0]
        with pytest.raises(WrongState):
            applications.reject_application(session, arbiter, assigned_issue.id, accepted.id, "Changed my mind")


class TestDelete:
    def test_last_active_bid_deleted_reopens_issue(self, session, make_issue, fixer1, arbiter):
        issue = make_issue()
        bid = _bid(session, fixer1, issue.id)
        applications.reject_application(session, arbiter, issue.id, bid.id, "Not qualified")

        result = applications.delete_application(session, fixer1, issue.id)

        assert result.reopened
        assert result.remaining_active == 0
        assert issues.get_issue(session, issue.id).status == IssueStatus.submitted
        assert applications.list_applications(session, issue.id) == []

    def test_delete_with_other_active_bid_leaves_issue_applied(
        self, session, make_issue, fixer1, fixer2, arbiter
    ):
        issue = make_issue()
        _bid(session, fixer1, issue.id)
        second = _bid(session, fixer2, issue.id)
        applications.reject_application(session, arbiter, issue.id, second.id, "Too slow")

        result = applications.delete_application(session, fixer2, issue.id)

        assert not result.reopened
        assert result.remaining_active == 1
        assert issues.get_issue(session, issue.id).status == IssueStatus.applied

    def test_rival_deletes_after_acceptance_without_reopening(self, session, assigned_issue, fixer2):
        result = applications.delete_application(session, fixer2, assigned_issue.id)
        assert not result.reopened
        assert issues.get_issue(session, assigned_issue.id).status == IssueStatus.assigned

    def test_only_rejected_bids_can_be_deleted(self, session, make_issue, fixer1):
        issue = make_issue()
        _bid(session, fixer1, issue.id)
        with pytest.raises(WrongState):
            applications.delete_application(session, fixer1, issue.id)

    def test_nothing_to_delete(self, session, make_issue, fixer1):
        issue = make_issue()
        with pytest.raises(NotFound):
            applications.delete_application(session, fixer1, issue.id)

    def test_fixer_can_bid_again_after_deleting(self, session, make_issue, fixer1, arbiter):
        issue = make_issue()
        bid = _bid(session, fixer1, issue.id)
        applications.reject_application(session, arbiter, issue.id, bid.id, "Try again")
        applications.delete_application(session, fixer1, issue.id)
        again = _bid(session, fixer1, issue.id, "40")
        assert again.estimated_cost == Decimal("40.00")
        assert issues.get_issue(session, issue.id).status == IssueStatus.applied
