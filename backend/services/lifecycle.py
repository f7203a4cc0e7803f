"""
Issue lifecycle coordinator.

An issue moves forward through

    submitted -> applied -> assigned -> in_progress -> under_review -> resolved -> closed

with two edges back: under_review -> in_progress when proof is rejected, and
applied -> submitted when the last active bid is withdrawn. ``Issue.status``
is written here and nowhere else. Every transition re-reads the issue row
under lock inside the caller's transaction and writes it with a guarded
``UPDATE ... WHERE status = <current>``, so two actors racing on the same
issue cannot both succeed.
"""
import enum
import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func, update
from sqlmodel import Session, select

from core.database import guarded_update, utcnow
from core.errors import ActiveBidsRemain, AlreadyProcessed, IllegalState, NotFound, ValidationError
from models.application import Application, ApplicationStatus
from models.audit_log import AuditAction
from models.issue import Issue, IssueStatus
from models.user import Actor, UserRole
from services.audit import log_action
from services.capabilities import ensure_assignee, ensure_role

logger = logging.getLogger(__name__)


class Trigger(str, enum.Enum):
    bid_submitted = "bid_submitted"
    bid_accepted = "bid_accepted"
    work_started = "work_started"
    evidence_submitted = "evidence_submitted"
    evidence_approved = "evidence_approved"
    evidence_rejected = "evidence_rejected"
    payment_completed = "payment_completed"
    bids_withdrawn = "bids_withdrawn"


@dataclass(frozen=True)
class Rule:
    sources: frozenset
    target: IssueStatus
    roles: tuple
    assignee_only: bool = False


TRANSITIONS = {
    Trigger.bid_submitted: Rule(
        frozenset({IssueStatus.submitted, IssueStatus.applied}), IssueStatus.applied, (UserRole.fixer,)
    ),
    Trigger.bid_accepted: Rule(
        frozenset({IssueStatus.submitted, IssueStatus.applied}), IssueStatus.assigned, (UserRole.arbiter,)
    ),
    Trigger.work_started: Rule(
        frozenset({IssueStatus.assigned}), IssueStatus.in_progress, (UserRole.fixer,), assignee_only=True
    ),
    Trigger.evidence_submitted: Rule(
        frozenset({IssueStatus.assigned, IssueStatus.in_progress}),
        IssueStatus.under_review,
        (UserRole.fixer,),
        assignee_only=True,
    ),
    Trigger.evidence_approved: Rule(
        frozenset({IssueStatus.under_review}), IssueStatus.resolved, (UserRole.arbiter,)
    ),
    Trigger.evidence_rejected: Rule(
        frozenset({IssueStatus.under_review}), IssueStatus.in_progress, (UserRole.arbiter,)
    ),
    Trigger.payment_completed: Rule(
        frozenset({IssueStatus.resolved}), IssueStatus.closed, (UserRole.arbiter,)
    ),
    # Compensating edge: re-open for bidding once no active bid remains
    Trigger.bids_withdrawn: Rule(
        frozenset({IssueStatus.applied}), IssueStatus.submitted, (UserRole.fixer, UserRole.arbiter)
    ),
}

# Every (from, to) pair an issue may ever move along
EDGES = frozenset(
    (source, rule.target) for rule in TRANSITIONS.values() for source in rule.sources if source != rule.target
)


@dataclass
class TransitionResult:
    issue: Issue
    trigger: Trigger
    previous: IssueStatus
    status: IssueStatus
    applied: bool = True


def load_issue(session: Session, issue_id: uuid.UUID, lock: bool = False) -> Issue:
    statement = select(Issue).where(Issue.id == issue_id).execution_options(populate_existing=True)
    if lock:
        statement = statement.with_for_update()
    issue = session.exec(statement).first()
    if not issue:
        raise NotFound("Issue", issue_id)
    return issue


def count_active_applications(session: Session, issue_id: uuid.UUID) -> int:
    statement = select(func.count()).select_from(Application).where(
        Application.issue_id == issue_id,
        Application.status != ApplicationStatus.rejected,
    )
    return session.exec(statement).one()


def attempt_transition(
    session: Session,
    issue_id: uuid.UUID,
    trigger: Trigger,
    actor: Actor,
    payload: Optional[dict] = None,
) -> TransitionResult:
    """
    Validate and apply one lifecycle transition inside the caller's transaction.

    Raises WrongRole, NotAssigned, NotFound, IllegalState, AlreadyProcessed or
    ActiveBidsRemain; nothing is written when it raises. ``bid_submitted`` on an
    issue that is already ``applied`` is legal but changes nothing
    (``applied=False``).

    Payload keys: ``fixer_id`` for ``bid_accepted``.
    """
    rule = TRANSITIONS[trigger]
    ensure_role(actor, *rule.roles)

    issue = load_issue(session, issue_id, lock=True)
    current = issue.status

    if rule.assignee_only:
        ensure_assignee(actor, issue.assigned_fixer_id)

    if trigger == Trigger.bid_submitted and current == IssueStatus.applied:
        return TransitionResult(issue, trigger, current, current, applied=False)

    if current not in rule.sources:
        if current == rule.target:
            raise AlreadyProcessed(f"Issue is already '{current.value}'")
        raise IllegalState(current, trigger)

    values = {"status": rule.target, "updated_at": utcnow()}

    if trigger == Trigger.bid_accepted:
        fixer_id = (payload or {}).get("fixer_id")
        if fixer_id is None:
            raise ValidationError("fixer_id is required to assign an issue")
        values["assigned_fixer_id"] = fixer_id

    if trigger == Trigger.bids_withdrawn:
        remaining = count_active_applications(session, issue.id)
        if remaining:
            raise ActiveBidsRemain(remaining)

    matched = guarded_update(
        session,
        update(Issue).where(Issue.id == issue.id, Issue.status == current).values(**values),
    )
    if matched == 0:
        raise AlreadyProcessed()
    session.refresh(issue)

    log_action(
        session,
        performed_by=actor,
        action=AuditAction.ISSUE_TRANSITION,
        details=f"{trigger.value}: {current.value} -> {rule.target.value}",
        issue_id=issue.id,
    )
    logger.info(
        "Issue %s %s: %s -> %s (by %s)", issue.id, trigger.value, current.value, rule.target.value, actor.label
    )
    return TransitionResult(issue, trigger, current, rule.target)


def reopen(session: Session, issue_id: uuid.UUID, actor: Actor) -> TransitionResult:
    return attempt_transition(session, issue_id, Trigger.bids_withdrawn, actor)
