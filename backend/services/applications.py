"""
Bids (applications) fixers place on an issue.

Accepting a bid is a cascade: the winner becomes ``accepted``, the issue is
assigned to its fixer, and every rival still ``submitted`` is rejected, all
in one transaction.
"""
import logging
import uuid
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from core.database import atomic, guarded_update, utcnow
from core.errors import (
    AlreadyAccepted,
    AlreadyProcessed,
    DuplicateBid,
    IssueNotOpen,
    NotFound,
    ValidationError,
    WrongState,
)
from models.application import Application, ApplicationStatus
from models.audit_log import AuditAction
from models.issue import Issue, IssueStatus
from models.user import Actor, UserRole
from services import lifecycle
from services.audit import log_action
from services.capabilities import requires
from utils.money import parse_amount

logger = logging.getLogger(__name__)

OPEN_FOR_BIDS = {IssueStatus.submitted, IssueStatus.applied}
RIVAL_REJECTION_FEEDBACK = "Application rejected due to another worker being selected"


@dataclass
class AcceptResult:
    application: Application
    issue: Issue
    rejected_rivals: int


@dataclass
class DeleteResult:
    issue_id: uuid.UUID
    reopened: bool
    remaining_active: int


def _load_application(session: Session, issue_id: uuid.UUID, application_id: uuid.UUID) -> Application:
    application = session.exec(
        select(Application)
        .where(Application.id == application_id, Application.issue_id == issue_id)
        .execution_options(populate_existing=True)
    ).first()
    if not application:
        raise NotFound("Application", application_id)
    return application


@requires(UserRole.fixer)
def submit_application(
    session: Session,
    actor: Actor,
    issue_id: uuid.UUID,
    estimated_cost,
    estimated_time: str,
    proposal: str,
) -> Application:
    cost = parse_amount(estimated_cost, "Estimated cost")
    if not estimated_time or not estimated_time.strip():
        raise ValidationError("Estimated time is required")
    if not proposal or not proposal.strip():
        raise ValidationError("Proposal description cannot be empty")

    with atomic(session):
        issue = lifecycle.load_issue(session, issue_id, lock=True)
        if issue.status not in OPEN_FOR_BIDS:
            raise IssueNotOpen()

        existing = session.exec(
            select(Application.id).where(Application.issue_id == issue_id, Application.fixer_id == actor.id)
        ).first()
        if existing:
            raise DuplicateBid()

        application = Application(
            issue_id=issue_id,
            fixer_id=actor.id,
            estimated_cost=cost,
            estimated_time=estimated_time.strip(),
            proposal=proposal.strip(),
            status=ApplicationStatus.submitted,
        )
        session.add(application)
        try:
            session.flush()
        except IntegrityError:
            raise DuplicateBid()

        lifecycle.attempt_transition(session, issue_id, lifecycle.Trigger.bid_submitted, actor)
        log_action(
            session,
            actor,
            AuditAction.SUBMITTED_APPLICATION,
            f"Bid of {cost} submitted by {actor.label}",
            issue_id,
        )

    session.refresh(application)
    logger.info("Application %s submitted on issue %s by %s", application.id, issue_id, actor.label)
    return application


@requires(UserRole.arbiter)
def accept_application(
    session: Session,
    actor: Actor,
    issue_id: uuid.UUID,
    application_id: uuid.UUID,
    feedback: Optional[str] = None,
) -> AcceptResult:
    with atomic(session):
        lifecycle.load_issue(session, issue_id, lock=True)
        application = _load_application(session, issue_id, application_id)

        if application.status == ApplicationStatus.accepted:
            raise AlreadyAccepted()
        if application.status != ApplicationStatus.submitted:
            raise WrongState(application.status, "accept application")

        now = utcnow()
        matched = guarded_update(
            session,
            update(Application)
            .where(Application.id == application_id, Application.status == ApplicationStatus.submitted)
            .values(
                status=ApplicationStatus.accepted,
                feedback=feedback.strip() if feedback else None,
                reviewed_by=actor.id,
                reviewed_at=now,
            ),
        )
        if matched == 0:
            raise AlreadyProcessed("Application not found or already processed")

        transition = lifecycle.attempt_transition(
            session,
            issue_id,
            lifecycle.Trigger.bid_accepted,
            actor,
            {"fixer_id": application.fixer_id},
        )

        rejected = guarded_update(
            session,
            update(Application)
            .where(
                Application.issue_id == issue_id,
                Application.id != application_id,
                Application.status == ApplicationStatus.submitted,
            )
            .values(
                status=ApplicationStatus.rejected,
                feedback=RIVAL_REJECTION_FEEDBACK,
                reviewed_by=actor.id,
                reviewed_at=now,
            ),
        )
        log_action(
            session,
            actor,
            AuditAction.ACCEPTED_APPLICATION,
            f"Accepted application {application_id}; {rejected} rival(s) rejected",
            issue_id,
        )

    session.refresh(application)
    logger.info(
        "Application %s accepted on issue %s; %d rival(s) rejected", application_id, issue_id, rejected
    )
    return AcceptResult(application=application, issue=transition.issue, rejected_rivals=rejected)


@requires(UserRole.arbiter)
def reject_application(
    session: Session,
    actor: Actor,
    issue_id: uuid.UUID,
    application_id: uuid.UUID,
    feedback: str,
) -> Application:
    if not feedback or not feedback.strip():
        raise ValidationError("Feedback is required when rejecting an application")

    with atomic(session):
        application = _load_application(session, issue_id, application_id)

        if application.status == ApplicationStatus.rejected:
            raise AlreadyProcessed("Application is already rejected")
        if application.status == ApplicationStatus.accepted:
            raise WrongState(application.status, "reject application", "Cannot reject an accepted application")

        matched = guarded_update(
            session,
            update(Application)
            .where(Application.id == application_id, Application.status == ApplicationStatus.submitted)
            .values(
                status=ApplicationStatus.rejected,
                feedback=feedback.strip(),
                reviewed_by=actor.id,
                reviewed_at=utcnow(),
            ),
        )
        if matched == 0:
            raise AlreadyProcessed("Application not found or already processed")
        log_action(session, actor, AuditAction.REJECTED_APPLICATION, f"Rejected application {application_id}", issue_id)

    session.refresh(application)
    return application


@requires(UserRole.fixer)
def delete_application(session: Session, actor: Actor, issue_id: uuid.UUID) -> DeleteResult:
    """
    Withdraw the caller's rejected bid. If no active bid is left on an
    ``applied`` issue, the issue is re-opened for bidding.
    """
    with atomic(session):
        issue = lifecycle.load_issue(session, issue_id, lock=True)
        application = session.exec(
            select(Application)
            .where(Application.issue_id == issue_id, Application.fixer_id == actor.id)
            .execution_options(populate_existing=True)
        ).first()
        if not application:
            raise NotFound("Application", issue_id)
        if application.status != ApplicationStatus.rejected:
            raise WrongState(
                application.status,
                "delete application",
                f"Only rejected applications can be deleted. Current status: {application.status.value}",
            )

        deleted = guarded_update(
            session,
            delete(Application).where(
                Application.id == application.id, Application.status == ApplicationStatus.rejected
            ),
        )
        if deleted == 0:
            raise AlreadyProcessed("Application could not be deleted. It may have been already processed.")
        session.expunge(application)

        remaining = lifecycle.count_active_applications(session, issue_id)
        reopened = False
        if remaining == 0 and issue.status == IssueStatus.applied:
            lifecycle.reopen(session, issue_id, actor)
            reopened = True
        log_action(
            session,
            actor,
            AuditAction.DELETED_APPLICATION,
            f"Rejected application withdrawn by {actor.label}" + ("; issue re-opened" if reopened else ""),
            issue_id,
        )

    logger.info("Application on issue %s deleted by %s (reopened=%s)", issue_id, actor.label, reopened)
    return DeleteResult(issue_id=issue_id, reopened=reopened, remaining_active=remaining)


def list_applications(session: Session, issue_id: uuid.UUID) -> List[Application]:
    lifecycle.load_issue(session, issue_id)
    return list(
        session.exec(
            select(Application).where(Application.issue_id == issue_id).order_by(Application.applied_at)
        ).all()
    )


def list_fixer_applications(session: Session, fixer_id: uuid.UUID) -> List[Application]:
    return list(
        session.exec(
            select(Application).where(Application.fixer_id == fixer_id).order_by(Application.applied_at.desc())
        ).all()
    )


def list_pending_applications(session: Session) -> List[Application]:
    return list(
        session.exec(
            select(Application)
            .where(Application.status == ApplicationStatus.submitted)
            .order_by(Application.applied_at)
        ).all()
    )

