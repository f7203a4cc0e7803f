"""
Proof of completion submitted by the assigned fixer and verified by an arbiter.

There is exactly one proof row per issue. With ALLOW_EVIDENCE_RESUBMISSION on,
a rejected proof may be replaced in place while the issue is back in progress;
otherwise a second submission always fails with AlreadySubmitted.
"""
import logging
import uuid
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from core import config
from core.database import atomic, guarded_update, utcnow
from core.errors import AlreadyProcessed, AlreadySubmitted, NotAssigned, NotFound, ValidationError, WrongState
from models.audit_log import AuditAction
from models.evidence import Evidence, VerificationStatus
from models.issue import IssueStatus
from models.user import Actor, UserRole
from services import lifecycle
from services.audit import log_action
from services.capabilities import ensure_assignee, requires

logger = logging.getLogger(__name__)

SUBMITTABLE = {IssueStatus.assigned, IssueStatus.in_progress}


def _find_for_issue(session: Session, issue_id: uuid.UUID) -> Optional[Evidence]:
    return session.exec(
        select(Evidence).where(Evidence.issue_id == issue_id).execution_options(populate_existing=True)
    ).first()


def _load(session: Session, proof_id: uuid.UUID) -> Evidence:
    evidence = session.exec(
        select(Evidence).where(Evidence.id == proof_id).execution_options(populate_existing=True)
    ).first()
    if not evidence:
        raise NotFound("Proof", proof_id)
    return evidence


@requires(UserRole.fixer)
def submit_evidence(
    session: Session,
    actor: Actor,
    issue_id: uuid.UUID,
    photo_url: str,
    description: str,
) -> Evidence:
    if not photo_url or not photo_url.strip():
        raise ValidationError("Proof photo is required")
    if not description or not description.strip():
        raise ValidationError("Proof description is required")

    with atomic(session):
        issue = lifecycle.load_issue(session, issue_id, lock=True)
        ensure_assignee(actor, issue.assigned_fixer_id)
        existing = _find_for_issue(session, issue_id)
        if existing is not None and not _may_resubmit(existing):
            raise AlreadySubmitted()
        if issue.status not in SUBMITTABLE:
            raise WrongState(
                issue.status,
                "submit proof",
                f"Cannot submit proof for an issue with status '{issue.status.value}'",
            )

        if existing is not None:
            evidence = _resubmit(session, existing, photo_url.strip(), description.strip())
        else:
            evidence = Evidence(
                issue_id=issue_id,
                fixer_id=actor.id,
                photo_url=photo_url.strip(),
                description=description.strip(),
                status=VerificationStatus.pending,
            )
            session.add(evidence)
            try:
                session.flush()
            except IntegrityError:
                raise AlreadySubmitted()

        lifecycle.attempt_transition(session, issue_id, lifecycle.Trigger.evidence_submitted, actor)
        log_action(
            session,
            actor,
            AuditAction.SUBMITTED_PROOF,
            f"Proof submitted by {actor.label} (attempt {evidence.attempts})",
            issue_id,
        )

    session.refresh(evidence)
    logger.info("Proof %s submitted for issue %s by %s", evidence.id, issue_id, actor.label)
    return evidence


def _may_resubmit(evidence: Evidence) -> bool:
    return config.ALLOW_EVIDENCE_RESUBMISSION and evidence.status == VerificationStatus.rejected


def _resubmit(session: Session, evidence: Evidence, photo_url: str, description: str) -> Evidence:
    matched = guarded_update(
        session,
        update(Evidence)
        .where(Evidence.id == evidence.id, Evidence.status == VerificationStatus.rejected)
        .values(
            photo_url=photo_url,
            description=description,
            status=VerificationStatus.pending,
            feedback=None,
            verified_by=None,
            verified_at=None,
            attempts=Evidence.attempts + 1,
            submitted_at=utcnow(),
        ),
    )
    if matched == 0:
        raise AlreadySubmitted()
    session.refresh(evidence)
    return evidence


def _verify(
    session: Session,
    actor: Actor,
    proof_id: uuid.UUID,
    outcome: VerificationStatus,
    feedback: Optional[str],
) -> Evidence:
    if outcome == VerificationStatus.approved:
        trigger, action = lifecycle.Trigger.evidence_approved, AuditAction.APPROVED_PROOF
    else:
        trigger, action = lifecycle.Trigger.evidence_rejected, AuditAction.REJECTED_PROOF

    with atomic(session):
        evidence = _load(session, proof_id)
        lifecycle.load_issue(session, evidence.issue_id, lock=True)
        evidence = _load(session, proof_id)

        if evidence.status == outcome:
            raise AlreadyProcessed(f"Proof is already {outcome.value}")
        if evidence.status != VerificationStatus.pending:
            raise WrongState(
                evidence.status,
                f"{outcome.value} proof",
                f"Cannot verify a proof in '{evidence.status.value}' status",
            )

        matched = guarded_update(
            session,
            update(Evidence)
            .where(Evidence.id == proof_id, Evidence.status == VerificationStatus.pending)
            .values(
                status=outcome,
                feedback=feedback.strip() if feedback else None,
                verified_by=actor.id,
                verified_at=utcnow(),
            ),
        )
        if matched == 0:
            raise AlreadyProcessed("Proof not found or already processed")

        lifecycle.attempt_transition(session, evidence.issue_id, trigger, actor)
        log_action(session, actor, action, f"Proof {proof_id} {outcome.value}", evidence.issue_id)

    session.refresh(evidence)
    logger.info("Proof %s %s by %s", proof_id, outcome.value, actor.label)
    return evidence


@requires(UserRole.arbiter)
def approve_evidence(session: Session, actor: Actor, proof_id: uuid.UUID, feedback: Optional[str] = None) -> Evidence:
    return _verify(session, actor, proof_id, VerificationStatus.approved, feedback)


@requires(UserRole.arbiter)
def reject_evidence(session: Session, actor: Actor, proof_id: uuid.UUID, feedback: str) -> Evidence:
    if not feedback or not feedback.strip():
        raise ValidationError("Feedback is required when rejecting a proof")
    return _verify(session, actor, proof_id, VerificationStatus.rejected, feedback)


def get_evidence(session: Session, actor: Actor, issue_id: uuid.UUID) -> Evidence:
    issue = lifecycle.load_issue(session, issue_id)
    evidence = _find_for_issue(session, issue_id)
    if evidence is None:
        raise NotFound("Proof", issue_id)
    if actor.role == UserRole.arbiter:
        return evidence
    if actor.role == UserRole.reporter and issue.reporter_id == actor.id:
        return evidence
    if actor.role == UserRole.fixer and evidence.fixer_id == actor.id:
        return evidence
    raise NotAssigned("You may not view proof for this issue")


def list_pending_evidence(session: Session) -> List[Evidence]:
    return list(
        session.exec(
            select(Evidence)
            .where(Evidence.status == VerificationStatus.pending)
            .order_by(Evidence.submitted_at.desc())
        ).all()
    )
