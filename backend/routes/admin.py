import uuid
from decimal import Decimal
from typing import List, Optional
from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlmodel import Session, select
from core import config
from core.database import get_session
from models.audit_log import AuditAction, AuditLog
from models.user import Actor
from schemas.applications import AcceptedApplicationRead, ApplicationRead, ApplicationReview
from schemas.audit import AuditLogRead
from schemas.evidence import EvidenceRead, EvidenceReview
from schemas.payments import (
    BalanceRead,
    FixerSummaryRead,
    PaymentBatch,
    PaymentCreate,
    PaymentRead,
    PayoutItemRead,
    PendingPayoutsRead,
    WithdrawalRead,
    WithdrawalSettle,
)
from services import applications as application_service
from services import evidence as evidence_service
from services import payments as payment_service
from services.notifications import notify
from utils.security import arbiter_required

router = APIRouter(tags=["Admin"])


# ---------------------------------------------------------------------------
# Applications
# ---------------------------------------------------------------------------

@router.get("/applications/pending", response_model=List[ApplicationRead])
def pending_applications(
    session: Session = Depends(get_session),
    admin: Actor = Depends(arbiter_required),
):
    return application_service.list_pending_applications(session)


@router.get("/issues/{issue_id}/applications", response_model=List[ApplicationRead])
def issue_applications(
    issue_id: uuid.UUID,
    session: Session = Depends(get_session),
    admin: Actor = Depends(arbiter_required),
):
    return application_service.list_applications(session, issue_id)


@router.post(
    "/issues/{issue_id}/applications/{application_id}/accept",
    response_model=AcceptedApplicationRead,
)
def accept_application(
    issue_id: uuid.UUID,
    application_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    body: Optional[ApplicationReview] = None,
    session: Session = Depends(get_session),
    admin: Actor = Depends(arbiter_required),
):
    result = application_service.accept_application(
        session, admin, issue_id, application_id, body.feedback if body else None
    )
    background_tasks.add_task(
        notify,
        "application_accepted",
        {"issue_id": issue_id, "fixer_id": result.application.fixer_id},
    )
    return AcceptedApplicationRead(
        application=ApplicationRead.model_validate(result.application),
        issue_status=result.issue.status.value,
        assigned_fixer_id=result.issue.assigned_fixer_id,
        rejected_rivals=result.rejected_rivals,
    )


@router.post(
    "/issues/{issue_id}/applications/{application_id}/reject",
    response_model=ApplicationRead,
)
def reject_application(
    issue_id: uuid.UUID,
    application_id: uuid.UUID,
    body: ApplicationReview,
    session: Session = Depends(get_session),
    admin: Actor = Depends(arbiter_required),
):
    return application_service.reject_application(session, admin, issue_id, application_id, body.feedback)


# ---------------------------------------------------------------------------
# Proof of completion
# ---------------------------------------------------------------------------

@router.get("/evidence/pending", response_model=List[EvidenceRead])
def pending_evidence(
    session: Session = Depends(get_session),
    admin: Actor = Depends(arbiter_required),
):
    return evidence_service.list_pending_evidence(session)


@router.post("/evidence/{proof_id}/approve", response_model=EvidenceRead)
def approve_evidence(
    proof_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    body: Optional[EvidenceReview] = None,
    session: Session = Depends(get_session),
    admin: Actor = Depends(arbiter_required),
):
    evidence = evidence_service.approve_evidence(session, admin, proof_id, body.feedback if body else None)
    background_tasks.add_task(notify, "proof_approved", {"issue_id": evidence.issue_id, "proof_id": proof_id})
    return evidence


@router.post("/evidence/{proof_id}/reject", response_model=EvidenceRead)
def reject_evidence(
    proof_id: uuid.UUID,
    body: EvidenceReview,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    admin: Actor = Depends(arbiter_required),
):
    evidence = evidence_service.reject_evidence(session, admin, proof_id, body.feedback)
    background_tasks.add_task(notify, "proof_rejected", {"issue_id": evidence.issue_id, "proof_id": proof_id})
    return evidence


# ---------------------------------------------------------------------------
# Payouts and withdrawals
# ---------------------------------------------------------------------------

@router.get("/payouts/pending", response_model=PendingPayoutsRead)
def pending_payouts(
    session: Session = Depends(get_session),
    admin: Actor = Depends(arbiter_required),
):
    items = payment_service.list_pending_payouts(session)
    return PendingPayoutsRead(
        remaining_balance=sum((item.amount for item in items), Decimal("0.00")),
        currency=config.CURRENCY,
        work_items=[PayoutItemRead.model_validate(item) for item in items],
    )


@router.post("/payments", response_model=PaymentRead, status_code=status.HTTP_201_CREATED)
def record_payment(
    body: PaymentCreate,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    admin: Actor = Depends(arbiter_required),
):
    payment = payment_service.record_payment(
        session,
        admin,
        body.issue_id,
        body.amount,
        method=body.method,
        reporter_id=body.reporter_id,
        fixer_id=body.fixer_id,
        transaction_id=body.transaction_id,
    )
    background_tasks.add_task(
        notify, "payment_completed", {"issue_id": payment.issue_id, "transaction_id": payment.transaction_id}
    )
    return payment


# All payments in the batch succeed or none do
@router.post("/payments/batch", response_model=List[PaymentRead], status_code=status.HTTP_201_CREATED)
def record_payments(
    body: PaymentBatch,
    session: Session = Depends(get_session),
    admin: Actor = Depends(arbiter_required),
):
    requests = [
        payment_service.PaymentRequest(
            issue_id=item.issue_id,
            amount=item.amount,
            method=item.method,
            reporter_id=item.reporter_id,
            fixer_id=item.fixer_id,
            transaction_id=item.transaction_id,
        )
        for item in body.payments
    ]
    return payment_service.record_payments(session, admin, requests)


@router.get("/fixers/{fixer_id}/balance", response_model=BalanceRead)
def fixer_balance(
    fixer_id: uuid.UUID,
    session: Session = Depends(get_session),
    admin: Actor = Depends(arbiter_required),
):
    balance = payment_service.get_balance(session, admin, fixer_id)
    return BalanceRead(fixer_id=fixer_id, balance=balance, currency=config.CURRENCY)


@router.get("/fixers/{fixer_id}/summary", response_model=FixerSummaryRead)
def fixer_summary(
    fixer_id: uuid.UUID,
    session: Session = Depends(get_session),
    admin: Actor = Depends(arbiter_required),
):
    summary = payment_service.get_fixer_summary(session, admin, fixer_id)
    return FixerSummaryRead(
        fixer_id=summary.fixer_id,
        current_balance=summary.current_balance,
        total_earnings=summary.total_earnings,
        pending_amount=summary.pending_amount,
        currency=summary.currency,
        recent_incomes=[PaymentRead.model_validate(payment) for payment in summary.recent_incomes],
    )


@router.get("/fixers/{fixer_id}/withdrawals", response_model=List[WithdrawalRead])
def fixer_withdrawals(
    fixer_id: uuid.UUID,
    limit: int = 10,
    session: Session = Depends(get_session),
    admin: Actor = Depends(arbiter_required),
):
    return payment_service.list_withdrawals(session, fixer_id, limit=limit)


@router.post("/withdrawals/{withdrawal_id}/settle", response_model=WithdrawalRead)
def settle_withdrawal(
    withdrawal_id: uuid.UUID,
    body: WithdrawalSettle,
    session: Session = Depends(get_session),
    admin: Actor = Depends(arbiter_required),
):
    return payment_service.settle_withdrawal(
        session, admin, withdrawal_id, body.successful, transaction_id=body.transaction_id
    )


# ---------------------------------------------------------------------------
# Audit trail
# ---------------------------------------------------------------------------

@router.get("/audit-logs", response_model=List[AuditLogRead])
def list_audit_logs(
    issue_id: Optional[uuid.UUID] = None,
    action: Optional[AuditAction] = None,
    limit: int = 100,
    session: Session = Depends(get_session),
    admin: Actor = Depends(arbiter_required),
):
    statement = select(AuditLog)
    if issue_id is not None:
        statement = statement.where(AuditLog.issue_id == issue_id)
    if action is not None:
        statement = statement.where(AuditLog.action == action)
    return session.exec(statement.order_by(AuditLog.created_at.desc()).limit(limit)).all()
