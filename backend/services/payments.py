"""
Payouts to fixers and their withdrawals.

A payout is recorded as already completed (there is no gateway callback), so
recording it is what closes the issue. A fixer's available balance is never
stored: it is derived from completed payouts minus withdrawals that are
successful or still processing, and it is recomputed inside the same
transaction that inserts a withdrawal.
"""
import logging
import secrets
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import case, func, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from core import config
from core.database import atomic, guarded_update, lock_ledger, utcnow
from core.errors import (
    AlreadyPaid,
    AlreadyProcessed,
    InsufficientBalance,
    IssueNotResolved,
    NotAssigned,
    NotFound,
    ValidationError,
    WrongState,
)
from models.application import Application, ApplicationStatus
from models.audit_log import AuditAction
from models.evidence import Evidence, VerificationStatus
from models.issue import Issue, IssueStatus
from models.payment import Payment, PaymentMethod, PaymentStatus
from models.user import Actor, UserRole
from models.withdrawal import Withdrawal, WithdrawalMethod, WithdrawalStatus
from services import lifecycle
from services.audit import log_action
from services.capabilities import requires
from utils.money import parse_amount

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")
HELD_WITHDRAWAL_STATUSES = (WithdrawalStatus.successful, WithdrawalStatus.processing)


@dataclass
class PayoutItem:
    issue_id: uuid.UUID
    title: str
    reporter_id: uuid.UUID
    fixer_id: uuid.UUID
    proof_id: uuid.UUID
    completion_date: Optional[datetime]
    amount: Decimal


@dataclass
class PaymentRequest:
    issue_id: uuid.UUID
    amount: Decimal
    method: PaymentMethod = PaymentMethod.bkash
    reporter_id: Optional[uuid.UUID] = None
    fixer_id: Optional[uuid.UUID] = None
    transaction_id: Optional[str] = None


@dataclass
class FixerSummary:
    fixer_id: uuid.UUID
    current_balance: Decimal
    total_earnings: Decimal
    pending_amount: Decimal
    currency: str
    recent_incomes: List[Payment] = field(default_factory=list)


def _to_decimal(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(Decimal("0.01"))


def generate_transaction_id() -> str:
    return f"TX-{int(time.time() * 1000)}-{secrets.randbelow(10**6):06d}"


# ---------------------------------------------------------------------------
# Payouts
# ---------------------------------------------------------------------------

def _record(session: Session, actor: Actor, request: PaymentRequest) -> Payment:
    amount = parse_amount(request.amount)
    try:
        method = PaymentMethod(request.method)
    except ValueError:
        raise ValidationError(f"Invalid payment method: {request.method}")

    issue = lifecycle.load_issue(session, request.issue_id, lock=True)

    already = session.exec(select(Payment.id).where(Payment.issue_id == issue.id)).first()
    if already:
        raise AlreadyPaid()
    if issue.status != IssueStatus.resolved:
        raise IssueNotResolved(f"Issue is '{issue.status.value}'; only resolved issues can be paid")
    proof = session.exec(
        select(Evidence.id).where(Evidence.issue_id == issue.id, Evidence.status == VerificationStatus.approved)
    ).first()
    if not proof:
        raise IssueNotResolved("Issue has no approved proof")

    if request.reporter_id is not None and request.reporter_id != issue.reporter_id:
        raise ValidationError("Reporter does not match the issue")
    if request.fixer_id is not None and request.fixer_id != issue.assigned_fixer_id:
        raise ValidationError("Fixer is not the one assigned to the issue")

    payment = Payment(
        issue_id=issue.id,
        reporter_id=issue.reporter_id,
        fixer_id=issue.assigned_fixer_id,
        amount=amount,
        method=method,
        status=PaymentStatus.completed,
        transaction_id=request.transaction_id or generate_transaction_id(),
        payment_date=utcnow(),
    )
    session.add(payment)
    try:
        session.flush()
    except IntegrityError:
        raise AlreadyPaid()

    lifecycle.attempt_transition(session, issue.id, lifecycle.Trigger.payment_completed, actor)
    log_action(
        session,
        actor,
        AuditAction.RECORDED_PAYMENT,
        f"Paid {amount} {config.CURRENCY} to fixer {issue.assigned_fixer_id} via {method.value}",
        issue.id,
    )
    return payment


@requires(UserRole.arbiter)
def record_payment(
    session: Session,
    actor: Actor,
    issue_id: uuid.UUID,
    amount,
    method: PaymentMethod = PaymentMethod.bkash,
    reporter_id: Optional[uuid.UUID] = None,
    fixer_id: Optional[uuid.UUID] = None,
    transaction_id: Optional[str] = None,
) -> Payment:
    request = PaymentRequest(issue_id, amount, method, reporter_id, fixer_id, transaction_id)
    with atomic(session):
        payment = _record(session, actor, request)
    session.refresh(payment)
    logger.info("Payment %s recorded for issue %s (%s)", payment.transaction_id, issue_id, payment.amount)
    return payment


@requires(UserRole.arbiter)
def record_payments(session: Session, actor: Actor, requests: List[PaymentRequest]) -> List[Payment]:
    """Pay several resolved issues at once. One failure rolls back the whole batch."""
    if not requests:
        raise ValidationError("No payments provided")
    with atomic(session):
        payments = [_record(session, actor, request) for request in requests]
    for payment in payments:
        session.refresh(payment)
    logger.info("Recorded %d payments", len(payments))
    return payments


def list_pending_payouts(session: Session) -> List[PayoutItem]:
    """Resolved issues with approved proof and no payout yet, priced at the accepted bid."""
    accepted_cost = (
        select(Application.estimated_cost)
        .where(Application.issue_id == Issue.id, Application.status == ApplicationStatus.accepted)
        .limit(1)
        .scalar_subquery()
    )
    paid = select(Payment.id).where(Payment.issue_id == Issue.id).exists()
    statement = (
        select(Issue, Evidence, accepted_cost)
        .join(Evidence, Evidence.issue_id == Issue.id)
        .where(
            Issue.status == IssueStatus.resolved,
            Evidence.status == VerificationStatus.approved,
            ~paid,
        )
        .order_by(Evidence.verified_at.desc())
    )
    items = []
    for issue, evidence, cost in session.exec(statement).all():
        amount = _to_decimal(cost)
        if amount <= 0:
            continue
        items.append(
            PayoutItem(
                issue_id=issue.id,
                title=issue.title,
                reporter_id=issue.reporter_id,
                fixer_id=issue.assigned_fixer_id,
                proof_id=evidence.id,
                completion_date=evidence.verified_at,
                amount=amount,
            )
        )
    return items


# ---------------------------------------------------------------------------
# Balance
# ---------------------------------------------------------------------------

def _earnings(session: Session, fixer_id: uuid.UUID) -> Decimal:
    total = session.exec(
        select(func.coalesce(func.sum(Payment.amount), 0)).where(
            Payment.fixer_id == fixer_id, Payment.status == PaymentStatus.completed
        )
    ).one()
    return _to_decimal(total)


def _withdrawn(session: Session, fixer_id: uuid.UUID) -> Decimal:
    total = session.exec(
        select(func.coalesce(func.sum(Withdrawal.amount), 0)).where(
            Withdrawal.fixer_id == fixer_id, Withdrawal.status.in_(HELD_WITHDRAWAL_STATUSES)
        )
    ).one()
    return _to_decimal(total)


def compute_balance(session: Session, fixer_id: uuid.UUID) -> Decimal:
    return max(ZERO, _earnings(session, fixer_id) - _withdrawn(session, fixer_id))


@requires(UserRole.fixer, UserRole.arbiter)
def get_balance(session: Session, actor: Actor, fixer_id: Optional[uuid.UUID] = None) -> Decimal:
    return compute_balance(session, _resolve_fixer(actor, fixer_id))


def _resolve_fixer(actor: Actor, fixer_id: Optional[uuid.UUID]) -> uuid.UUID:
    # Fixers see their own ledger; arbiters may look at anyone's
    if actor.role == UserRole.arbiter and fixer_id is not None:
        return fixer_id
    if actor.role != UserRole.fixer:
        raise ValidationError("fixer_id is required")
    if fixer_id is not None and fixer_id != actor.id:
        raise NotAssigned("Fixers can only read their own ledger")
    return actor.id


@requires(UserRole.fixer, UserRole.arbiter)
def get_fixer_summary(session: Session, actor: Actor, fixer_id: Optional[uuid.UUID] = None) -> FixerSummary:
    fixer_id = _resolve_fixer(actor, fixer_id)
    totals = session.exec(
        select(
            func.coalesce(func.sum(case((Payment.status == PaymentStatus.completed, Payment.amount))), 0),
            func.coalesce(
                func.sum(
                    case(
                        (Payment.status.in_((PaymentStatus.pending, PaymentStatus.processing)), Payment.amount)
                    )
                ),
                0,
            ),
        ).where(Payment.fixer_id == fixer_id)
    ).one()
    total_earnings, pending_amount = _to_decimal(totals[0]), _to_decimal(totals[1])
    recent = session.exec(
        select(Payment)
        .where(Payment.fixer_id == fixer_id, Payment.status == PaymentStatus.completed)
        .order_by(Payment.payment_date.desc())
        .limit(10)
    ).all()
    return FixerSummary(
        fixer_id=fixer_id,
        current_balance=max(ZERO, total_earnings - _withdrawn(session, fixer_id)),
        total_earnings=total_earnings,
        pending_amount=pending_amount,
        currency=config.CURRENCY,
        recent_incomes=list(recent),
    )


# ---------------------------------------------------------------------------
# Withdrawals
# ---------------------------------------------------------------------------

@requires(UserRole.fixer)
def request_withdrawal(
    session: Session,
    actor: Actor,
    method: WithdrawalMethod,
    account_number: str,
    amount,
) -> Withdrawal:
    try:
        method = WithdrawalMethod(method)
    except ValueError:
        raise ValidationError("Invalid method")
    if not account_number or not account_number.strip():
        raise ValidationError("Account number is required")
    amount = parse_amount(amount)

    with atomic(session):
        # Balance read and insert share one lock so two requests cannot both spend it
        lock_ledger(session, f"ledger:{actor.id}")
        available = compute_balance(session, actor.id)
        if amount > available:
            raise InsufficientBalance(requested=amount, available=available)

        withdrawal = Withdrawal(
            fixer_id=actor.id,
            method=method,
            account_number=account_number.strip(),
            amount=amount,
            status=WithdrawalStatus.processing,
            requested_at=utcnow(),
        )
        session.add(withdrawal)
        session.flush()
        log_action(
            session,
            actor,
            AuditAction.REQUESTED_WITHDRAWAL,
            f"Withdrawal of {amount} {config.CURRENCY} via {method.value}",
        )

    session.refresh(withdrawal)
    logger.info("Withdrawal %s of %s requested by %s", withdrawal.id, amount, actor.label)
    return withdrawal


@requires(UserRole.arbiter)
def settle_withdrawal(
    session: Session,
    actor: Actor,
    withdrawal_id: uuid.UUID,
    successful: bool,
    transaction_id: Optional[str] = None,
) -> Withdrawal:
    outcome = WithdrawalStatus.successful if successful else WithdrawalStatus.failed
    with atomic(session):
        withdrawal = session.exec(
            select(Withdrawal).where(Withdrawal.id == withdrawal_id).execution_options(populate_existing=True)
        ).first()
        if not withdrawal:
            raise NotFound("Withdrawal", withdrawal_id)
        if withdrawal.status == outcome:
            raise AlreadyProcessed(f"Withdrawal is already {outcome.value}")
        if withdrawal.status != WithdrawalStatus.processing:
            raise WrongState(withdrawal.status, f"mark withdrawal {outcome.value}")

        lock_ledger(session, f"ledger:{withdrawal.fixer_id}")
        matched = guarded_update(
            session,
            update(Withdrawal)
            .where(Withdrawal.id == withdrawal_id, Withdrawal.status == WithdrawalStatus.processing)
            .values(
                status=outcome,
                processed_at=utcnow(),
                transaction_id=transaction_id or (generate_transaction_id() if successful else None),
            ),
        )
        if matched == 0:
            raise AlreadyProcessed()
        log_action(session, actor, AuditAction.SETTLED_WITHDRAWAL, f"Withdrawal {withdrawal_id} {outcome.value}")

    session.refresh(withdrawal)
    logger.info("Withdrawal %s marked %s", withdrawal_id, outcome.value)
    return withdrawal


def list_withdrawals(session: Session, fixer_id: uuid.UUID, limit: int = 10) -> List[Withdrawal]:
    return list(
        session.exec(
            select(Withdrawal)
            .where(Withdrawal.fixer_id == fixer_id)
            .order_by(Withdrawal.requested_at.desc())
            .limit(limit)
        ).all()
    )
