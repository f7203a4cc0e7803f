import uuid
from typing import List
from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlmodel import Session
from core import config
from core.database import get_session
from models.user import Actor
from schemas.applications import ApplicationCreate, ApplicationRead, DeletedApplicationRead
from schemas.evidence import EvidenceCreate, EvidenceRead
from schemas.issues import FixerRatingsRead, RatingRead, TransitionRead
from schemas.payments import BalanceRead, FixerSummaryRead, PaymentRead, WithdrawalCreate, WithdrawalRead
from services import applications as application_service
from services import evidence as evidence_service
from services import issues as issue_service
from services import payments as payment_service
from services import ratings as rating_service
from services.notifications import notify
from utils.security import fixer_required, get_current_actor

router = APIRouter(tags=["Worker"])


# Bid on an open issue
@router.post(
    "/issues/{issue_id}/applications",
    response_model=ApplicationRead,
    status_code=status.HTTP_201_CREATED,
)
def apply_for_issue(
    issue_id: uuid.UUID,
    body: ApplicationCreate,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_current_actor),
    session: Session = Depends(get_session),
):
    application = application_service.submit_application(
        session, actor, issue_id, body.estimated_cost, body.estimated_time, body.proposal
    )
    background_tasks.add_task(
        notify, "application_submitted", {"issue_id": issue_id, "application_id": application.id}
    )
    return application


# Withdraw a rejected bid
@router.delete("/issues/{issue_id}/applications", response_model=DeletedApplicationRead)
def delete_application(
    issue_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    session: Session = Depends(get_session),
):
    result = application_service.delete_application(session, actor, issue_id)
    return DeletedApplicationRead(
        issue_id=result.issue_id,
        issue_reopened=result.reopened,
        remaining_active_applications=result.remaining_active,
    )


@router.get("/applications", response_model=List[ApplicationRead])
def my_applications(
    actor: Actor = Depends(fixer_required),
    session: Session = Depends(get_session),
):
    return application_service.list_fixer_applications(session, actor.id)


@router.post("/issues/{issue_id}/start", response_model=TransitionRead)
def start_work(
    issue_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    session: Session = Depends(get_session),
):
    result = issue_service.start_work(session, actor, issue_id)
    return TransitionRead(
        issue_id=result.issue.id, previous=result.previous, status=result.status, applied=result.applied
    )


# Submit proof of completion
@router.post(
    "/issues/{issue_id}/evidence",
    response_model=EvidenceRead,
    status_code=status.HTTP_201_CREATED,
)
def submit_evidence(
    issue_id: uuid.UUID,
    body: EvidenceCreate,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_current_actor),
    session: Session = Depends(get_session),
):
    evidence = evidence_service.submit_evidence(session, actor, issue_id, body.photo_url, body.description)
    background_tasks.add_task(notify, "proof_submitted", {"issue_id": issue_id, "proof_id": evidence.id})
    return evidence


@router.get("/summary", response_model=FixerSummaryRead)
def my_summary(
    actor: Actor = Depends(get_current_actor),
    session: Session = Depends(get_session),
):
    summary = payment_service.get_fixer_summary(session, actor)
    return FixerSummaryRead(
        fixer_id=summary.fixer_id,
        current_balance=summary.current_balance,
        total_earnings=summary.total_earnings,
        pending_amount=summary.pending_amount,
        currency=summary.currency,
        recent_incomes=[PaymentRead.model_validate(payment) for payment in summary.recent_incomes],
    )


@router.get("/balance", response_model=BalanceRead)
def my_balance(
    actor: Actor = Depends(get_current_actor),
    session: Session = Depends(get_session),
):
    balance = payment_service.get_balance(session, actor)
    return BalanceRead(fixer_id=actor.id, balance=balance, currency=config.CURRENCY)


@router.post("/withdrawals", response_model=WithdrawalRead, status_code=status.HTTP_201_CREATED)
def request_withdrawal(
    body: WithdrawalCreate,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_current_actor),
    session: Session = Depends(get_session),
):
    withdrawal = payment_service.request_withdrawal(session, actor, body.method, body.account_number, body.amount)
    background_tasks.add_task(
        notify, "withdrawal_requested", {"withdrawal_id": withdrawal.id, "amount": withdrawal.amount}
    )
    return withdrawal


@router.get("/withdrawals", response_model=List[WithdrawalRead])
def my_withdrawals(
    limit: int = 10,
    actor: Actor = Depends(fixer_required),
    session: Session = Depends(get_session),
):
    return payment_service.list_withdrawals(session, actor.id, limit=limit)


@router.get("/ratings", response_model=FixerRatingsRead)
def my_ratings(
    actor: Actor = Depends(fixer_required),
    session: Session = Depends(get_session),
):
    return FixerRatingsRead(
        fixer_id=actor.id,
        average=rating_service.average_rating(session, actor.id),
        ratings=[RatingRead.model_validate(r) for r in rating_service.fixer_ratings(session, actor.id)],
    )
