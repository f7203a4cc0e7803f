import uuid
from typing import List, Optional
from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlmodel import Session
from core.database import get_session
from models.issue import IssueStatus
from models.user import Actor, UserRole
from schemas.evidence import EvidenceRead
from schemas.issues import IssueCreate, IssueRead, RatingCreate, RatingRead
from services import evidence as evidence_service
from services import issues as issue_service
from services import ratings as rating_service
from services.notifications import notify
from utils.security import get_current_actor

router = APIRouter(tags=["Issues"])


@router.post("/", response_model=IssueRead, status_code=status.HTTP_201_CREATED)
def create_issue(
    body: IssueCreate,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_current_actor),
    session: Session = Depends(get_session),
):
    issue = issue_service.create_issue(
        session,
        actor,
        title=body.title,
        description=body.description,
        category=body.category,
        priority=body.priority,
        location=body.location,
        photo_url=body.photo_url,
    )
    background_tasks.add_task(notify, "issue_created", {"issue_id": issue.id, "category": issue.category})
    return issue


@router.get("/", response_model=List[IssueRead])
def list_issues(
    status_filter: Optional[IssueStatus] = Query(None, alias="status"),
    mine: bool = False,
    actor: Actor = Depends(get_current_actor),
    session: Session = Depends(get_session),
):
    """
    Retrieve issues, optionally filtered by status. ``mine`` limits reporters to
    the issues they filed and fixers to the issues assigned to them.
    """
    reporter_id = actor.id if mine and actor.role == UserRole.reporter else None
    fixer_id = actor.id if mine and actor.role == UserRole.fixer else None
    return issue_service.list_issues(session, status=status_filter, reporter_id=reporter_id, assigned_fixer_id=fixer_id)


@router.get("/{issue_id}", response_model=IssueRead)
def get_issue(
    issue_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    session: Session = Depends(get_session),
):
    return issue_service.get_issue(session, issue_id)


@router.get("/{issue_id}/evidence", response_model=EvidenceRead)
def get_issue_evidence(
    issue_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    session: Session = Depends(get_session),
):
    return evidence_service.get_evidence(session, actor, issue_id)


@router.post("/{issue_id}/rating", response_model=RatingRead, status_code=status.HTTP_201_CREATED)
def rate_fixer(
    issue_id: uuid.UUID,
    body: RatingCreate,
    actor: Actor = Depends(get_current_actor),
    session: Session = Depends(get_session),
):
    return rating_service.rate_fixer(session, actor, issue_id, body.rating, body.comment)
