import logging
import uuid
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from core.database import atomic
from core.errors import AlreadyProcessed, IllegalState, NotAssigned, ValidationError
from models.audit_log import AuditAction
from models.issue import IssueStatus
from models.rating import Rating
from models.user import Actor, UserRole
from services import lifecycle
from services.audit import log_action
from services.capabilities import requires

logger = logging.getLogger(__name__)


@requires(UserRole.reporter)
def rate_fixer(
    session: Session,
    actor: Actor,
    issue_id: uuid.UUID,
    rating,
    comment: Optional[str] = None,
) -> Rating:
    try:
        score = Decimal(str(rating)).quantize(Decimal("0.1"))
    except (InvalidOperation, ValueError):
        raise ValidationError("Rating must be a number")
    if not score.is_finite() or score < 1 or score > 5:
        raise ValidationError("Rating must be between 1 and 5")

    with atomic(session):
        issue = lifecycle.load_issue(session, issue_id, lock=True)
        if issue.reporter_id != actor.id:
            raise NotAssigned("Only the reporter of this issue can rate it")
        if issue.status != IssueStatus.closed:
            raise IllegalState(issue.status, "rate fixer", "Only closed issues can be rated")
        if session.exec(select(Rating.id).where(Rating.issue_id == issue_id)).first():
            raise AlreadyProcessed("This issue has already been rated")

        entry = Rating(
            issue_id=issue_id,
            reporter_id=actor.id,
            fixer_id=issue.assigned_fixer_id,
            rating=score,
            comment=comment.strip() if comment else None,
        )
        session.add(entry)
        try:
            session.flush()
        except IntegrityError:
            raise AlreadyProcessed("This issue has already been rated")
        log_action(session, actor, AuditAction.RATED_FIXER, f"Rated fixer {entry.fixer_id}: {score}", issue_id)

    session.refresh(entry)
    return entry


def fixer_ratings(session: Session, fixer_id: uuid.UUID) -> List[Rating]:
    statement = select(Rating).where(Rating.fixer_id == fixer_id).order_by(Rating.created_at.desc())
    return list(session.exec(statement).all())


def average_rating(session: Session, fixer_id: uuid.UUID) -> Optional[Decimal]:
    value = session.exec(select(func.avg(Rating.rating)).where(Rating.fixer_id == fixer_id)).one()
    if value is None:
        return None
    return Decimal(str(value)).quantize(Decimal("0.01"))
