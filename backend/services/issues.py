import logging
import uuid
from typing import List, Optional

from sqlmodel import Session, select

from core.database import atomic
from core.errors import ValidationError
from models.audit_log import AuditAction
from models.issue import Issue, IssuePriority, IssueStatus
from models.user import Actor, UserRole
from services import lifecycle
from services.audit import log_action
from services.capabilities import requires

logger = logging.getLogger(__name__)


def _require_text(value: Optional[str], field: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{field} is required")
    return value.strip()


@requires(UserRole.reporter)
def create_issue(
    session: Session,
    actor: Actor,
    title: str,
    description: str,
    category: str,
    priority: IssuePriority = IssuePriority.medium,
    location: Optional[str] = None,
    photo_url: Optional[str] = None,
) -> Issue:
    issue = Issue(
        reporter_id=actor.id,
        title=_require_text(title, "title"),
        description=_require_text(description, "description"),
        category=_require_text(category, "category"),
        priority=priority,
        location=location,
        photo_url=photo_url,
        status=IssueStatus.submitted,
    )
    with atomic(session):
        session.add(issue)
        session.flush()
        log_action(session, actor, AuditAction.CREATED_ISSUE, f"Issue '{issue.title}' reported", issue.id)
    session.refresh(issue)
    logger.info("Issue %s reported by %s", issue.id, actor.label)
    return issue


def get_issue(session: Session, issue_id: uuid.UUID) -> Issue:
    return lifecycle.load_issue(session, issue_id)


def list_issues(
    session: Session,
    status: Optional[IssueStatus] = None,
    reporter_id: Optional[uuid.UUID] = None,
    assigned_fixer_id: Optional[uuid.UUID] = None,
) -> List[Issue]:
    statement = select(Issue)
    if status is not None:
        statement = statement.where(Issue.status == status)
    if reporter_id is not None:
        statement = statement.where(Issue.reporter_id == reporter_id)
    if assigned_fixer_id is not None:
        statement = statement.where(Issue.assigned_fixer_id == assigned_fixer_id)
    return list(session.exec(statement.order_by(Issue.created_at.desc())).all())


@requires(UserRole.fixer)
def start_work(session: Session, actor: Actor, issue_id: uuid.UUID) -> lifecycle.TransitionResult:
    with atomic(session):
        result = lifecycle.attempt_transition(session, issue_id, lifecycle.Trigger.work_started, actor)
    return result
