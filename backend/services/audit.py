import logging
import uuid
from typing import Optional

from sqlmodel import Session

from models.audit_log import AuditAction, AuditLog
from models.user import Actor

logger = logging.getLogger(__name__)


def log_action(
    session: Session,
    performed_by: Actor,
    action: AuditAction,
    details: Optional[str] = None,
    issue_id: Optional[uuid.UUID] = None,
) -> AuditLog:
    # Written in the caller's transaction; it commits or rolls back with the change it describes
    audit = AuditLog(action=action, details=details, user_id=performed_by.id, issue_id=issue_id)
    session.add(audit)
    logger.debug("AUDIT: user=%s action=%s details=%s", performed_by.label, action.value, details)
    return audit
