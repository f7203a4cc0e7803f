import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlmodel import SQLModel, Field
import enum


class AuditAction(str, enum.Enum):
    # Issue lifecycle
    CREATED_ISSUE = "created_issue"
    ISSUE_TRANSITION = "issue_transition"

    # Application-related actions
    SUBMITTED_APPLICATION = "submitted_application"
    ACCEPTED_APPLICATION = "accepted_application"
    REJECTED_APPLICATION = "rejected_application"
    DELETED_APPLICATION = "deleted_application"

    # Proof-related actions
    SUBMITTED_PROOF = "submitted_proof"
    APPROVED_PROOF = "approved_proof"
    REJECTED_PROOF = "rejected_proof"

    # Ledger
    RECORDED_PAYMENT = "recorded_payment"
    REQUESTED_WITHDRAWAL = "requested_withdrawal"
    SETTLED_WITHDRAWAL = "settled_withdrawal"

    RATED_FIXER = "rated_fixer"


class AuditLog(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)
    action: AuditAction
    details: Optional[str] = None

    user_id: uuid.UUID = Field(index=True)  # who did the action
    issue_id: Optional[uuid.UUID] = Field(default=None, index=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
