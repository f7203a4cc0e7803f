import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from sqlalchemy import CheckConstraint, UniqueConstraint
from sqlmodel import SQLModel, Field
import enum


class ApplicationStatus(str, enum.Enum):
    submitted = "submitted"
    accepted = "accepted"
    rejected = "rejected"


class Application(SQLModel, table=True):
    __table_args__ = (
        UniqueConstraint("issue_id", "fixer_id", name="uk_application_issue_fixer"),
        CheckConstraint("estimated_cost > 0", name="chk_application_cost"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)
    issue_id: uuid.UUID = Field(foreign_key="issue.id", index=True, nullable=False)
    fixer_id: uuid.UUID = Field(index=True, nullable=False)
    estimated_cost: Decimal = Field(max_digits=10, decimal_places=2)
    estimated_time: str
    proposal: str
    status: ApplicationStatus = Field(default=ApplicationStatus.submitted, index=True, nullable=False)
    feedback: Optional[str] = None
    reviewed_by: Optional[uuid.UUID] = None
    applied_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), nullable=False)
    reviewed_at: Optional[datetime] = None
