import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlmodel import SQLModel, Field
import enum


class IssueStatus(str, enum.Enum):
    submitted = "submitted"        # Reported, open for bids
    applied = "applied"            # At least one bid received
    assigned = "assigned"          # Arbiter accepted a bid
    in_progress = "in_progress"    # Fixer started work
    under_review = "under_review"  # Proof submitted, awaiting verification
    resolved = "resolved"          # Proof approved
    closed = "closed"              # Paid out


class IssuePriority(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"


class Issue(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)
    reporter_id: uuid.UUID = Field(index=True, nullable=False)
    title: str
    description: str
    category: str = Field(index=True)
    priority: IssuePriority = Field(default=IssuePriority.medium, nullable=False)
    location: Optional[str] = None
    photo_url: Optional[str] = None  # reference returned by file storage
    status: IssueStatus = Field(default=IssueStatus.submitted, index=True, nullable=False)
    assigned_fixer_id: Optional[uuid.UUID] = Field(default=None, index=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), nullable=False)
