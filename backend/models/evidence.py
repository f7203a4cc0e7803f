import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlmodel import SQLModel, Field
import enum


class VerificationStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


# One proof per issue, enforced by the unique issue_id
class Evidence(SQLModel, table=True):
    __tablename__ = "issue_proof"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)
    issue_id: uuid.UUID = Field(foreign_key="issue.id", unique=True, nullable=False)
    fixer_id: uuid.UUID = Field(index=True, nullable=False)
    photo_url: str
    description: str
    status: VerificationStatus = Field(default=VerificationStatus.pending, index=True, nullable=False)
    feedback: Optional[str] = None
    verified_by: Optional[uuid.UUID] = None
    attempts: int = Field(default=1, nullable=False)
    submitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), nullable=False)
    verified_at: Optional[datetime] = None
