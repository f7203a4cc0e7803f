import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel
from models.application import ApplicationStatus


class ApplicationCreate(BaseModel):
    estimated_cost: Decimal
    estimated_time: str
    proposal: str


class ApplicationReview(BaseModel):
    feedback: Optional[str] = None


class ApplicationRead(BaseModel):
    id: uuid.UUID
    issue_id: uuid.UUID
    fixer_id: uuid.UUID
    estimated_cost: Decimal
    estimated_time: str
    proposal: str
    status: ApplicationStatus
    feedback: Optional[str]
    reviewed_by: Optional[uuid.UUID]
    applied_at: datetime
    reviewed_at: Optional[datetime]

    class Config:
        from_attributes = True


class AcceptedApplicationRead(BaseModel):
    application: ApplicationRead
    issue_status: str
    assigned_fixer_id: uuid.UUID
    rejected_rivals: int


class DeletedApplicationRead(BaseModel):
    issue_id: uuid.UUID
    issue_reopened: bool
    remaining_active_applications: int
