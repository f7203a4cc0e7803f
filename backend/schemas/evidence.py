import uuid
from datetime import datetime
from typing import Optional
from pydantic import BaseModel
from models.evidence import VerificationStatus


class EvidenceCreate(BaseModel):
    photo_url: str  # URL returned by file storage
    description: str


class EvidenceReview(BaseModel):
    feedback: Optional[str] = None


class EvidenceRead(BaseModel):
    id: uuid.UUID
    issue_id: uuid.UUID
    fixer_id: uuid.UUID
    photo_url: str
    description: str
    status: VerificationStatus
    feedback: Optional[str]
    verified_by: Optional[uuid.UUID]
    attempts: int
    submitted_at: datetime
    verified_at: Optional[datetime]

    class Config:
        from_attributes = True
