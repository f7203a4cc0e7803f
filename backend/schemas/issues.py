import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel
from models.issue import IssuePriority, IssueStatus


# Request schema for reporting an issue
class IssueCreate(BaseModel):
    title: str
    description: str
    category: str
    priority: IssuePriority = IssuePriority.medium
    location: Optional[str] = None
    photo_url: Optional[str] = None  # URL returned by file storage


class IssueRead(BaseModel):
    id: uuid.UUID
    reporter_id: uuid.UUID
    title: str
    description: str
    category: str
    priority: IssuePriority
    location: Optional[str]
    photo_url: Optional[str]
    status: IssueStatus
    assigned_fixer_id: Optional[uuid.UUID]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TransitionRead(BaseModel):
    issue_id: uuid.UUID
    previous: IssueStatus
    status: IssueStatus
    applied: bool


class RatingCreate(BaseModel):
    rating: Decimal
    comment: Optional[str] = None


class RatingRead(BaseModel):
    id: uuid.UUID
    issue_id: uuid.UUID
    fixer_id: uuid.UUID
    rating: Decimal
    comment: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class FixerRatingsRead(BaseModel):
    fixer_id: uuid.UUID
    average: Optional[Decimal]
    ratings: List[RatingRead]
