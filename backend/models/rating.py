import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from sqlalchemy import CheckConstraint
from sqlmodel import SQLModel, Field


class Rating(SQLModel, table=True):
    __table_args__ = (CheckConstraint("rating >= 1 AND rating <= 5", name="chk_rating_range"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)
    issue_id: uuid.UUID = Field(foreign_key="issue.id", unique=True, nullable=False)
    reporter_id: uuid.UUID = Field(index=True, nullable=False)
    fixer_id: uuid.UUID = Field(index=True, nullable=False)
    rating: Decimal = Field(max_digits=2, decimal_places=1)
    comment: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), nullable=False)
