import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from sqlalchemy import CheckConstraint
from sqlmodel import SQLModel, Field
import enum


class PaymentStatus(str, enum.Enum):
    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"
    refunded = "refunded"


class PaymentMethod(str, enum.Enum):
    cash = "cash"
    bkash = "bkash"
    nagad = "nagad"
    rocket = "rocket"
    bank_transfer = "bank_transfer"
    card = "card"


# Payout from the system to a fixer; at most one per issue
class Payment(SQLModel, table=True):
    __table_args__ = (CheckConstraint("amount > 0", name="chk_payment_amount"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)
    issue_id: uuid.UUID = Field(foreign_key="issue.id", unique=True, nullable=False)
    reporter_id: uuid.UUID = Field(index=True, nullable=False)
    fixer_id: uuid.UUID = Field(index=True, nullable=False)
    amount: Decimal = Field(max_digits=10, decimal_places=2)
    method: PaymentMethod = Field(default=PaymentMethod.bkash, nullable=False)
    status: PaymentStatus = Field(default=PaymentStatus.pending, index=True, nullable=False)
    transaction_id: Optional[str] = Field(default=None, index=True)
    payment_date: Optional[datetime] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), nullable=False)
