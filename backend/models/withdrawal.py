import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from sqlalchemy import CheckConstraint
from sqlmodel import SQLModel, Field
import enum


class WithdrawalStatus(str, enum.Enum):
    processing = "processing"
    successful = "successful"
    failed = "failed"


class WithdrawalMethod(str, enum.Enum):
    bkash = "bkash"
    nagad = "nagad"
    rocket = "rocket"
    sonali_bank = "sonali_bank"


class Withdrawal(SQLModel, table=True):
    __table_args__ = (CheckConstraint("amount > 0", name="chk_withdrawal_amount"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)
    fixer_id: uuid.UUID = Field(index=True, nullable=False)
    method: WithdrawalMethod
    account_number: str
    amount: Decimal = Field(max_digits=10, decimal_places=2)
    status: WithdrawalStatus = Field(default=WithdrawalStatus.processing, index=True, nullable=False)
    transaction_id: Optional[str] = None
    requested_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), nullable=False)
    processed_at: Optional[datetime] = None
