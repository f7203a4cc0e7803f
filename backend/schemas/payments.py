import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel
from models.payment import PaymentMethod, PaymentStatus
from models.withdrawal import WithdrawalMethod, WithdrawalStatus


class PaymentCreate(BaseModel):
    issue_id: uuid.UUID
    amount: Decimal
    method: PaymentMethod = PaymentMethod.bkash
    reporter_id: Optional[uuid.UUID] = None
    fixer_id: Optional[uuid.UUID] = None
    transaction_id: Optional[str] = None


class PaymentBatch(BaseModel):
    payments: List[PaymentCreate]


class PaymentRead(BaseModel):
    id: uuid.UUID
    issue_id: uuid.UUID
    reporter_id: uuid.UUID
    fixer_id: uuid.UUID
    amount: Decimal
    method: PaymentMethod
    status: PaymentStatus
    transaction_id: Optional[str]
    payment_date: Optional[datetime]

    class Config:
        from_attributes = True


class PayoutItemRead(BaseModel):
    issue_id: uuid.UUID
    title: str
    reporter_id: uuid.UUID
    fixer_id: uuid.UUID
    proof_id: uuid.UUID
    completion_date: Optional[datetime]
    amount: Decimal

    class Config:
        from_attributes = True


class PendingPayoutsRead(BaseModel):
    remaining_balance: Decimal
    currency: str
    work_items: List[PayoutItemRead]


class BalanceRead(BaseModel):
    fixer_id: uuid.UUID
    balance: Decimal
    currency: str


class FixerSummaryRead(BaseModel):
    fixer_id: uuid.UUID
    current_balance: Decimal
    total_earnings: Decimal
    pending_amount: Decimal
    currency: str
    recent_incomes: List[PaymentRead]

    class Config:
        from_attributes = True


class WithdrawalCreate(BaseModel):
    method: WithdrawalMethod
    account_number: str
    amount: Decimal


class WithdrawalSettle(BaseModel):
    successful: bool
    transaction_id: Optional[str] = None


class WithdrawalRead(BaseModel):
    id: uuid.UUID
    fixer_id: uuid.UUID
    method: WithdrawalMethod
    account_number: str
    amount: Decimal
    status: WithdrawalStatus
    transaction_id: Optional[str]
    requested_at: datetime
    processed_at: Optional[datetime]

    class Config:
        from_attributes = True
