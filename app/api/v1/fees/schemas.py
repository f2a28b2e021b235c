from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class FeeAssignRequest(BaseModel):
    billing_period_id: UUID
    student_ids: List[UUID] = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)


class FeeUpdate(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)


class FeeRecordResponse(BaseModel):
    id: UUID
    student_id: UUID
    billing_period_id: UUID
    amount: Decimal
    status: str
    is_overdue: bool
    overdue_at: Optional[datetime] = None
    payment_date: Optional[datetime] = None
    transaction_id: Optional[str] = None
    provider_payment_id: Optional[str] = None
    reminder_sent: bool
    notification_sent: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class FeeRecordWithDetails(FeeRecordResponse):
    student_name: str
    student_login_id: str
    class_name: str
    parent_phone: str
    month_name: str
    month_number: int
    due_date: date
    academic_year_id: UUID


class FeeAssignResponse(BaseModel):
    created: List[FeeRecordResponse]
    skipped_student_ids: List[UUID] = Field(
        default_factory=list, description="Students that already had a fee for this month"
    )
    notifications_sent: int = 0
    notifications_failed: int = 0


class OverdueSweepResponse(BaseModel):
    overdue_fees: int
    reminders_sent: int


class SettlementResponse(BaseModel):
    fee: FeeRecordResponse
    settled: bool = Field(..., description="False when the fee was already paid; nothing was changed")
    confirmation_sent: bool = False
