from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel


class PortalChild(BaseModel):
    id: UUID
    login_id: str
    full_name: str
    class_name: str

    class Config:
        from_attributes = True


class PortalFeeItem(BaseModel):
    id: UUID
    student_id: UUID
    student_name: str
    month_name: str
    month_number: int
    academic_year: int
    amount: Decimal
    status: str
    # overdue as soon as the due date has passed, even before the sweep runs
    display_status: str
    due_date: date
    payment_date: Optional[datetime] = None
    transaction_id: Optional[str] = None


class PortalFeeSummary(BaseModel):
    total_children: int
    total_pending_amount: Decimal
    paid_count: int
    pending_count: int


class PortalFeesResponse(BaseModel):
    children: List[PortalChild]
    fees: List[PortalFeeItem]
    summary: PortalFeeSummary


class PortalOtherPayment(BaseModel):
    id: UUID
    student_id: UUID
    student_name: str
    payment_name: str
    amount: Decimal
    status: str
    payment_date: Optional[datetime] = None
    created_at: datetime
