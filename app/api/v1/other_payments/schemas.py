from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class OtherPaymentAssignRequest(BaseModel):
    """One-off charge (uniform, trip, ...) for each listed student. Repeats are allowed."""

    payment_name: str = Field(..., min_length=1, max_length=255)
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    student_ids: List[UUID] = Field(..., min_length=1)


class OtherPaymentUpdate(BaseModel):
    payment_name: Optional[str] = Field(None, min_length=1, max_length=255)
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)


class OtherPaymentResponse(BaseModel):
    id: UUID
    student_id: UUID
    payment_name: str
    amount: Decimal
    status: str
    payment_date: Optional[datetime] = None
    transaction_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class OtherPaymentWithStudent(OtherPaymentResponse):
    student_name: str
    student_login_id: str
    class_name: str
