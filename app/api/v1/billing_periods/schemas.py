from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class BillingPeriodCreate(BaseModel):
    academic_year_id: UUID
    month_number: int = Field(..., ge=1, le=12)
    month_name: str = Field(..., min_length=1, max_length=50, description="e.g. March 2025")
    due_date: date
    is_active: bool = True


class BillingPeriodUpdate(BaseModel):
    month_number: Optional[int] = Field(None, ge=1, le=12)
    month_name: Optional[str] = Field(None, min_length=1, max_length=50)
    due_date: Optional[date] = None
    is_active: Optional[bool] = None


class BillingPeriodResponse(BaseModel):
    id: UUID
    academic_year_id: UUID
    month_number: int
    month_name: str
    due_date: date
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
