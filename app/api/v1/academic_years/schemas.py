from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class AcademicYearCreate(BaseModel):
    """Create academic year. year must be unique."""

    year: int = Field(..., ge=2000, le=2100, description="e.g. 2025")
    set_as_active: bool = Field(
        False,
        description="Make this the active year? If true, every other year becomes inactive.",
    )


class AcademicYearUpdate(BaseModel):
    year: Optional[int] = Field(None, ge=2000, le=2100)


class AcademicYearResponse(BaseModel):
    id: UUID
    year: int
    is_active: bool
    created_at: datetime
    updated_at: datetime
    billing_period_count: int = 0

    class Config:
        from_attributes = True
