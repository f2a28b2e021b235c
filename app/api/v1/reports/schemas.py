from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel


class ReportFeeRow(BaseModel):
    id: UUID
    student_name: str
    student_login_id: str
    class_name: str
    month_name: str
    amount: Decimal
    status: str


class ReportSummary(BaseModel):
    academic_year_id: Optional[UUID] = None
    billing_period_id: Optional[UUID] = None
    total_students: int
    total_fees: int
    paid_count: int
    pending_count: int
    overdue_count: int
    total_amount: Decimal
    total_revenue: Decimal
    outstanding_amount: Decimal
    fees: List[ReportFeeRow]
