from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import FeeStatus
from app.core.models import BillingPeriod, FeeRecord, Student

from .schemas import ReportFeeRow, ReportSummary


async def get_fee_summary(
    db: AsyncSession,
    academic_year_id: Optional[UUID] = None,
    billing_period_id: Optional[UUID] = None,
) -> ReportSummary:
    """Collection totals for a year and/or month. Counts use the stored status."""
    stmt = (
        select(FeeRecord, Student, BillingPeriod)
        .join(Student, Student.id == FeeRecord.student_id)
        .join(BillingPeriod, BillingPeriod.id == FeeRecord.billing_period_id)
    )
    if academic_year_id is not None:
        stmt = stmt.where(BillingPeriod.academic_year_id == academic_year_id)
    if billing_period_id is not None:
        stmt = stmt.where(FeeRecord.billing_period_id == billing_period_id)
    stmt = stmt.order_by(BillingPeriod.month_number, Student.full_name)
    rows = (await db.execute(stmt)).all()

    counts = {s.value: 0 for s in FeeStatus}
    total_amount = Decimal("0")
    revenue = Decimal("0")
    students = set()
    fees = []
    for fee, student, period in rows:
        counts[fee.status] = counts.get(fee.status, 0) + 1
        total_amount += fee.amount
        if fee.status == FeeStatus.paid.value:
            revenue += fee.amount
        students.add(student.id)
        fees.append(
            ReportFeeRow(
                id=fee.id,
                student_name=student.full_name,
                student_login_id=student.login_id,
                class_name=student.class_name,
                month_name=period.month_name,
                amount=fee.amount,
                status=fee.status,
            )
        )

    return ReportSummary(
        academic_year_id=academic_year_id,
        billing_period_id=billing_period_id,
        total_students=len(students),
        total_fees=len(rows),
        paid_count=counts[FeeStatus.paid.value],
        pending_count=counts[FeeStatus.pending.value],
        overdue_count=counts[FeeStatus.overdue.value],
        total_amount=total_amount,
        total_revenue=revenue,
        outstanding_amount=total_amount - revenue,
        fees=fees,
    )
