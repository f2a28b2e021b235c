"""Parent portal: read-only views over every child registered with the same parent phone."""

from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import FeeStatus
from app.core.exceptions import ServiceError
from app.core.models import AcademicYear, BillingPeriod, FeeRecord, OtherPayment, Student
from app.core.models.base import school_today

from .schemas import (
    PortalChild,
    PortalFeeItem,
    PortalFeeSummary,
    PortalFeesResponse,
    PortalOtherPayment,
)


def display_status(fee_status: str, due_date: date, today: date) -> str:
    if fee_status == FeeStatus.paid.value:
        return FeeStatus.paid.value
    if fee_status == FeeStatus.overdue.value or due_date < today:
        return FeeStatus.overdue.value
    return FeeStatus.pending.value


async def list_children(db: AsyncSession, student_id: UUID) -> List[Student]:
    student = await db.get(Student, student_id)
    if not student:
        raise ServiceError("Student not found", status.HTTP_404_NOT_FOUND)
    result = await db.execute(
        select(Student).where(Student.parent_phone == student.parent_phone).order_by(Student.full_name)
    )
    return list(result.scalars().all())


async def get_parent_fees(db: AsyncSession, student_id: UUID, today: Optional[date] = None) -> PortalFeesResponse:
    today = today or school_today()
    children = await list_children(db, student_id)
    names = {c.id: c.full_name for c in children}

    result = await db.execute(
        select(FeeRecord, BillingPeriod, AcademicYear)
        .join(BillingPeriod, BillingPeriod.id == FeeRecord.billing_period_id)
        .join(AcademicYear, AcademicYear.id == BillingPeriod.academic_year_id)
        .where(FeeRecord.student_id.in_(list(names)))
        .order_by(AcademicYear.year.desc(), BillingPeriod.month_number.desc())
    )
    fees: List[PortalFeeItem] = []
    for fee, period, ay in result.all():
        fees.append(
            PortalFeeItem(
                id=fee.id,
                student_id=fee.student_id,
                student_name=names[fee.student_id],
                month_name=period.month_name,
                month_number=period.month_number,
                academic_year=ay.year,
                amount=fee.amount,
                status=fee.status,
                display_status=display_status(fee.status, period.due_date, today),
                due_date=period.due_date,
                payment_date=fee.payment_date,
                transaction_id=fee.transaction_id,
            )
        )

    unpaid = [f for f in fees if f.status != FeeStatus.paid.value]
    summary = PortalFeeSummary(
        total_children=len(children),
        total_pending_amount=sum((f.amount for f in unpaid), Decimal("0")),
        paid_count=len(fees) - len(unpaid),
        pending_count=len(unpaid),
    )
    return PortalFeesResponse(
        children=[PortalChild.model_validate(c) for c in children],
        fees=fees,
        summary=summary,
    )


async def get_parent_other_payments(db: AsyncSession, student_id: UUID) -> List[PortalOtherPayment]:
    children = await list_children(db, student_id)
    names = {c.id: c.full_name for c in children}
    result = await db.execute(
        select(OtherPayment)
        .where(OtherPayment.student_id.in_(list(names)))
        .order_by(OtherPayment.created_at.desc())
    )
    return [
        PortalOtherPayment(
            id=p.id,
            student_id=p.student_id,
            student_name=names[p.student_id],
            payment_name=p.payment_name,
            amount=p.amount,
            status=p.status,
            payment_date=p.payment_date,
            created_at=p.created_at,
        )
        for p in result.scalars().all()
    ]
