import logging
from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ServiceError
from app.core.models import AcademicYear, BillingPeriod, FeeRecord

from .schemas import BillingPeriodCreate, BillingPeriodResponse, BillingPeriodUpdate

logger = logging.getLogger(__name__)

DUPLICATE_MONTH_MESSAGE = "This month already exists for the selected year"


def _to_response(period: BillingPeriod) -> BillingPeriodResponse:
    return BillingPeriodResponse.model_validate(period)


async def get_period_or_404(db: AsyncSession, billing_period_id: UUID) -> BillingPeriod:
    period = await db.get(BillingPeriod, billing_period_id)
    if not period:
        raise ServiceError("Billing period not found", status.HTTP_404_NOT_FOUND)
    return period


async def _month_taken(
    db: AsyncSession, academic_year_id: UUID, month_number: int, exclude_id: Optional[UUID] = None
) -> bool:
    stmt = select(BillingPeriod.id).where(
        BillingPeriod.academic_year_id == academic_year_id,
        BillingPeriod.month_number == month_number,
    )
    if exclude_id is not None:
        stmt = stmt.where(BillingPeriod.id != exclude_id)
    return (await db.execute(stmt)).first() is not None


async def create_billing_period(db: AsyncSession, payload: BillingPeriodCreate) -> BillingPeriodResponse:
    ay = await db.get(AcademicYear, payload.academic_year_id)
    if not ay:
        raise ServiceError("Invalid academic year", status.HTTP_400_BAD_REQUEST)
    if await _month_taken(db, ay.id, payload.month_number):
        raise ServiceError(DUPLICATE_MONTH_MESSAGE, status.HTTP_409_CONFLICT)
    period = BillingPeriod(
        academic_year_id=ay.id,
        month_number=payload.month_number,
        month_name=payload.month_name.strip(),
        due_date=payload.due_date,
        is_active=payload.is_active,
    )
    db.add(period)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError(DUPLICATE_MONTH_MESSAGE, status.HTTP_409_CONFLICT)
    await db.refresh(period)
    logger.info(f"Created billing period {period.month_name} (due {period.due_date})")
    return _to_response(period)


async def list_billing_periods(
    db: AsyncSession,
    academic_year_id: Optional[UUID] = None,
    active_only: bool = False,
) -> List[BillingPeriodResponse]:
    stmt = select(BillingPeriod)
    if academic_year_id is not None:
        stmt = stmt.where(BillingPeriod.academic_year_id == academic_year_id)
    if active_only:
        stmt = stmt.where(BillingPeriod.is_active.is_(True))
    stmt = stmt.order_by(BillingPeriod.academic_year_id, BillingPeriod.month_number)
    result = await db.execute(stmt)
    return [_to_response(p) for p in result.scalars().all()]


async def get_billing_period(db: AsyncSession, billing_period_id: UUID) -> Optional[BillingPeriodResponse]:
    period = await db.get(BillingPeriod, billing_period_id)
    return _to_response(period) if period else None


async def update_billing_period(
    db: AsyncSession,
    billing_period_id: UUID,
    payload: BillingPeriodUpdate,
) -> BillingPeriodResponse:
    period = await get_period_or_404(db, billing_period_id)
    if payload.month_number is not None and payload.month_number != period.month_number:
        if await _month_taken(db, period.academic_year_id, payload.month_number, exclude_id=period.id):
            raise ServiceError(DUPLICATE_MONTH_MESSAGE, status.HTTP_409_CONFLICT)
        period.month_number = payload.month_number
    if payload.month_name is not None:
        period.month_name = payload.month_name.strip()
    if payload.due_date is not None:
        period.due_date = payload.due_date
    if payload.is_active is not None:
        period.is_active = payload.is_active
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError(DUPLICATE_MONTH_MESSAGE, status.HTTP_409_CONFLICT)
    await db.refresh(period)
    return _to_response(period)


async def delete_billing_period(db: AsyncSession, billing_period_id: UUID) -> None:
    """Blocked while any fee is assigned for the month; fees are never removed implicitly."""
    period = await get_period_or_404(db, billing_period_id)
    assigned = await db.execute(
        select(func.count(FeeRecord.id)).where(FeeRecord.billing_period_id == period.id)
    )
    if assigned.scalar_one():
        raise ServiceError(
            "Cannot delete month with assigned fees. Remove fees first.",
            status.HTTP_400_BAD_REQUEST,
        )
    await db.delete(period)
    await db.commit()
    logger.info(f"Deleted billing period {period.month_name}")
