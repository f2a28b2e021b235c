import logging
from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ServiceError
from app.core.models import AcademicYear, BillingPeriod, Student

from .schemas import AcademicYearCreate, AcademicYearResponse, AcademicYearUpdate

logger = logging.getLogger(__name__)


async def _period_count(db: AsyncSession, academic_year_id: UUID) -> int:
    result = await db.execute(
        select(func.count(BillingPeriod.id)).where(BillingPeriod.academic_year_id == academic_year_id)
    )
    return int(result.scalar_one())


async def _to_response(db: AsyncSession, ay: AcademicYear) -> AcademicYearResponse:
    return AcademicYearResponse(
        id=ay.id,
        year=ay.year,
        is_active=ay.is_active,
        created_at=ay.created_at,
        updated_at=ay.updated_at,
        billing_period_count=await _period_count(db, ay.id),
    )


async def _get_or_404(db: AsyncSession, academic_year_id: UUID) -> AcademicYear:
    ay = await db.get(AcademicYear, academic_year_id)
    if not ay:
        raise ServiceError("Academic year not found", status.HTTP_404_NOT_FOUND)
    return ay


async def create_academic_year(
    db: AsyncSession,
    payload: AcademicYearCreate,
) -> AcademicYearResponse:
    """Create academic year. If set_as_active, deactivate all other years in the same transaction."""
    existing = await db.execute(select(AcademicYear.id).where(AcademicYear.year == payload.year))
    if existing.scalar_one_or_none():
        raise ServiceError("This year already exists", status.HTTP_409_CONFLICT)
    if payload.set_as_active:
        await db.execute(update(AcademicYear).values(is_active=False))
    ay = AcademicYear(year=payload.year, is_active=payload.set_as_active)
    db.add(ay)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("This year already exists", status.HTTP_409_CONFLICT)
    await db.refresh(ay)
    logger.info(f"Created academic year {ay.year}")
    return await _to_response(db, ay)


async def list_academic_years(db: AsyncSession) -> List[AcademicYearResponse]:
    result = await db.execute(select(AcademicYear).order_by(AcademicYear.year.desc()))
    return [await _to_response(db, ay) for ay in result.scalars().all()]


async def get_academic_year(db: AsyncSession, academic_year_id: UUID) -> Optional[AcademicYearResponse]:
    ay = await db.get(AcademicYear, academic_year_id)
    return await _to_response(db, ay) if ay else None


async def get_active_academic_year(db: AsyncSession) -> Optional[AcademicYearResponse]:
    result = await db.execute(
        select(AcademicYear).where(AcademicYear.is_active.is_(True)).order_by(AcademicYear.year.desc()).limit(1)
    )
    ay = result.scalar_one_or_none()
    return await _to_response(db, ay) if ay else None


async def update_academic_year(
    db: AsyncSession,
    academic_year_id: UUID,
    payload: AcademicYearUpdate,
) -> AcademicYearResponse:
    ay = await _get_or_404(db, academic_year_id)
    if payload.year is not None and payload.year != ay.year:
        other = await db.execute(
            select(AcademicYear.id).where(AcademicYear.year == payload.year, AcademicYear.id != academic_year_id)
        )
        if other.scalar_one_or_none():
            raise ServiceError("This year already exists", status.HTTP_409_CONFLICT)
        ay.year = payload.year
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("This year already exists", status.HTTP_409_CONFLICT)
    await db.refresh(ay)
    return await _to_response(db, ay)


async def activate_academic_year(db: AsyncSession, academic_year_id: UUID) -> AcademicYearResponse:
    """Make this the only active academic year."""
    ay = await _get_or_404(db, academic_year_id)
    await db.execute(update(AcademicYear).where(AcademicYear.id != ay.id).values(is_active=False))
    ay.is_active = True
    await db.commit()
    await db.refresh(ay)
    logger.info(f"Academic year {ay.year} is now active")
    return await _to_response(db, ay)


async def delete_academic_year(db: AsyncSession, academic_year_id: UUID) -> None:
    """Blocked while students are enrolled in that year or any month exists for it."""
    ay = await _get_or_404(db, academic_year_id)
    enrolled = await db.execute(select(func.count(Student.id)).where(Student.year_joined == ay.year))
    if enrolled.scalar_one():
        raise ServiceError(
            "Cannot delete year with existing students. Please remove all students first.",
            status.HTTP_400_BAD_REQUEST,
        )
    if await _period_count(db, ay.id):
        raise ServiceError(
            "Cannot delete year with existing months. Delete months first.",
            status.HTTP_400_BAD_REQUEST,
        )
    await db.delete(ay)
    await db.commit()
    logger.info(f"Deleted academic year {ay.year}")
