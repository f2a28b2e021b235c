from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_admin
from app.db.session import get_db

from .schemas import ReportSummary
from . import service

router = APIRouter(
    prefix="/api/v1/reports",
    tags=["reports"],
    dependencies=[Depends(get_current_admin)],
)


@router.get("/summary", response_model=ReportSummary)
async def get_fee_summary(
    academic_year_id: Optional[UUID] = Query(None),
    billing_period_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> ReportSummary:
    return await service.get_fee_summary(db, academic_year_id=academic_year_id, billing_period_id=billing_period_id)
