from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_admin
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import BillingPeriodCreate, BillingPeriodResponse, BillingPeriodUpdate
from . import service

router = APIRouter(
    prefix="/api/v1/billing-periods",
    tags=["billing-periods"],
    dependencies=[Depends(get_current_admin)],
)


@router.post("", response_model=BillingPeriodResponse, status_code=status.HTTP_201_CREATED)
async def create_billing_period(
    payload: BillingPeriodCreate,
    db: AsyncSession = Depends(get_db),
) -> BillingPeriodResponse:
    try:
        return await service.create_billing_period(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[BillingPeriodResponse])
async def list_billing_periods(
    academic_year_id: Optional[UUID] = Query(None),
    active_only: bool = Query(False),
    db: AsyncSession = Depends(get_db),
) -> List[BillingPeriodResponse]:
    """List months, ordered by month number within each year."""
    return await service.list_billing_periods(db, academic_year_id=academic_year_id, active_only=active_only)


@router.get("/{billing_period_id}", response_model=BillingPeriodResponse)
async def get_billing_period(
    billing_period_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> BillingPeriodResponse:
    period = await service.get_billing_period(db, billing_period_id)
    if not period:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Billing period not found")
    return period


@router.put("/{billing_period_id}", response_model=BillingPeriodResponse)
async def update_billing_period(
    billing_period_id: UUID,
    payload: BillingPeriodUpdate,
    db: AsyncSession = Depends(get_db),
) -> BillingPeriodResponse:
    try:
        return await service.update_billing_period(db, billing_period_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{billing_period_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_billing_period(
    billing_period_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        await service.delete_billing_period(db, billing_period_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
