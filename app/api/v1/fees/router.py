"""Fees router: assign, list, edit, manual settlement, overdue sweep."""

from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.students.schemas import StudentResponse
from app.auth.dependencies import get_current_admin
from app.core.enums import FeeStatus
from app.core.exceptions import ServiceError
from app.db.session import get_db
from app.notifications.sms import SmsSender, get_sms_sender

from .schemas import (
    FeeAssignRequest,
    FeeAssignResponse,
    FeeRecordResponse,
    FeeRecordWithDetails,
    FeeUpdate,
    OverdueSweepResponse,
    SettlementResponse,
)
from . import service

router = APIRouter(
    prefix="/api/v1/fees",
    tags=["fees"],
    dependencies=[Depends(get_current_admin)],
)


@router.get("/periods/{billing_period_id}/assignable-students", response_model=List[StudentResponse])
async def list_assignable_students(
    billing_period_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> List[StudentResponse]:
    """Students that do not yet have a fee for this month."""
    try:
        return await service.list_assignable_students(db, billing_period_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/assign", response_model=FeeAssignResponse, status_code=status.HTTP_201_CREATED)
async def assign_fees(
    payload: FeeAssignRequest,
    db: AsyncSession = Depends(get_db),
    sms: SmsSender = Depends(get_sms_sender),
) -> FeeAssignResponse:
    try:
        return await service.assign_fees(db, sms, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[FeeRecordWithDetails])
async def list_fees(
    billing_period_id: Optional[UUID] = Query(None),
    student_id: Optional[UUID] = Query(None),
    academic_year_id: Optional[UUID] = Query(None),
    fee_status: Optional[FeeStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
) -> List[FeeRecordWithDetails]:
    return await service.list_fees(
        db,
        billing_period_id=billing_period_id,
        student_id=student_id,
        status_filter=fee_status,
        academic_year_id=academic_year_id,
    )


@router.post("/overdue-sweep", response_model=OverdueSweepResponse)
async def run_overdue_sweep(
    as_of: Optional[date] = Query(None, description="Treat this date as today (defaults to the server date)"),
    db: AsyncSession = Depends(get_db),
    sms: SmsSender = Depends(get_sms_sender),
) -> OverdueSweepResponse:
    """Flag past-due fees as overdue and send reminders that have not been delivered yet."""
    return await service.run_overdue_sweep(db, sms, today=as_of)


@router.patch("/{fee_id}", response_model=FeeRecordResponse)
async def update_fee(
    fee_id: UUID,
    payload: FeeUpdate,
    db: AsyncSession = Depends(get_db),
) -> FeeRecordResponse:
    try:
        return await service.update_fee_amount(db, fee_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{fee_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_fee(
    fee_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        await service.delete_fee(db, fee_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{fee_id}/mark-paid", response_model=SettlementResponse)
async def mark_fee_paid(
    fee_id: UUID,
    db: AsyncSession = Depends(get_db),
    sms: SmsSender = Depends(get_sms_sender),
) -> SettlementResponse:
    """Record a cash/manual payment. Marking an already paid fee changes nothing."""
    try:
        return await service.mark_fee_paid(db, sms, fee_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
