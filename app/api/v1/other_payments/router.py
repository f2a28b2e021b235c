from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_admin
from app.core.enums import OtherPaymentStatus
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import (
    OtherPaymentAssignRequest,
    OtherPaymentResponse,
    OtherPaymentUpdate,
    OtherPaymentWithStudent,
)
from . import service

router = APIRouter(
    prefix="/api/v1/other-payments",
    tags=["other-payments"],
    dependencies=[Depends(get_current_admin)],
)


@router.post("/assign", response_model=List[OtherPaymentResponse], status_code=status.HTTP_201_CREATED)
async def assign_other_payments(
    payload: OtherPaymentAssignRequest,
    db: AsyncSession = Depends(get_db),
) -> List[OtherPaymentResponse]:
    try:
        return await service.assign_other_payments(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[OtherPaymentWithStudent])
async def list_other_payments(
    student_id: Optional[UUID] = Query(None),
    payment_status: Optional[OtherPaymentStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
) -> List[OtherPaymentWithStudent]:
    return await service.list_other_payments(db, student_id=student_id, status_filter=payment_status)


@router.patch("/{payment_id}", response_model=OtherPaymentResponse)
async def update_other_payment(
    payment_id: UUID,
    payload: OtherPaymentUpdate,
    db: AsyncSession = Depends(get_db),
) -> OtherPaymentResponse:
    try:
        return await service.update_other_payment(db, payment_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{payment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_other_payment(
    payment_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        await service.delete_other_payment(db, payment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{payment_id}/mark-paid", response_model=OtherPaymentResponse)
async def mark_other_payment_paid(
    payment_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> OtherPaymentResponse:
    try:
        return await service.mark_other_payment_paid(db, payment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
