from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_parent
from app.auth.schemas import CurrentUser
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import PortalFeesResponse, PortalOtherPayment
from . import service

router = APIRouter(prefix="/api/v1/portal", tags=["parent-portal"])


@router.get("/fees", response_model=PortalFeesResponse)
async def get_my_fees(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_parent),
) -> PortalFeesResponse:
    """Monthly fees for all children of the logged-in parent, with a summary."""
    try:
        return await service.get_parent_fees(db, current_user.student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/other-payments", response_model=List[PortalOtherPayment])
async def get_my_other_payments(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_parent),
) -> List[PortalOtherPayment]:
    try:
        return await service.get_parent_other_payments(db, current_user.student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
