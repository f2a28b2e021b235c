from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_admin
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import AcademicYearCreate, AcademicYearResponse, AcademicYearUpdate
from . import service

router = APIRouter(
    prefix="/api/v1/academic-years",
    tags=["academic-years"],
    dependencies=[Depends(get_current_admin)],
)


@router.post("", response_model=AcademicYearResponse, status_code=status.HTTP_201_CREATED)
async def create_academic_year(
    payload: AcademicYearCreate,
    db: AsyncSession = Depends(get_db),
) -> AcademicYearResponse:
    try:
        return await service.create_academic_year(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[AcademicYearResponse])
async def list_academic_years(db: AsyncSession = Depends(get_db)) -> List[AcademicYearResponse]:
    """List academic years, newest first."""
    return await service.list_academic_years(db)


@router.get("/active", response_model=Optional[AcademicYearResponse])
async def get_active_academic_year(db: AsyncSession = Depends(get_db)) -> Optional[AcademicYearResponse]:
    return await service.get_active_academic_year(db)


@router.get("/{academic_year_id}", response_model=AcademicYearResponse)
async def get_academic_year(
    academic_year_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> AcademicYearResponse:
    ay = await service.get_academic_year(db, academic_year_id)
    if not ay:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Academic year not found")
    return ay


@router.put("/{academic_year_id}", response_model=AcademicYearResponse)
async def update_academic_year(
    academic_year_id: UUID,
    payload: AcademicYearUpdate,
    db: AsyncSession = Depends(get_db),
) -> AcademicYearResponse:
    try:
        return await service.update_academic_year(db, academic_year_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{academic_year_id}/activate", response_model=AcademicYearResponse)
async def activate_academic_year(
    academic_year_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> AcademicYearResponse:
    """Set this academic year as active. All others become inactive."""
    try:
        return await service.activate_academic_year(db, academic_year_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{academic_year_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_academic_year(
    academic_year_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        await service.delete_academic_year(db, academic_year_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
