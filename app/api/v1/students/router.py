from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_admin
from app.core.enums import ClassName
from app.core.exceptions import ServiceError
from app.core.models.base import school_today
from app.db.session import get_db

from . import importer, service
from .schemas import (
    ImportCommitResponse,
    ImportPreviewResponse,
    StudentCreate,
    StudentCreateResponse,
    StudentResponse,
    StudentUpdate,
)

router = APIRouter(
    prefix="/api/v1/students",
    tags=["students"],
    dependencies=[Depends(get_current_admin)],
)


# ----- Excel import -----

@router.get("/import/template")
async def download_import_template() -> Response:
    """Excel template with the expected headers and two sample rows."""
    return Response(
        content=importer.build_import_template(),
        media_type=importer.XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": "attachment; filename=student_import_template.xlsx"},
    )


@router.post("/import/preview", response_model=ImportPreviewResponse)
async def preview_student_import(
    file: UploadFile = File(..., description="Excel file (.xlsx); first sheet is read"),
    column_mapping: Optional[str] = Form(None, description='JSON object of field -> header, e.g. {"full_name": "Name"}'),
    default_year: Optional[int] = Form(None, description="Year joined for rows without one"),
    db: AsyncSession = Depends(get_db),
) -> ImportPreviewResponse:
    """Parse and validate without saving. Every row is returned with its errors."""
    try:
        return await importer.preview_import(db, file, column_mapping, default_year or school_today().year)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/import/commit", response_model=ImportCommitResponse, status_code=status.HTTP_201_CREATED)
async def commit_student_import(
    file: UploadFile = File(..., description="Excel file (.xlsx); first sheet is read"),
    column_mapping: Optional[str] = Form(None),
    default_year: Optional[int] = Form(None),
    db: AsyncSession = Depends(get_db),
) -> ImportCommitResponse:
    """
    Create students for every valid row. Invalid rows are skipped and returned.
    Generated passwords appear in issued_credentials once and are not retrievable later.
    """
    try:
        return await importer.commit_import(db, file, column_mapping, default_year or school_today().year)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


# ----- Students -----

@router.post("", response_model=StudentCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_student(
    payload: StudentCreate,
    db: AsyncSession = Depends(get_db),
) -> StudentCreateResponse:
    try:
        return await service.create_student(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[StudentResponse])
async def list_students(
    year_joined: Optional[int] = Query(None),
    class_name: Optional[ClassName] = Query(None),
    search: Optional[str] = Query(None, description="Match on name or Student ID"),
    db: AsyncSession = Depends(get_db),
) -> List[StudentResponse]:
    return await service.list_students(db, year_joined=year_joined, class_name=class_name, search=search)


@router.get("/{student_id}", response_model=StudentResponse)
async def get_student(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> StudentResponse:
    student = await service.get_student(db, student_id)
    if not student:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")
    return student


@router.put("/{student_id}", response_model=StudentResponse)
async def update_student(
    student_id: UUID,
    payload: StudentUpdate,
    db: AsyncSession = Depends(get_db),
) -> StudentResponse:
    try:
        return await service.update_student(db, student_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{student_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_student(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> None:
    deleted = await service.delete_student(db, student_id)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")
