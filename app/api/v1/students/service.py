import logging
import secrets
import string
from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.security import hash_password
from app.core.enums import ClassName
from app.core.exceptions import ServiceError
from app.core.models import Student

from .schemas import StudentCreate, StudentCreateResponse, StudentResponse, StudentUpdate

logger = logging.getLogger(__name__)

PASSWORD_ALPHABET = string.ascii_lowercase + string.digits


def generate_password(length: int = 8) -> str:
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


def generate_login_id() -> str:
    """STU + 6 digits, e.g. STU482913."""
    return "STU" + "".join(secrets.choice(string.digits) for _ in range(6))


def _to_response(student: Student) -> StudentResponse:
    return StudentResponse.model_validate(student)


async def login_id_taken(db: AsyncSession, login_id: str, exclude_id: Optional[UUID] = None) -> bool:
    stmt = select(Student.id).where(Student.login_id == login_id)
    if exclude_id is not None:
        stmt = stmt.where(Student.id != exclude_id)
    return (await db.execute(stmt)).first() is not None


async def get_student_or_404(db: AsyncSession, student_id: UUID) -> Student:
    student = await db.get(Student, student_id)
    if not student:
        raise ServiceError("Student not found", status.HTTP_404_NOT_FOUND)
    return student


async def create_student(db: AsyncSession, payload: StudentCreate) -> StudentCreateResponse:
    if payload.login_id:
        login_id = payload.login_id.strip()
        if await login_id_taken(db, login_id):
            raise ServiceError(f"Student ID already exists: {login_id}", status.HTTP_409_CONFLICT)
    else:
        login_id = generate_login_id()
        while await login_id_taken(db, login_id):
            login_id = generate_login_id()

    issued_password = None
    password = payload.password
    if not password:
        password = issued_password = generate_password()

    student = Student(
        login_id=login_id,
        full_name=payload.full_name.strip(),
        class_name=payload.class_name.value,
        year_joined=payload.year_joined,
        parent_phone=payload.parent_phone.strip(),
        parent_email=payload.parent_email,
        password_hash=hash_password(password),
    )
    db.add(student)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError(f"Student ID already exists: {login_id}", status.HTTP_409_CONFLICT)
    await db.refresh(student)
    logger.info(f"Created student {student.login_id} ({student.full_name})")
    return StudentCreateResponse(student=_to_response(student), issued_password=issued_password)


async def list_students(
    db: AsyncSession,
    year_joined: Optional[int] = None,
    class_name: Optional[ClassName] = None,
    search: Optional[str] = None,
) -> List[StudentResponse]:
    stmt = select(Student)
    if year_joined is not None:
        stmt = stmt.where(Student.year_joined == year_joined)
    if class_name is not None:
        stmt = stmt.where(Student.class_name == class_name.value)
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(Student.full_name.ilike(pattern) | Student.login_id.ilike(pattern))
    stmt = stmt.order_by(Student.full_name)
    result = await db.execute(stmt)
    return [_to_response(s) for s in result.scalars().all()]


async def get_student(db: AsyncSession, student_id: UUID) -> Optional[StudentResponse]:
    student = await db.get(Student, student_id)
    return _to_response(student) if student else None


async def update_student(db: AsyncSession, student_id: UUID, payload: StudentUpdate) -> StudentResponse:
    student = await get_student_or_404(db, student_id)
    if payload.full_name is not None:
        student.full_name = payload.full_name.strip()
    if payload.class_name is not None:
        student.class_name = payload.class_name.value
    if payload.year_joined is not None:
        student.year_joined = payload.year_joined
    if payload.parent_phone is not None:
        student.parent_phone = payload.parent_phone.strip()
    if "parent_email" in payload.model_fields_set:
        student.parent_email = payload.parent_email
    if payload.password:
        student.password_hash = hash_password(payload.password)
    await db.commit()
    await db.refresh(student)
    return _to_response(student)


async def delete_student(db: AsyncSession, student_id: UUID) -> bool:
    """Delete student with fees, other payments and notifications."""
    student = await db.get(Student, student_id)
    if not student:
        return False
    await db.delete(student)
    await db.commit()
    logger.info(f"Deleted student {student.login_id}")
    return True
