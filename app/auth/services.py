import logging
from typing import Optional

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import AdminUser
from app.auth.schemas import AdminInfo, LoginRequest, LoginResponse, ParentInfo, ParentLoginRequest
from app.auth.security import create_access_token, hash_password, verify_password
from app.core.enums import UserRole
from app.core.exceptions import ServiceError
from app.core.models import Student

logger = logging.getLogger(__name__)


async def login_admin(db: AsyncSession, payload: LoginRequest) -> LoginResponse:
    result = await db.execute(
        select(AdminUser).where(func.lower(AdminUser.email) == func.lower(payload.email))
    )
    admin: Optional[AdminUser] = result.scalar_one_or_none()
    if not admin or not verify_password(payload.password, admin.password_hash):
        raise ServiceError("Invalid credentials", status.HTTP_401_UNAUTHORIZED)
    if not admin.is_active:
        raise ServiceError("User is inactive", status.HTTP_403_FORBIDDEN)

    token = create_access_token(
        subject={"sub": str(admin.id), "role": UserRole.ADMIN.value}
    )
    logger.info(f"Admin {admin.email} logged in")
    return LoginResponse(
        access_token=token,
        role=UserRole.ADMIN,
        admin=AdminInfo(id=admin.id, name=admin.full_name, email=admin.email),
    )


async def login_parent(db: AsyncSession, payload: ParentLoginRequest) -> LoginResponse:
    """Parents sign in with the child's student ID and password."""
    result = await db.execute(select(Student).where(Student.login_id == payload.login_id.strip()))
    student: Optional[Student] = result.scalar_one_or_none()
    if not student or not verify_password(payload.password, student.password_hash):
        raise ServiceError("Invalid student ID or password", status.HTTP_401_UNAUTHORIZED)

    token = create_access_token(
        subject={
            "sub": str(student.id),
            "role": UserRole.PARENT.value,
            "student_id": str(student.id),
        }
    )
    return LoginResponse(
        access_token=token,
        role=UserRole.PARENT,
        parent=ParentInfo(
            student_id=student.id,
            student_name=student.full_name,
            parent_phone=student.parent_phone,
        ),
    )


async def create_admin(db: AsyncSession, email: str, password: str, full_name: str = "Administrator") -> AdminUser:
    """Create or reset an admin account (idempotent on email)."""
    result = await db.execute(select(AdminUser).where(func.lower(AdminUser.email) == email.lower()))
    admin = result.scalar_one_or_none()
    if admin:
        admin.password_hash = hash_password(password)
        admin.is_active = True
    else:
        admin = AdminUser(email=email, full_name=full_name, password_hash=hash_password(password))
        db.add(admin)
    await db.commit()
    await db.refresh(admin)
    return admin
