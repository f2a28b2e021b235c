from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from app.core.enums import UserRole


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class ParentLoginRequest(BaseModel):
    login_id: str = Field(..., min_length=1, description="Student ID issued by the school")
    password: str = Field(..., min_length=1)


class AdminInfo(BaseModel):
    id: UUID
    name: str
    email: EmailStr


class ParentInfo(BaseModel):
    student_id: UUID
    student_name: str
    parent_phone: str


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: UserRole
    admin: Optional[AdminInfo] = None
    parent: Optional[ParentInfo] = None


class CurrentUser(BaseModel):
    """Authenticated principal resolved from the access token."""

    id: UUID
    role: UserRole
    # Parent tokens only: the student whose credentials were used
    student_id: Optional[UUID] = None
