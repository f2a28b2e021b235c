from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from app.core.enums import ClassName


class StudentCreate(BaseModel):
    """login_id and password are generated when omitted; a generated password is returned once."""

    full_name: str = Field(..., min_length=1, max_length=255)
    class_name: ClassName
    year_joined: int = Field(..., ge=2000, le=2100)
    parent_phone: str = Field(..., min_length=1, max_length=50)
    parent_email: Optional[EmailStr] = None
    login_id: Optional[str] = Field(None, min_length=1, max_length=100)
    password: Optional[str] = Field(None, min_length=6, max_length=128)


class StudentUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    class_name: Optional[ClassName] = None
    year_joined: Optional[int] = Field(None, ge=2000, le=2100)
    parent_phone: Optional[str] = Field(None, min_length=1, max_length=50)
    parent_email: Optional[EmailStr] = None
    # Resets the parent portal password
    password: Optional[str] = Field(None, min_length=6, max_length=128)


class StudentResponse(BaseModel):
    id: UUID
    login_id: str
    full_name: str
    class_name: str
    year_joined: int
    parent_phone: str
    parent_email: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class StudentCreateResponse(BaseModel):
    student: StudentResponse
    issued_password: Optional[str] = Field(
        None,
        description="Present only when the password was generated. It is not stored in readable form and cannot be shown again.",
    )


# --- Excel import ---
class ImportRowResult(BaseModel):
    row_number: int
    full_name: str = ""
    login_id: str = ""
    class_name: str = ""
    year_joined: int
    parent_phone: str = ""
    password_generated: bool = False
    is_valid: bool
    errors: List[str] = Field(default_factory=list)


class ImportPreviewResponse(BaseModel):
    headers: List[str]
    column_mapping: Dict[str, str]
    rows: List[ImportRowResult]
    valid_count: int
    invalid_count: int


class IssuedCredential(BaseModel):
    student_id: UUID
    login_id: str
    full_name: str
    password: str


class ImportCommitResponse(BaseModel):
    created: int
    students: List[StudentResponse]
    invalid_rows: List[ImportRowResult]
    issued_credentials: List[IssuedCredential] = Field(default_factory=list)
