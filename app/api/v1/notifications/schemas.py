from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.enums import NotificationStatus, NotificationType


class NotificationResponse(BaseModel):
    id: UUID
    student_id: UUID
    fee_record_id: Optional[UUID] = None
    notification_type: NotificationType
    message: str
    phone_number: str
    status: NotificationStatus
    attempts: int
    last_error: Optional[str] = None
    sent_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class SendSmsRequest(BaseModel):
    """Ad hoc SMS to a student's parent. phone_number overrides the number on file."""

    student_id: UUID
    message: str = Field(..., min_length=1, max_length=1000)
    phone_number: Optional[str] = Field(None, max_length=50)


class OutboxDeliveryResponse(BaseModel):
    attempted: int
    sent: int
    failed: int
    cancelled: int = 0
