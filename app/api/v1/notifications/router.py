"""Notifications router: outbox listing, manual SMS, delivery worker trigger."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_admin
from app.core.enums import NotificationStatus, NotificationType
from app.core.exceptions import ServiceError
from app.db.session import get_db
from app.notifications.sms import SmsSender, get_sms_sender

from .schemas import NotificationResponse, OutboxDeliveryResponse, SendSmsRequest
from . import service

router = APIRouter(
    prefix="/api/v1/notifications",
    tags=["notifications"],
    dependencies=[Depends(get_current_admin)],
)


@router.get("", response_model=List[NotificationResponse])
async def list_notifications(
    student_id: Optional[UUID] = Query(None),
    notification_status: Optional[NotificationStatus] = Query(None, alias="status"),
    notification_type: Optional[NotificationType] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> List[NotificationResponse]:
    return await service.list_notifications(
        db,
        student_id=student_id,
        status_filter=notification_status,
        notification_type=notification_type,
    )


@router.post("/sms", response_model=NotificationResponse, status_code=status.HTTP_201_CREATED)
async def send_sms(
    payload: SendSmsRequest,
    db: AsyncSession = Depends(get_db),
    sms: SmsSender = Depends(get_sms_sender),
) -> NotificationResponse:
    """Send an ad hoc SMS to a parent. The result is recorded like any other notification."""
    try:
        return await service.send_manual_sms(db, sms, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/deliver", response_model=OutboxDeliveryResponse)
async def deliver_outbox(
    db: AsyncSession = Depends(get_db),
    sms: SmsSender = Depends(get_sms_sender),
) -> OutboxDeliveryResponse:
    """Retry undelivered notifications now (the scheduler does this periodically when enabled)."""
    return await service.deliver_outbox(db, sms)
