from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ServiceError
from app.db.session import get_db
from app.notifications.sms import SmsSender, get_sms_sender

from .schemas import PaymentWebhookPayload, PaymentWebhookResponse
from . import service

router = APIRouter(prefix="/api/v1/payments", tags=["payments"])


@router.post("/webhook", response_model=PaymentWebhookResponse)
async def payment_webhook(
    payload: PaymentWebhookPayload,
    x_webhook_secret: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
    sms: SmsSender = Depends(get_sms_sender),
) -> PaymentWebhookResponse:
    """Payment provider callback. No user auth; guarded by X-Webhook-Secret when configured."""
    try:
        service.verify_webhook_secret(x_webhook_secret)
        return await service.handle_payment_webhook(db, sms, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
