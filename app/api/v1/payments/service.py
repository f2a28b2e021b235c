import hmac
import logging
from typing import Optional

from fastapi import status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.fees.service import settle_fee
from app.core.config import settings
from app.core.exceptions import ServiceError
from app.notifications.sms import SmsSender

from .schemas import PaymentWebhookPayload, PaymentWebhookResponse

logger = logging.getLogger(__name__)

COMPLETED = "completed"


def verify_webhook_secret(provided: Optional[str]) -> None:
    expected = settings.payment_webhook_secret
    if not expected:
        return
    if not provided or not hmac.compare_digest(provided, expected):
        raise ServiceError("Invalid webhook signature", status.HTTP_401_UNAUTHORIZED)


async def handle_payment_webhook(
    db: AsyncSession,
    sms: SmsSender,
    payload: PaymentWebhookPayload,
) -> PaymentWebhookResponse:
    """Settle the referenced fee for completed payments; acknowledge everything else without changes."""
    logger.info(f"Payment webhook {payload.payment_id}: status={payload.status} fee={payload.student_fee_id}")
    if payload.status != COMPLETED:
        return PaymentWebhookResponse(detail=f"Ignored payment status: {payload.status}")
    if payload.student_fee_id is None:
        return PaymentWebhookResponse(detail="No student_fee_id in payload")

    result = await settle_fee(
        db,
        sms,
        payload.student_fee_id,
        transaction_id=payload.reference or payload.payment_id,
        provider_payment_id=payload.payment_id,
    )
    return PaymentWebhookResponse(
        settled=result.settled,
        fee_id=result.fee.id,
        detail=None if result.settled else "Fee already paid",
    )
