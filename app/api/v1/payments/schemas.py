from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class PaymentWebhookPayload(BaseModel):
    """Callback from the payment provider. Only status == "completed" settles a fee."""

    payment_id: str
    status: str
    amount: Optional[Decimal] = None
    reference: Optional[str] = None
    student_fee_id: Optional[UUID] = None


class PaymentWebhookResponse(BaseModel):
    received: bool = True
    settled: bool = False
    fee_id: Optional[UUID] = None
    detail: Optional[str] = None
