"""SMS send capability used by the notification dispatcher."""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol
from uuid import UUID

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class SmsResult:
    success: bool
    error: Optional[str] = None


class SmsSender(Protocol):
    async def send(self, phone_number: str, message: str, notification_id: Optional[UUID] = None) -> SmsResult:
        ...


class StubSmsSender:
    """Accepts every message. Used until a gateway is configured."""

    async def send(self, phone_number: str, message: str, notification_id: Optional[UUID] = None) -> SmsResult:
        logger.info(f"[stub] SMS to {phone_number} (notification {notification_id}): {message}")
        return SmsResult(success=True)


class HttpSmsSender:
    """Posts messages to a JSON SMS gateway: {"to", "message", "reference"} with a bearer API key."""

    def __init__(self, gateway_url: str, api_key: Optional[str] = None, timeout: float = 10.0) -> None:
        self.gateway_url = gateway_url
        self.api_key = api_key
        self.timeout = timeout

    async def send(self, phone_number: str, message: str, notification_id: Optional[UUID] = None) -> SmsResult:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        body = {
            "to": phone_number,
            "message": message,
            "reference": str(notification_id) if notification_id else None,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.gateway_url, json=body, headers=headers)
        except httpx.HTTPError as e:
            logger.warning(f"SMS gateway unreachable for {phone_number}: {e}")
            return SmsResult(success=False, error=str(e))
        if response.status_code >= 400:
            return SmsResult(success=False, error=f"Gateway returned {response.status_code}: {response.text[:200]}")
        return SmsResult(success=True)


_sender: Optional[SmsSender] = None


def build_sms_sender() -> SmsSender:
    provider = settings.sms_provider.strip().lower()
    if provider == "http":
        if not settings.sms_gateway_url:
            raise RuntimeError("SMS_PROVIDER=http requires SMS_GATEWAY_URL")
        return HttpSmsSender(settings.sms_gateway_url, settings.sms_api_key, settings.sms_timeout_seconds)
    return StubSmsSender()


def get_sms_sender() -> SmsSender:
    """FastAPI dependency; tests override it with a recording fake."""
    global _sender
    if _sender is None:
        _sender = build_sms_sender()
    return _sender
