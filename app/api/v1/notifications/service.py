"""Notification dispatcher: outbox rows, SMS delivery, retries. Delivery never undoes the state change that queued it."""

import asyncio
import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from fastapi import status
from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.enums import FeeStatus, NotificationStatus, NotificationType
from app.core.exceptions import ServiceError
from app.core.models import FeeRecord, Notification, Student
from app.core.models.base import utcnow
from app.notifications.sms import SmsResult, SmsSender

from .schemas import NotificationResponse, OutboxDeliveryResponse, SendSmsRequest

logger = logging.getLogger(__name__)

# Pending rows younger than this are still owned by the request that queued them
PENDING_GRACE = timedelta(minutes=1)
UNDELIVERED_STATUSES = (NotificationStatus.pending.value, NotificationStatus.failed.value)

# Types whose message describes a fee; they go stale once the fee is gone
FEE_NOTIFICATION_TYPES = (
    NotificationType.fee_assigned.value,
    NotificationType.payment_reminder.value,
    NotificationType.payment_confirmed.value,
)


# --- Message templates ---
def format_amount(amount) -> str:
    """3500.00 -> '3500', 3500.50 -> '3500.5'."""
    value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    return f"{value.normalize():f}"


def format_due_date(value: date) -> str:
    return f"{value.month}/{value.day}/{value.year}"


def fee_assigned_message(student_name: str, amount, month_name: str, due_date: date) -> str:
    return (
        f"New Fee Assignment: Your child {student_name} has been assigned a fee of "
        f"{settings.currency_code} {format_amount(amount)} for {month_name}. "
        f"Due date: {format_due_date(due_date)}. Please make payment before the due date."
    )


def payment_reminder_message(month_name: str, amount) -> str:
    return (
        f"Reminder: Your child's school fee for {month_name} is overdue. "
        f"Please make the payment of {settings.currency_code} {format_amount(amount)} "
        f"as soon as possible to avoid any inconvenience."
    )


def payment_confirmed_message(amount, month_name: str) -> str:
    return (
        f"Payment Confirmed: Your payment of {settings.currency_code} {format_amount(amount)} "
        f"for {month_name} has been successfully processed. Thank you!"
    )


# --- Outbox ---
def queue_notification(
    db: AsyncSession,
    student: Student,
    notification_type: NotificationType,
    message: str,
    fee_record_id: Optional[UUID] = None,
) -> Notification:
    """Add a pending notification to the session. The caller commits it together with its own change."""
    notification = Notification(
        student_id=student.id,
        fee_record_id=fee_record_id,
        notification_type=notification_type.value,
        message=message,
        phone_number=student.parent_phone,
        status=NotificationStatus.pending.value,
        attempts=0,
    )
    db.add(notification)
    return notification


def _retry_delay(attempts: int) -> timedelta:
    return timedelta(seconds=settings.notification_retry_base_seconds * 2 ** max(attempts - 1, 0))


async def deliver_notifications(
    db: AsyncSession,
    sms: SmsSender,
    notifications: Sequence[Notification],
) -> List[bool]:
    """
    Send every notification concurrently, then record the outcomes.
    Returns one success flag per notification, in order. A failing send never affects its siblings.
    """
    if not notifications:
        return []

    results = await asyncio.gather(
        *(sms.send(n.phone_number, n.message, n.id) for n in notifications),
        return_exceptions=True,
    )

    now = utcnow()
    outcomes: List[bool] = []
    reminded_fee_ids: List[UUID] = []
    for notification, result in zip(notifications, results):
        if isinstance(result, BaseException):
            logger.warning(f"SMS send raised for notification {notification.id}: {result!r}")
            result = SmsResult(success=False, error=str(result) or type(result).__name__)
        notification.attempts = (notification.attempts or 0) + 1
        if result.success:
            notification.status = NotificationStatus.sent.value
            notification.sent_at = now
            notification.last_error = None
            notification.next_attempt_at = None
            if notification.notification_type == NotificationType.payment_reminder.value and notification.fee_record_id:
                reminded_fee_ids.append(notification.fee_record_id)
        else:
            logger.warning(f"SMS delivery failed for notification {notification.id}: {result.error}")
            notification.status = NotificationStatus.failed.value
            notification.last_error = result.error
            notification.next_attempt_at = now + _retry_delay(notification.attempts)
        outcomes.append(result.success)

    try:
        if reminded_fee_ids:
            await db.execute(
                update(FeeRecord).where(FeeRecord.id.in_(reminded_fee_ids)).values(reminder_sent=True)
            )
        await db.commit()
    except SQLAlchemyError:
        # Rows stay pending; the outbox worker picks them up again
        await db.rollback()
        logger.exception("Could not record notification delivery status")
    return outcomes


async def cancel_undelivered(
    db: AsyncSession,
    fee_record_id: UUID,
    notification_types: Sequence[NotificationType],
    reason: str,
) -> int:
    """Cancel the fee's undelivered notifications of the given types. Does not commit."""
    result = await db.execute(
        update(Notification)
        .where(
            Notification.fee_record_id == fee_record_id,
            Notification.notification_type.in_([t.value for t in notification_types]),
            Notification.status.in_(UNDELIVERED_STATUSES),
        )
        .values(status=NotificationStatus.cancelled.value, last_error=reason, next_attempt_at=None)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def _stale_reason(db: AsyncSession, notifications: Sequence[Notification]) -> Dict[UUID, str]:
    """Reminders for paid fees, and fee notifications whose fee was deleted, keyed by notification id."""
    fee_ids = {n.fee_record_id for n in notifications if n.fee_record_id}
    fee_status: Dict[UUID, str] = {}
    if fee_ids:
        rows = await db.execute(select(FeeRecord.id, FeeRecord.status).where(FeeRecord.id.in_(fee_ids)))
        fee_status = {fee_id: fee_st for fee_id, fee_st in rows.all()}

    stale: Dict[UUID, str] = {}
    for n in notifications:
        if n.notification_type not in FEE_NOTIFICATION_TYPES:
            continue
        current = fee_status.get(n.fee_record_id) if n.fee_record_id else None
        if current is None:
            stale[n.id] = "Fee no longer exists"
        elif n.notification_type == NotificationType.payment_reminder.value and current == FeeStatus.paid.value:
            stale[n.id] = "Fee already paid"
    return stale


async def deliver_outbox(
    db: AsyncSession,
    sms: SmsSender,
    now: Optional[datetime] = None,
    limit: int = 100,
) -> OutboxDeliveryResponse:
    """Retry undelivered notifications: stale pending rows and failed rows whose backoff has elapsed."""
    now = now or utcnow()
    stmt = (
        select(Notification)
        .where(
            or_(
                and_(
                    Notification.status == NotificationStatus.pending.value,
                    Notification.created_at <= now - PENDING_GRACE,
                ),
                and_(
                    Notification.status == NotificationStatus.failed.value,
                    Notification.attempts < settings.notification_max_attempts,
                    or_(Notification.next_attempt_at.is_(None), Notification.next_attempt_at <= now),
                ),
            )
        )
        .order_by(Notification.created_at)
        .limit(limit)
    )
    picked = list((await db.execute(stmt)).scalars().all())

    stale = await _stale_reason(db, picked)
    if stale:
        for n in picked:
            if n.id in stale:
                n.status = NotificationStatus.cancelled.value
                n.last_error = stale[n.id]
                n.next_attempt_at = None
        await db.commit()
        logger.info(f"Outbox cancelled {len(stale)} notifications for paid or deleted fees")

    due = [n for n in picked if n.id not in stale]
    outcomes = await deliver_notifications(db, sms, due)
    sent = sum(1 for ok in outcomes if ok)
    if due:
        logger.info(f"Outbox delivery: {sent} sent, {len(due) - sent} failed")
    return OutboxDeliveryResponse(attempted=len(due), sent=sent, failed=len(due) - sent, cancelled=len(stale))


# --- Admin API ---
def _to_response(n: Notification) -> NotificationResponse:
    return NotificationResponse(
        id=n.id,
        student_id=n.student_id,
        fee_record_id=n.fee_record_id,
        notification_type=n.notification_type,
        message=n.message,
        phone_number=n.phone_number,
        status=n.status,
        attempts=n.attempts,
        last_error=n.last_error,
        sent_at=n.sent_at,
        created_at=n.created_at,
    )


async def list_notifications(
    db: AsyncSession,
    student_id: Optional[UUID] = None,
    status_filter: Optional[NotificationStatus] = None,
    notification_type: Optional[NotificationType] = None,
) -> List[NotificationResponse]:
    stmt = select(Notification)
    if student_id is not None:
        stmt = stmt.where(Notification.student_id == student_id)
    if status_filter is not None:
        stmt = stmt.where(Notification.status == status_filter.value)
    if notification_type is not None:
        stmt = stmt.where(Notification.notification_type == notification_type.value)
    stmt = stmt.order_by(Notification.created_at.desc())
    result = await db.execute(stmt)
    return [_to_response(n) for n in result.scalars().all()]


async def send_manual_sms(
    db: AsyncSession,
    sms: SmsSender,
    payload: SendSmsRequest,
) -> NotificationResponse:
    student = await db.get(Student, payload.student_id)
    if not student:
        raise ServiceError("Student not found", status.HTTP_404_NOT_FOUND)
    notification = queue_notification(db, student, NotificationType.manual, payload.message.strip())
    if payload.phone_number:
        notification.phone_number = payload.phone_number.strip()
    await db.commit()
    await deliver_notifications(db, sms, [notification])
    await db.refresh(notification)
    return _to_response(notification)
