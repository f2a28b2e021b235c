"""Monthly fees: assignment, overdue sweep and settlement. Every state change queues its SMS in the same transaction."""

import logging
import time
import uuid
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.billing_periods.service import get_period_or_404
from app.api.v1.notifications.service import (
    UNDELIVERED_STATUSES,
    cancel_undelivered,
    deliver_notifications,
    fee_assigned_message,
    payment_confirmed_message,
    payment_reminder_message,
    queue_notification,
)
from app.api.v1.students.schemas import StudentResponse
from app.core.enums import FeeStatus, NotificationType
from app.core.exceptions import ServiceError
from app.core.models import BillingPeriod, FeeRecord, Notification, Student
from app.core.models.base import school_today, utcnow
from app.notifications.sms import SmsSender

from .schemas import (
    FeeAssignRequest,
    FeeAssignResponse,
    FeeRecordResponse,
    FeeRecordWithDetails,
    FeeUpdate,
    OverdueSweepResponse,
    SettlementResponse,
)

logger = logging.getLogger(__name__)

DUPLICATE_FEE_MESSAGE = "Some students already have fees for this month"


def _to_decimal(val) -> Decimal:
    if val is None:
        return Decimal("0")
    return val if isinstance(val, Decimal) else Decimal(str(val))


def _to_response(fee: FeeRecord) -> FeeRecordResponse:
    return FeeRecordResponse.model_validate(fee)


def _to_details(fee: FeeRecord, student: Student, period: BillingPeriod) -> FeeRecordWithDetails:
    return FeeRecordWithDetails(
        **_to_response(fee).model_dump(),
        student_name=student.full_name,
        student_login_id=student.login_id,
        class_name=student.class_name,
        parent_phone=student.parent_phone,
        month_name=period.month_name,
        month_number=period.month_number,
        due_date=period.due_date,
        academic_year_id=period.academic_year_id,
    )


async def get_fee_or_404(db: AsyncSession, fee_id: UUID) -> FeeRecord:
    fee = await db.get(FeeRecord, fee_id)
    if not fee:
        raise ServiceError("Fee record not found", status.HTTP_404_NOT_FOUND)
    return fee


# --- Assignment ---
async def list_assignable_students(db: AsyncSession, billing_period_id: UUID) -> List[StudentResponse]:
    """Students without a fee for the period."""
    await get_period_or_404(db, billing_period_id)
    billed = select(FeeRecord.student_id).where(FeeRecord.billing_period_id == billing_period_id)
    stmt = select(Student).where(Student.id.not_in(billed)).order_by(Student.full_name)
    result = await db.execute(stmt)
    return [StudentResponse.model_validate(s) for s in result.scalars().all()]


async def assign_fees(db: AsyncSession, sms: SmsSender, payload: FeeAssignRequest) -> FeeAssignResponse:
    """
    Create one pending fee per student for the period and queue a fee_assigned SMS for each.
    Students that already have a fee for the period are skipped. If another request bills one
    of the same students first, the unique (student, period) constraint rejects the whole batch.
    """
    period = await get_period_or_404(db, payload.billing_period_id)
    if not period.is_active:
        raise ServiceError("Billing period is not active", status.HTTP_400_BAD_REQUEST)

    student_ids = list(dict.fromkeys(payload.student_ids))
    result = await db.execute(select(Student).where(Student.id.in_(student_ids)))
    students = {s.id: s for s in result.scalars().all()}
    missing = [str(sid) for sid in student_ids if sid not in students]
    if missing:
        raise ServiceError(f"Student not found: {', '.join(missing)}", status.HTTP_404_NOT_FOUND)

    existing_result = await db.execute(
        select(FeeRecord.student_id).where(
            FeeRecord.billing_period_id == period.id,
            FeeRecord.student_id.in_(student_ids),
        )
    )
    already_billed = set(existing_result.scalars().all())

    amount = _to_decimal(payload.amount)
    fees: List[FeeRecord] = []
    notifications: List[Notification] = []
    for sid in student_ids:
        if sid in already_billed:
            continue
        student = students[sid]
        fee = FeeRecord(
            id=uuid.uuid4(),
            student_id=sid,
            billing_period_id=period.id,
            amount=amount,
            status=FeeStatus.pending.value,
            reminder_sent=False,
            notification_sent=True,
        )
        db.add(fee)
        fees.append(fee)
        notifications.append(
            queue_notification(
                db,
                student,
                NotificationType.fee_assigned,
                fee_assigned_message(student.full_name, amount, period.month_name, period.due_date),
                fee_record_id=fee.id,
            )
        )

    skipped = [sid for sid in student_ids if sid in already_billed]
    if not fees:
        return FeeAssignResponse(created=[], skipped_student_ids=skipped)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError(DUPLICATE_FEE_MESSAGE, status.HTTP_409_CONFLICT)

    logger.info(f"Assigned {len(fees)} fees for {period.month_name} ({len(skipped)} skipped)")
    created = [_to_response(f) for f in fees]
    outcomes = await deliver_notifications(db, sms, notifications)
    sent = sum(1 for ok in outcomes if ok)
    return FeeAssignResponse(
        created=created,
        skipped_student_ids=skipped,
        notifications_sent=sent,
        notifications_failed=len(outcomes) - sent,
    )


async def list_fees(
    db: AsyncSession,
    billing_period_id: Optional[UUID] = None,
    student_id: Optional[UUID] = None,
    status_filter: Optional[FeeStatus] = None,
    academic_year_id: Optional[UUID] = None,
) -> List[FeeRecordWithDetails]:
    stmt = (
        select(FeeRecord, Student, BillingPeriod)
        .join(Student, Student.id == FeeRecord.student_id)
        .join(BillingPeriod, BillingPeriod.id == FeeRecord.billing_period_id)
    )
    if billing_period_id is not None:
        stmt = stmt.where(FeeRecord.billing_period_id == billing_period_id)
    if student_id is not None:
        stmt = stmt.where(FeeRecord.student_id == student_id)
    if status_filter is not None:
        stmt = stmt.where(FeeRecord.status == status_filter.value)
    if academic_year_id is not None:
        stmt = stmt.where(BillingPeriod.academic_year_id == academic_year_id)
    stmt = stmt.order_by(BillingPeriod.due_date.desc(), Student.full_name)
    result = await db.execute(stmt)
    return [_to_details(fee, student, period) for fee, student, period in result.all()]


async def update_fee_amount(db: AsyncSession, fee_id: UUID, payload: FeeUpdate) -> FeeRecordResponse:
    fee = await get_fee_or_404(db, fee_id)
    if fee.status == FeeStatus.paid.value:
        raise ServiceError("Cannot change the amount of a paid fee", status.HTTP_400_BAD_REQUEST)
    fee.amount = _to_decimal(payload.amount)
    await db.commit()
    await db.refresh(fee)
    return _to_response(fee)


async def delete_fee(db: AsyncSession, fee_id: UUID) -> None:
    fee = await get_fee_or_404(db, fee_id)
    if fee.status == FeeStatus.paid.value:
        raise ServiceError("Cannot delete a paid fee", status.HTTP_400_BAD_REQUEST)
    await cancel_undelivered(
        db, fee.id, [NotificationType.fee_assigned, NotificationType.payment_reminder], "Fee no longer exists"
    )
    await db.delete(fee)
    await db.commit()


# --- Overdue sweep ---
async def run_overdue_sweep(
    db: AsyncSession,
    sms: SmsSender,
    today: Optional[date] = None,
) -> OverdueSweepResponse:
    """
    Flag pending fees whose due date has passed as overdue, then send one reminder per overdue fee
    that has not had a reminder delivered yet. A failed reminder is retried on the next sweep by
    reusing its notification row. Paid fees are never touched.
    """
    today = today or school_today()
    now = utcnow()
    past_due_periods = select(BillingPeriod.id).where(BillingPeriod.due_date < today)

    flagged = await db.execute(
        update(FeeRecord)
        .where(
            FeeRecord.status == FeeStatus.pending.value,
            FeeRecord.billing_period_id.in_(past_due_periods),
        )
        .values(status=FeeStatus.overdue.value, overdue_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    if flagged.rowcount:
        logger.info(f"Overdue sweep flagged {flagged.rowcount} fees")

    result = await db.execute(
        select(FeeRecord, Student, BillingPeriod)
        .join(Student, Student.id == FeeRecord.student_id)
        .join(BillingPeriod, BillingPeriod.id == FeeRecord.billing_period_id)
        .where(FeeRecord.status == FeeStatus.overdue.value, BillingPeriod.due_date < today)
        .execution_options(populate_existing=True)
    )
    candidates = result.all()
    to_remind = [(fee, student, period) for fee, student, period in candidates if not fee.reminder_sent]
    if not to_remind:
        return OverdueSweepResponse(overdue_fees=len(candidates), reminders_sent=0)

    fee_ids = [fee.id for fee, _, _ in to_remind]
    unsent_result = await db.execute(
        select(Notification)
        .where(
            Notification.fee_record_id.in_(fee_ids),
            Notification.notification_type == NotificationType.payment_reminder.value,
            Notification.status.in_(UNDELIVERED_STATUSES),
        )
        .order_by(Notification.created_at)
    )
    unsent: Dict[UUID, Notification] = {}
    for n in unsent_result.scalars().all():
        unsent.setdefault(n.fee_record_id, n)

    reminders: List[Notification] = []
    for fee, student, period in to_remind:
        notification = unsent.get(fee.id)
        if notification is None:
            notification = queue_notification(
                db,
                student,
                NotificationType.payment_reminder,
                payment_reminder_message(period.month_name, fee.amount),
                fee_record_id=fee.id,
            )
        reminders.append(notification)
    await db.commit()

    outcomes = await deliver_notifications(db, sms, reminders)
    sent = sum(1 for ok in outcomes if ok)
    logger.info(f"Overdue sweep: {len(candidates)} overdue, {sent}/{len(reminders)} reminders sent")
    return OverdueSweepResponse(overdue_fees=len(candidates), reminders_sent=sent)


# --- Settlement ---
def manual_transaction_id() -> str:
    return f"MAN{int(time.time() * 1000)}"


async def settle_fee(
    db: AsyncSession,
    sms: SmsSender,
    fee_id: UUID,
    transaction_id: str,
    provider_payment_id: Optional[str] = None,
) -> SettlementResponse:
    """
    Mark a fee paid and send the payment confirmation.
    The status write only applies while the fee is unpaid, so settling twice keeps the first
    payment details and sends no second confirmation.
    """
    fee = await get_fee_or_404(db, fee_id)
    now = utcnow()
    try:
        result = await db.execute(
            update(FeeRecord)
            .where(FeeRecord.id == fee_id, FeeRecord.status != FeeStatus.paid.value)
            .values(
                status=FeeStatus.paid.value,
                payment_date=now,
                transaction_id=transaction_id,
                provider_payment_id=provider_payment_id,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await db.rollback()
            await db.refresh(fee)
            logger.info(f"Fee {fee_id} already paid; settlement {transaction_id} ignored")
            return SettlementResponse(fee=_to_response(fee), settled=False)

        student = await db.get(Student, fee.student_id)
        period = await db.get(BillingPeriod, fee.billing_period_id)
        notification = queue_notification(
            db,
            student,
            NotificationType.payment_confirmed,
            payment_confirmed_message(fee.amount, period.month_name),
            fee_record_id=fee.id,
        )
        cancelled = await cancel_undelivered(db, fee.id, [NotificationType.payment_reminder], "Fee already paid")
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception(f"Failed to record payment for fee {fee_id}")
        raise ServiceError("Failed to record payment", status.HTTP_500_INTERNAL_SERVER_ERROR) from e

    await db.refresh(fee)
    logger.info(f"Fee {fee_id} settled with transaction {transaction_id}")
    if cancelled:
        logger.info(f"Cancelled {cancelled} undelivered reminders for fee {fee_id}")
    response_fee = _to_response(fee)
    outcomes = await deliver_notifications(db, sms, [notification])
    return SettlementResponse(fee=response_fee, settled=True, confirmation_sent=bool(outcomes and outcomes[0]))


async def mark_fee_paid(db: AsyncSession, sms: SmsSender, fee_id: UUID) -> SettlementResponse:
    return await settle_fee(db, sms, fee_id, transaction_id=manual_transaction_id())
