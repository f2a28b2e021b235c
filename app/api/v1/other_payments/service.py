import logging
from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.fees.service import manual_transaction_id
from app.core.enums import OtherPaymentStatus
from app.core.exceptions import ServiceError
from app.core.models import OtherPayment, Student
from app.core.models.base import utcnow

from .schemas import (
    OtherPaymentAssignRequest,
    OtherPaymentResponse,
    OtherPaymentUpdate,
    OtherPaymentWithStudent,
)

logger = logging.getLogger(__name__)


def _to_response(payment: OtherPayment) -> OtherPaymentResponse:
    return OtherPaymentResponse.model_validate(payment)


async def _get_or_404(db: AsyncSession, payment_id: UUID) -> OtherPayment:
    payment = await db.get(OtherPayment, payment_id)
    if not payment:
        raise ServiceError("Payment not found", status.HTTP_404_NOT_FOUND)
    return payment


async def assign_other_payments(db: AsyncSession, payload: OtherPaymentAssignRequest) -> List[OtherPaymentResponse]:
    student_ids = list(dict.fromkeys(payload.student_ids))
    result = await db.execute(select(Student.id).where(Student.id.in_(student_ids)))
    found = set(result.scalars().all())
    missing = [str(sid) for sid in student_ids if sid not in found]
    if missing:
        raise ServiceError(f"Student not found: {', '.join(missing)}", status.HTTP_404_NOT_FOUND)

    payments = [
        OtherPayment(
            student_id=sid,
            payment_name=payload.payment_name.strip(),
            amount=payload.amount,
            status=OtherPaymentStatus.pending.value,
        )
        for sid in student_ids
    ]
    db.add_all(payments)
    await db.commit()
    for p in payments:
        await db.refresh(p)
    logger.info(f"Assigned '{payload.payment_name}' to {len(payments)} students")
    return [_to_response(p) for p in payments]


async def list_other_payments(
    db: AsyncSession,
    student_id: Optional[UUID] = None,
    status_filter: Optional[OtherPaymentStatus] = None,
) -> List[OtherPaymentWithStudent]:
    stmt = select(OtherPayment, Student).join(Student, Student.id == OtherPayment.student_id)
    if student_id is not None:
        stmt = stmt.where(OtherPayment.student_id == student_id)
    if status_filter is not None:
        stmt = stmt.where(OtherPayment.status == status_filter.value)
    stmt = stmt.order_by(OtherPayment.created_at.desc())
    result = await db.execute(stmt)
    return [
        OtherPaymentWithStudent(
            **_to_response(p).model_dump(),
            student_name=s.full_name,
            student_login_id=s.login_id,
            class_name=s.class_name,
        )
        for p, s in result.all()
    ]


async def update_other_payment(
    db: AsyncSession, payment_id: UUID, payload: OtherPaymentUpdate
) -> OtherPaymentResponse:
    payment = await _get_or_404(db, payment_id)
    if payload.payment_name is not None:
        payment.payment_name = payload.payment_name.strip()
    if payload.amount is not None:
        if payment.status == OtherPaymentStatus.paid.value:
            raise ServiceError("Cannot change the amount of a paid payment", status.HTTP_400_BAD_REQUEST)
        payment.amount = payload.amount
    await db.commit()
    await db.refresh(payment)
    return _to_response(payment)


async def delete_other_payment(db: AsyncSession, payment_id: UUID) -> None:
    payment = await _get_or_404(db, payment_id)
    await db.delete(payment)
    await db.commit()


async def mark_other_payment_paid(db: AsyncSession, payment_id: UUID) -> OtherPaymentResponse:
    """Manual settlement. Already paid payments keep their original payment details."""
    payment = await _get_or_404(db, payment_id)
    now = utcnow()
    result = await db.execute(
        update(OtherPayment)
        .where(OtherPayment.id == payment_id, OtherPayment.status != OtherPaymentStatus.paid.value)
        .values(
            status=OtherPaymentStatus.paid.value,
            payment_date=now,
            transaction_id=manual_transaction_id(),
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    await db.refresh(payment)
    if result.rowcount:
        logger.info(f"Other payment {payment_id} marked paid ({payment.transaction_id})")
    return _to_response(payment)
