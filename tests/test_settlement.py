from datetime import date, timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.fees.service import run_overdue_sweep, settle_fee
from app.api.v1.notifications.service import deliver_outbox
from app.core.config import settings
from app.core.enums import FeeStatus, NotificationStatus, NotificationType
from app.core.models import FeeRecord, Notification
from app.core.models.base import utcnow


@pytest.mark.asyncio
async def test_completed_webhook_marks_fee_paid_and_confirms(
    client: AsyncClient, sms, make_period, make_student, make_fee, reload
) -> None:
    period = await make_period(date(2025, 3, 10), month_name="March 2025")
    fee = await make_fee(await make_student(parent_phone="7771001"), period, amount="3500")

    response = await client.post(
        "/api/v1/payments/webhook",
        json={
            "payment_id": "pay_123",
            "status": "completed",
            "amount": 3500,
            "reference": "BML-REF-9",
            "student_fee_id": str(fee.id),
        },
    )
    assert response.status_code == 200
    assert response.json()["settled"] is True

    stored = await reload(FeeRecord, fee.id)
    assert stored.status == FeeStatus.paid.value
    assert stored.payment_date is not None
    assert stored.transaction_id == "BML-REF-9"
    assert stored.provider_payment_id == "pay_123"
    assert sms.messages_to("7771001") == [
        "Payment Confirmed: Your payment of MVR 3500 for March 2025 has been successfully processed. Thank you!"
    ]


@pytest.mark.asyncio
async def test_webhook_without_reference_uses_payment_id(
    client: AsyncClient, make_period, make_student, make_fee, reload
) -> None:
    period = await make_period(date(2025, 3, 10))
    fee = await make_fee(await make_student(), period)

    response = await client.post(
        "/api/v1/payments/webhook",
        json={"payment_id": "pay_777", "status": "completed", "student_fee_id": str(fee.id)},
    )
    assert response.status_code == 200
    assert (await reload(FeeRecord, fee.id)).transaction_id == "pay_777"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"payment_id": "pay_1", "status": "failed"},
        {"payment_id": "pay_1", "status": "pending"},
        {"payment_id": "pay_1", "status": "completed"},
    ],
)
async def test_webhook_without_settleable_payload_changes_nothing(
    client: AsyncClient, sms, make_period, make_student, make_fee, reload, payload: dict
) -> None:
    period = await make_period(date(2025, 3, 10))
    fee = await make_fee(await make_student(), period)
    if payload["status"] != "completed":
        payload = {**payload, "student_fee_id": str(fee.id)}

    response = await client.post("/api/v1/payments/webhook", json=payload)
    assert response.status_code == 200
    assert response.json()["settled"] is False
    assert (await reload(FeeRecord, fee.id)).status == FeeStatus.pending.value
    assert sms.sent == []


@pytest.mark.asyncio
async def test_second_settlement_keeps_first_payment_and_sends_no_second_confirmation(
    client: AsyncClient, admin_headers: dict, db_session: AsyncSession, sms, make_period, make_student, make_fee, reload
) -> None:
    period = await make_period(date(2025, 3, 10))
    fee = await make_fee(await make_student(parent_phone="7771001"), period)

    first = await client.post(
        "/api/v1/payments/webhook",
        json={"payment_id": "pay_1", "status": "completed", "reference": "REF-1", "student_fee_id": str(fee.id)},
    )
    assert first.json()["settled"] is True
    paid = await reload(FeeRecord, fee.id)
    first_payment_date = paid.payment_date

    again = await client.post(
        "/api/v1/payments/webhook",
        json={"payment_id": "pay_2", "status": "completed", "reference": "REF-2", "student_fee_id": str(fee.id)},
    )
    assert again.status_code == 200
    assert again.json()["settled"] is False

    manual = await client.post(f"/api/v1/fees/{fee.id}/mark-paid", headers=admin_headers)
    assert manual.status_code == 200
    assert manual.json()["settled"] is False

    stored = await reload(FeeRecord, fee.id)
    assert stored.transaction_id == "REF-1"
    assert stored.payment_date == first_payment_date
    assert len(sms.messages_to("7771001")) == 1
    confirmations = await db_session.execute(
        select(func.count(Notification.id)).where(Notification.notification_type == "payment_confirmed")
    )
    assert confirmations.scalar_one() == 1


@pytest.mark.asyncio
async def test_manual_settlement_uses_generated_reference(
    client: AsyncClient, admin_headers: dict, make_period, make_student, make_fee
) -> None:
    period = await make_period(date(2025, 3, 10))
    fee = await make_fee(await make_student(), period, status=FeeStatus.overdue)

    response = await client.post(f"/api/v1/fees/{fee.id}/mark-paid", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["settled"] is True
    assert data["fee"]["status"] == "paid"
    assert data["fee"]["transaction_id"].startswith("MAN")
    assert data["fee"]["transaction_id"][3:].isdigit()


@pytest.mark.asyncio
async def test_confirmation_failure_keeps_fee_paid(
    client: AsyncClient, admin_headers: dict, sms, make_period, make_student, make_fee, reload
) -> None:
    period = await make_period(date(2025, 3, 10))
    fee = await make_fee(await make_student(parent_phone="7771001"), period)
    sms.raise_numbers.add("7771001")

    response = await client.post(f"/api/v1/fees/{fee.id}/mark-paid", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["confirmation_sent"] is False
    assert (await reload(FeeRecord, fee.id)).status == FeeStatus.paid.value


@pytest.mark.asyncio
async def test_settling_unknown_fee_returns_404(client: AsyncClient, admin_headers: dict) -> None:
    missing = "00000000-0000-0000-0000-0000000000aa"
    response = await client.post(f"/api/v1/fees/{missing}/mark-paid", headers=admin_headers)
    assert response.status_code == 404

    response = await client.post(
        "/api/v1/payments/webhook",
        json={"payment_id": "pay_1", "status": "completed", "student_fee_id": missing},
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_webhook_secret_is_enforced_when_configured(
    client: AsyncClient, monkeypatch, make_period, make_student, make_fee, reload
) -> None:
    monkeypatch.setattr(settings, "payment_webhook_secret", "s3cret")
    period = await make_period(date(2025, 3, 10))
    fee = await make_fee(await make_student(), period)
    payload = {"payment_id": "pay_1", "status": "completed", "student_fee_id": str(fee.id)}

    response = await client.post("/api/v1/payments/webhook", json=payload)
    assert response.status_code == 401
    response = await client.post("/api/v1/payments/webhook", json=payload, headers={"X-Webhook-Secret": "wrong"})
    assert response.status_code == 401
    assert (await reload(FeeRecord, fee.id)).status == FeeStatus.pending.value

    response = await client.post("/api/v1/payments/webhook", json=payload, headers={"X-Webhook-Secret": "s3cret"})
    assert response.status_code == 200
    assert response.json()["settled"] is True


@pytest.mark.asyncio
async def test_payment_cancels_a_failed_reminder_so_it_is_never_retried(
    db_session: AsyncSession, sms, make_period, make_student, make_fee, reload
) -> None:
    period = await make_period(date(2025, 3, 10), month_name="March 2025")
    fee = await make_fee(await make_student(parent_phone="7771001"), period, amount="3500")

    sms.fail_numbers.add("7771001")
    assert (await run_overdue_sweep(db_session, sms, today=date(2025, 3, 20))).reminders_sent == 0
    sms.fail_numbers.clear()

    settlement = await settle_fee(db_session, sms, fee.id, transaction_id="BML-REF-1")
    assert settlement.settled is True

    result = await deliver_outbox(db_session, sms, now=utcnow() + timedelta(minutes=5))
    assert result.sent == 0
    assert sms.messages_to("7771001") == [
        "Payment Confirmed: Your payment of MVR 3500 for March 2025 has been successfully processed. Thank you!"
    ]

    reminders = await db_session.execute(
        select(Notification)
        .where(
            Notification.fee_record_id == fee.id,
            Notification.notification_type == NotificationType.payment_reminder.value,
        )
        .execution_options(populate_existing=True)
    )
    assert [n.status for n in reminders.scalars().all()] == [NotificationStatus.cancelled.value]
    assert (await reload(FeeRecord, fee.id)).reminder_sent is False
