from datetime import date, timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.fees.service import run_overdue_sweep
from app.core.config import settings
from app.core.enums import FeeStatus
from app.core.models import FeeRecord, Notification
from app.core.models.base import school_today, utcnow


@pytest.mark.asyncio
async def test_sweep_flags_past_due_fee_and_sends_one_reminder(
    client: AsyncClient, admin_headers: dict, sms, make_period, make_student, make_fee, reload
) -> None:
    period = await make_period(date(2025, 3, 10), month_name="March 2025")
    student = await make_student(parent_phone="7771001")
    fee = await make_fee(student, period, amount="3500")

    response = await client.post(
        "/api/v1/fees/overdue-sweep", params={"as_of": "2025-03-11"}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json() == {"overdue_fees": 1, "reminders_sent": 1}
    assert sms.messages_to("7771001") == [
        "Reminder: Your child's school fee for March 2025 is overdue. Please make the payment of "
        "MVR 3500 as soon as possible to avoid any inconvenience."
    ]

    stored = await reload(FeeRecord, fee.id)
    assert stored.status == FeeStatus.overdue.value
    assert stored.is_overdue is True
    assert stored.overdue_at is not None
    assert stored.reminder_sent is True

    # Nothing new: no second reminder
    response = await client.post(
        "/api/v1/fees/overdue-sweep", params={"as_of": "2025-03-12"}, headers=admin_headers
    )
    assert response.json() == {"overdue_fees": 1, "reminders_sent": 0}
    assert len(sms.sent) == 1


@pytest.mark.asyncio
async def test_fee_due_today_is_not_overdue(
    db_session: AsyncSession, sms, make_period, make_student, make_fee, reload
) -> None:
    period = await make_period(date(2025, 3, 10))
    fee = await make_fee(await make_student(), period)

    result = await run_overdue_sweep(db_session, sms, today=date(2025, 3, 10))
    assert result.overdue_fees == 0
    assert result.reminders_sent == 0
    assert (await reload(FeeRecord, fee.id)).status == FeeStatus.pending.value
    assert sms.sent == []


@pytest.mark.asyncio
async def test_sweep_never_touches_paid_fees(
    db_session: AsyncSession, sms, make_period, make_student, make_fee, reload
) -> None:
    period = await make_period(date(2025, 3, 10))
    fee = await make_fee(await make_student(), period, status=FeeStatus.paid)

    result = await run_overdue_sweep(db_session, sms, today=date(2025, 4, 1))
    assert result.overdue_fees == 0
    stored = await reload(FeeRecord, fee.id)
    assert stored.status == FeeStatus.paid.value
    assert stored.is_overdue is False
    assert sms.sent == []


@pytest.mark.asyncio
async def test_failed_reminder_is_retried_on_next_sweep_with_same_notification(
    db_session: AsyncSession, sms, make_period, make_student, make_fee, reload
) -> None:
    period = await make_period(date(2025, 3, 10))
    student = await make_student(parent_phone="7771001")
    fee = await make_fee(student, period)
    sms.fail_numbers.add("7771001")

    first = await run_overdue_sweep(db_session, sms, today=date(2025, 3, 11))
    assert first.overdue_fees == 1
    assert first.reminders_sent == 0
    stored = await reload(FeeRecord, fee.id)
    assert stored.status == FeeStatus.overdue.value
    assert stored.reminder_sent is False

    sms.fail_numbers.clear()
    second = await run_overdue_sweep(db_session, sms, today=date(2025, 3, 12))
    assert second.reminders_sent == 1
    assert (await reload(FeeRecord, fee.id)).reminder_sent is True

    reminders = (
        await db_session.execute(
            select(Notification)
            .where(Notification.fee_record_id == fee.id, Notification.notification_type == "payment_reminder")
            .execution_options(populate_existing=True)
        )
    ).scalars().all()
    assert len(reminders) == 1
    assert reminders[0].status == "sent"
    assert reminders[0].attempts == 2


@pytest.mark.asyncio
async def test_one_failing_reminder_does_not_stop_the_others(
    db_session: AsyncSession, sms, make_period, make_student, make_fee, reload
) -> None:
    period = await make_period(date(2025, 3, 10))
    failing = await make_fee(await make_student("Aisha Ahmed", parent_phone="7771001"), period)
    working = await make_fee(await make_student("Hassan Ali", parent_phone="7771002"), period)
    sms.raise_numbers.add("7771001")

    result = await run_overdue_sweep(db_session, sms, today=date(2025, 3, 20))
    assert result.overdue_fees == 2
    assert result.reminders_sent == 1
    assert (await reload(FeeRecord, failing.id)).reminder_sent is False
    assert (await reload(FeeRecord, working.id)).reminder_sent is True


@pytest.mark.asyncio
async def test_overdue_flag_survives_payment(
    client: AsyncClient, admin_headers: dict, db_session: AsyncSession, sms, make_period, make_student, make_fee, reload
) -> None:
    yesterday = school_today() - timedelta(days=1)
    period = await make_period(yesterday)
    fee = await make_fee(await make_student(), period)

    await run_overdue_sweep(db_session, sms)
    response = await client.post(f"/api/v1/fees/{fee.id}/mark-paid", headers=admin_headers)
    assert response.status_code == 200
    body = response.json()["fee"]
    assert body["status"] == "paid"
    assert body["is_overdue"] is True

    stored = await reload(FeeRecord, fee.id)
    assert stored.status == FeeStatus.paid.value
    assert stored.is_overdue is True

    # Paid fees drop out of later sweeps
    result = await run_overdue_sweep(db_session, sms)
    assert result.overdue_fees == 0


def test_school_today_uses_the_configured_timezone(monkeypatch) -> None:
    # Kiritimati is UTC+14 all year, so its date is ahead of UTC for most of the day
    monkeypatch.setattr(settings, "school_timezone", "Pacific/Kiritimati")
    assert school_today() == (utcnow() + timedelta(hours=14)).date()


@pytest.mark.asyncio
async def test_sweep_without_a_date_compares_against_the_school_date(
    db_session: AsyncSession, sms, make_period, make_student, make_fee, reload, monkeypatch
) -> None:
    period = await make_period(date(2025, 3, 10))
    fee = await make_fee(await make_student(), period)

    monkeypatch.setattr("app.api.v1.fees.service.school_today", lambda: date(2025, 3, 10))
    assert (await run_overdue_sweep(db_session, sms)).overdue_fees == 0

    monkeypatch.setattr("app.api.v1.fees.service.school_today", lambda: date(2025, 3, 11))
    assert (await run_overdue_sweep(db_session, sms)).overdue_fees == 1
    assert (await reload(FeeRecord, fee.id)).status == FeeStatus.overdue.value
