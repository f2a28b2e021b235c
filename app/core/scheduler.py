"""Periodic jobs: overdue sweep and notification outbox retries. Each job is off when its interval is 0."""

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from app.core.config import settings
from app.core.models.base import school_today
from app.db.session import AsyncSessionLocal
from app.notifications.sms import get_sms_sender

logger = logging.getLogger(__name__)


async def overdue_sweep_job() -> None:
    from app.api.v1.fees.service import run_overdue_sweep

    try:
        async with AsyncSessionLocal() as db:
            result = await run_overdue_sweep(db, get_sms_sender(), today=school_today())
        logger.info(f"Scheduled overdue sweep: {result.overdue_fees} overdue, {result.reminders_sent} reminders sent")
    except Exception:
        # Keep the scheduler alive; the next run starts from the stored state
        logger.exception("Scheduled overdue sweep failed")


async def notification_retry_job() -> None:
    from app.api.v1.notifications.service import deliver_outbox

    try:
        async with AsyncSessionLocal() as db:
            await deliver_outbox(db, get_sms_sender())
    except Exception:
        logger.exception("Scheduled notification delivery failed")


def start_scheduler() -> Optional[AsyncIOScheduler]:
    """Start the jobs on the running event loop. Returns None when no job is enabled."""
    sweep_minutes = settings.overdue_sweep_interval_minutes
    retry_minutes = settings.notification_retry_interval_minutes
    if sweep_minutes <= 0 and retry_minutes <= 0:
        return None

    scheduler = AsyncIOScheduler()
    if sweep_minutes > 0:
        scheduler.add_job(
            overdue_sweep_job, "interval", minutes=sweep_minutes, id="overdue_sweep", replace_existing=True
        )
    if retry_minutes > 0:
        scheduler.add_job(
            notification_retry_job, "interval", minutes=retry_minutes, id="notification_retry", replace_existing=True
        )
    scheduler.start()
    logger.info(f"Scheduler started (sweep every {sweep_minutes} min, outbox every {retry_minutes} min)")
    return scheduler
