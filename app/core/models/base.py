from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from app.core.config import settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def school_today() -> date:
    """Current calendar date at the school. Due-date comparisons use this, never the server's local date."""
    return datetime.now(ZoneInfo(settings.school_timezone)).date()
