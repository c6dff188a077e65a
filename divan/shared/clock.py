"""Time helpers - all persisted datetimes are naive UTC"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = "America/Sao_Paulo"


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_utc_naive(value: datetime) -> datetime:
    """Normalize an incoming datetime (aware or naive) to naive UTC"""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def to_iso(value: datetime | None) -> str | None:
    """Serialize a stored naive-UTC datetime with an explicit offset"""
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc).isoformat()


def format_local(value: datetime, tz_name: str = DEFAULT_TIMEZONE) -> str:
    """Human date for emails, e.g. 01/03/2025 às 11:00"""
    local = value.replace(tzinfo=timezone.utc).astimezone(ZoneInfo(tz_name))
    return local.strftime("%d/%m/%Y às %H:%M")
