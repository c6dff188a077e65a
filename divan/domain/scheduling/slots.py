"""
Slot generation
Turns weekly availability rules into concrete bookable windows for one local day.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Optional, Sequence
from zoneinfo import ZoneInfo

SLOT_STEP_MINUTES = 10

AVAILABLE = "available"
BOOKED = "booked"
PAST = "past"
BLOCKED = "blocked"


@dataclass(frozen=True)
class Slot:
    start_at: datetime  # naive UTC
    end_at: datetime  # naive UTC
    status: str = AVAILABLE

    @property
    def is_available(self) -> bool:
        return self.status == AVAILABLE


def sunday_based_weekday(day: date) -> int:
    """0=Sunday ... 6=Saturday"""
    return (day.weekday() + 1) % 7


def _overlaps(start: datetime, end: datetime, windows: Iterable[tuple[datetime, datetime]]) -> bool:
    return any(start < w_end and end > w_start for w_start, w_end in windows)


def _to_utc_naive(local: datetime) -> datetime:
    return local.astimezone(timezone.utc).replace(tzinfo=None)


def generate_slots(
    day: date,
    rules: Sequence,
    timezone_name: str,
    duration_minutes: int,
    blocks: Sequence[tuple[datetime, datetime]],
    booked: Sequence[tuple[datetime, datetime]],
    now: datetime,
    appointment_type: Optional[str] = None,
) -> list[Slot]:
    """
    Every candidate slot for the local day, each tagged available/booked/past/blocked.

    Args:
        day: Calendar day in the professional's timezone
        rules: Availability rules (weekday, start_time, end_time, appointment_type, is_active)
        timezone_name: IANA timezone of the professional
        duration_minutes: Session length
        blocks: Blocked windows (naive UTC)
        booked: Live appointment windows (naive UTC)
        now: Current time (naive UTC)
        appointment_type: Only rules of this type when given
    """
    tz = ZoneInfo(timezone_name)
    weekday = sunday_based_weekday(day)
    duration = timedelta(minutes=duration_minutes)
    step = timedelta(minutes=SLOT_STEP_MINUTES)

    by_start: dict[datetime, Slot] = {}
    for rule in rules:
        if not rule.is_active or rule.weekday != weekday:
            continue
        if appointment_type and rule.appointment_type != appointment_type:
            continue

        cursor = datetime.combine(day, rule.start_time, tzinfo=tz)
        window_end = datetime.combine(day, rule.end_time, tzinfo=tz)

        while cursor + duration <= window_end:
            start_at = _to_utc_naive(cursor)
            end_at = _to_utc_naive(cursor + duration)

            if start_at <= now:
                status = PAST
            elif _overlaps(start_at, end_at, blocks):
                status = BLOCKED
            elif _overlaps(start_at, end_at, booked):
                status = BOOKED
            else:
                status = AVAILABLE

            # Overlapping rules yield the same start once
            if start_at not in by_start:
                by_start[start_at] = Slot(start_at, end_at, status)
            cursor += step

    return [by_start[key] for key in sorted(by_start)]


def local_day_bounds(day: date, timezone_name: str) -> tuple[datetime, datetime]:
    """Naive-UTC [start, end) covering the local calendar day"""
    tz = ZoneInfo(timezone_name)
    start = datetime.combine(day, datetime.min.time(), tzinfo=tz)
    end = start + timedelta(days=1)
    return _to_utc_naive(start), _to_utc_naive(end)


def local_day_of(instant: datetime, timezone_name: str) -> date:
    return instant.replace(tzinfo=timezone.utc).astimezone(ZoneInfo(timezone_name)).date()
