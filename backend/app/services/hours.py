from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from zoneinfo import ZoneInfo

from app.config import settings


MS_PER_HOUR = 3_600_000


def _zone() -> ZoneInfo:
    return ZoneInfo(settings.APP_TIMEZONE)


def as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def local_day(moment: datetime) -> date:
    """Calendar day bucket of ``moment`` in the configured application timezone."""
    return as_utc(moment).astimezone(_zone()).date()


def end_of_local_day(day: date) -> datetime:
    return datetime.combine(day, time(23, 59, 59, 999000), tzinfo=_zone()).astimezone(timezone.utc)


def round_hours(value: float) -> float:
    # Half-up to two decimals; binary float rounding would send 0.125 down.
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def compute_hours(start: datetime, end: datetime) -> float:
    """Hours between two instants from the millisecond delta, clamped at zero."""
    delta_ms = int((as_utc(end) - as_utc(start)).total_seconds() * 1000)
    return round_hours(max(0, delta_ms) / MS_PER_HOUR)


def is_multi_day(event) -> bool:
    return local_day(event.start_date) != local_day(event.end_date)


def is_final_day(event, day: date) -> bool:
    if not is_multi_day(event):
        return True
    return day >= local_day(event.end_date)


def feedback_deadline(event, time_out: datetime) -> datetime:
    anchor = min(as_utc(event.end_date), as_utc(time_out))
    return anchor + timedelta(hours=event.feedback_deadline_hours)


def restored_total(record) -> float:
    return round_hours((record.day_hours or 0) + (record.previous_day_hours or 0))
