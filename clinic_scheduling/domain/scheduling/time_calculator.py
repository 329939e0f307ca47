"""Time parsing and interval arithmetic shared by the scheduling engine"""

import calendar
from datetime import date, datetime, time, timedelta
from typing import Iterator, Optional
from zoneinfo import ZoneInfo

from ...config import CLINIC_TIMEZONE
from .exceptions import BookingValidationError

# Query windows reach a day past either end of the requested period, so
# the edges of the datetime range stay out of reach
MIN_YEAR = 1900
MAX_YEAR = 9998


def parse_hhmm(value: str) -> time:
    """Parse an "HH:MM" string into a time, raising BookingValidationError"""
    try:
        hour_str, minute_str = value.strip().split(":")
        return time(int(hour_str), int(minute_str))
    except (AttributeError, ValueError):
        raise BookingValidationError(f"Invalid time '{value}'. Expected HH:MM") from None


def format_hhmm(value: time) -> str:
    return f"{value.hour:02d}:{value.minute:02d}"


def parse_iso_date(value: str) -> date:
    try:
        parsed = date.fromisoformat(value)
    except (TypeError, ValueError):
        raise BookingValidationError(
            f"Invalid date '{value}'. Expected YYYY-MM-DD"
        ) from None
    if not MIN_YEAR <= parsed.year <= MAX_YEAR:
        raise BookingValidationError(
            f"Date '{value}' is out of range ({MIN_YEAR}-{MAX_YEAR})"
        )
    return parsed


def parse_year_month(value: str) -> tuple[int, int]:
    """Parse "YYYY-MM" into (year, month)"""
    try:
        year_str, month_str = value.strip().split("-")
        year, month = int(year_str), int(month_str)
    except (AttributeError, ValueError):
        raise BookingValidationError(f"Invalid month '{value}'. Expected YYYY-MM") from None
    if not 1 <= month <= 12:
        raise BookingValidationError(f"Invalid month '{value}'. Expected YYYY-MM")
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise BookingValidationError(
            f"Month '{value}' is out of range ({MIN_YEAR}-{MAX_YEAR})"
        )
    return year, month


def intervals_overlap(
    start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime
) -> bool:
    """Half-open interval overlap: [start_a, end_a) and [start_b, end_b) share an instant"""
    return start_a < end_b and start_b < end_a


def interval_end(start: datetime, duration_minutes: int) -> datetime:
    return start + timedelta(minutes=duration_minutes)


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """[start, end) of a local calendar day"""
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def month_bounds(year: int, month: int) -> tuple[datetime, datetime]:
    """[start, end) of a calendar month"""
    last_day = calendar.monthrange(year, month)[1]
    start = datetime(year, month, 1)
    return start, datetime.combine(date(year, month, last_day), time.min) + timedelta(days=1)


def iter_month_days(year: int, month: int) -> Iterator[date]:
    last_day = calendar.monthrange(year, month)[1]
    for day in range(1, last_day + 1):
        yield date(year, month, day)


def to_clinic_local(value: datetime) -> datetime:
    """
    Normalize a timestamp to naive clinic-local time.

    Aware datetimes are converted to CLINIC_TIMEZONE; naive ones are assumed to
    already be local (same convention as the portals, which send local times).
    """
    if value.tzinfo is None:
        return value.replace(second=0, microsecond=0)
    local = value.astimezone(ZoneInfo(CLINIC_TIMEZONE))
    return local.replace(tzinfo=None, second=0, microsecond=0)


def clinic_now(now: Optional[datetime] = None) -> datetime:
    """Current naive clinic-local time, or the injected `now` normalized"""
    if now is not None:
        if now.tzinfo is None:
            return now
        return now.astimezone(ZoneInfo(CLINIC_TIMEZONE)).replace(tzinfo=None)
    return datetime.now(ZoneInfo(CLINIC_TIMEZONE)).replace(tzinfo=None)
