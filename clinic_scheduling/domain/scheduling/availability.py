"""
Doctor availability model.

Static per-doctor configuration (working hours and working days) plus the
clinic-wide lunch break window. Both are value objects built from the ORM rows
and config, so the slot arithmetic never touches the database.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Iterable, Optional

from ...config import (
    DEFAULT_AVAILABLE_FROM,
    DEFAULT_AVAILABLE_TO,
    LUNCH_BREAK_END,
    LUNCH_BREAK_START,
)
from ...models import Doctor
from .exceptions import BookingValidationError
from .time_calculator import format_hhmm, intervals_overlap, parse_hhmm

logger = logging.getLogger(__name__)


class Weekday(str, enum.Enum):
    MONDAY = "MONDAY"
    TUESDAY = "TUESDAY"
    WEDNESDAY = "WEDNESDAY"
    THURSDAY = "THURSDAY"
    FRIDAY = "FRIDAY"
    SATURDAY = "SATURDAY"
    SUNDAY = "SUNDAY"

    @classmethod
    def of(cls, day: date) -> "Weekday":
        # date.weekday(): Monday == 0
        return list(cls)[day.weekday()]


def parse_weekdays(values: Optional[Iterable[str]]) -> frozenset:
    """Parse stored day names, skipping anything unrecognised"""
    days = set()
    for value in values or []:
        try:
            days.add(Weekday(str(value).strip().upper()))
        except ValueError:
            logger.warning(f"⚠️ Ignoring unknown weekday in availability profile: {value!r}")
    return frozenset(days)


@dataclass(frozen=True)
class LunchBreak:
    """Daily window that is never bookable, whatever the bookings say"""

    start: time
    end: time

    def __post_init__(self):
        if self.start >= self.end:
            raise BookingValidationError(
                f"Lunch break start {format_hhmm(self.start)} must be before end {format_hhmm(self.end)}"
            )

    @classmethod
    def from_config(
        cls, start: Optional[str] = LUNCH_BREAK_START, end: Optional[str] = LUNCH_BREAK_END
    ) -> Optional["LunchBreak"]:
        if not start or not end:
            return None
        return cls(parse_hhmm(start), parse_hhmm(end))

    def overlaps(self, slot_start: datetime, slot_end: datetime) -> bool:
        day = slot_start.date()
        return intervals_overlap(
            slot_start,
            slot_end,
            datetime.combine(day, self.start),
            datetime.combine(day, self.end),
        )

    def __str__(self) -> str:
        return f"{format_hhmm(self.start)}-{format_hhmm(self.end)}"


@dataclass(frozen=True)
class AvailabilityProfile:
    available_from: time
    available_to: time
    available_days: frozenset

    def __post_init__(self):
        if self.available_from >= self.available_to:
            raise BookingValidationError(
                f"Doctor availability start {format_hhmm(self.available_from)} "
                f"must be before end {format_hhmm(self.available_to)}"
            )

    @classmethod
    def from_doctor(cls, doctor: Doctor) -> "AvailabilityProfile":
        return cls(
            available_from=parse_hhmm(doctor.available_from or DEFAULT_AVAILABLE_FROM),
            available_to=parse_hhmm(doctor.available_to or DEFAULT_AVAILABLE_TO),
            available_days=parse_weekdays(doctor.available_days),
        )

    @property
    def is_bookable(self) -> bool:
        return bool(self.available_days)

    def works_on(self, day: date) -> bool:
        return Weekday.of(day) in self.available_days

    def ordered_days(self) -> list[str]:
        return [day.value for day in Weekday if day in self.available_days]
