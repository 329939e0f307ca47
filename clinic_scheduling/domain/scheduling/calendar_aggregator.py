"""
Calendar Aggregator

Rolls slot generation and booking classification up over a whole month.
Every working day is computed with exactly the same functions as the day view,
so per-day counts always match what GetDayAvailability reports.
"""

import enum
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Optional

from .availability import AvailabilityProfile, LunchBreak
from .conflict_checker import BookedInterval, apply_bookings, partition_by_day
from .slot_generator import DaySlots, generate_slots
from .time_calculator import iter_month_days


class DayState(str, enum.Enum):
    PAST = "PAST"
    UNAVAILABLE = "UNAVAILABLE"  # Doctor does not work this weekday
    NO_SLOTS = "NO_SLOTS"  # Working day, but no slot fits the window
    FULLY_BOOKED = "FULLY_BOOKED"
    HAS_SLOTS = "HAS_SLOTS"


@dataclass(frozen=True)
class CalendarDay:
    date: date
    state: DayState
    is_doctor_available: bool
    available_slots: int = 0
    total_slots: int = 0

    def __post_init__(self):
        if self.state == DayState.UNAVAILABLE and self.is_doctor_available:
            raise ValueError("An unavailable day cannot have an available doctor")
        if self.state in (DayState.PAST, DayState.UNAVAILABLE) and (
            self.available_slots or self.total_slots
        ):
            raise ValueError(f"{self.state.value} days carry no slot counts")
        if self.state == DayState.HAS_SLOTS and self.available_slots <= 0:
            raise ValueError("HAS_SLOTS requires at least one available slot")
        if self.state in (DayState.FULLY_BOOKED, DayState.NO_SLOTS) and self.available_slots:
            raise ValueError(f"{self.state.value} days have no available slots")

    @property
    def is_past(self) -> bool:
        return self.state == DayState.PAST

    @property
    def fully_booked(self) -> bool:
        return self.state == DayState.FULLY_BOOKED

    @classmethod
    def from_day_slots(cls, day_slots: DaySlots) -> "CalendarDay":
        if not day_slots.is_doctor_available:
            return cls(date=day_slots.date, state=DayState.UNAVAILABLE, is_doctor_available=False)

        available = day_slots.available_count
        total = day_slots.total_count
        if available > 0:
            state = DayState.HAS_SLOTS
        elif total > 0:
            state = DayState.FULLY_BOOKED
        else:
            state = DayState.NO_SLOTS
        return cls(
            date=day_slots.date,
            state=state,
            is_doctor_available=True,
            available_slots=available,
            total_slots=total,
        )


def classify_day(
    profile: AvailabilityProfile,
    duration: int,
    day: date,
    now: datetime,
    booked: Iterable[BookedInterval],
    lunch_break: Optional[LunchBreak] = None,
) -> DaySlots:
    """Generate the day's slots and mark the booked ones"""
    slots = generate_slots(profile, duration, day, now, lunch_break)
    return DaySlots(
        date=day,
        is_doctor_available=profile.works_on(day),
        slots=apply_bookings(slots, booked),
    )


def aggregate_month(
    profile: AvailabilityProfile,
    duration: int,
    year: int,
    month: int,
    now: datetime,
    booked: Iterable[BookedInterval],
    lunch_break: Optional[LunchBreak] = None,
) -> list[CalendarDay]:
    """
    Build one CalendarDay per day of the month.

    `booked` holds every SCHEDULED interval of the doctor touching the month,
    fetched in a single query by the caller and partitioned here per day.
    """
    today = now.date()
    booked_by_day = partition_by_day(booked)

    days = []
    for day in iter_month_days(year, month):
        if day < today:
            days.append(
                CalendarDay(date=day, state=DayState.PAST, is_doctor_available=profile.works_on(day))
            )
            continue

        day_slots = classify_day(
            profile, duration, day, now, booked_by_day.get(day, []), lunch_break
        )
        days.append(CalendarDay.from_day_slots(day_slots))

    return days
