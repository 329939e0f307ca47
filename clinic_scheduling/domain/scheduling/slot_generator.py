"""
Slot Generation

Pure slot arithmetic for one doctor, one service duration and one date:
- slots start at available_from and step by the service duration
- a slot is only offered if it ends by available_to (no partial slots)
- slots overlapping the lunch break are flagged and never available
- slots starting at or before `now` are flagged as past

Booked flags are applied afterwards by the conflict checker.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import Optional

from .availability import AvailabilityProfile, LunchBreak
from .exceptions import BookingValidationError
from .time_calculator import format_hhmm


@dataclass(frozen=True)
class TimeSlot:
    start: datetime
    end: datetime
    is_booked: bool = False
    is_past: bool = False
    is_lunch_break: bool = False

    @property
    def time(self) -> str:
        return format_hhmm(self.start.time())

    @property
    def available(self) -> bool:
        return not self.is_past and not self.is_booked and not self.is_lunch_break

    def mark_booked(self) -> "TimeSlot":
        return replace(self, is_booked=True)


@dataclass(frozen=True)
class DaySlots:
    """Slots for one day, plus whether the doctor works that day at all"""

    date: date
    is_doctor_available: bool
    slots: list = field(default_factory=list)

    @property
    def available_count(self) -> int:
        return sum(1 for slot in self.slots if slot.available)

    @property
    def total_count(self) -> int:
        # Lunch slots are never part of the bookable working window
        return sum(1 for slot in self.slots if not slot.is_lunch_break)

    @property
    def fully_booked(self) -> bool:
        return self.available_count == 0 and self.total_count > 0


def generate_slots(
    profile: AvailabilityProfile,
    duration: int,
    target_date: date,
    now: datetime,
    lunch_break: Optional[LunchBreak] = None,
) -> list[TimeSlot]:
    """
    Generate the ordered candidate slots for `target_date`.

    Returns an empty list when the doctor does not work on that weekday; the
    caller is responsible for reporting "doctor unavailable" separately.
    """
    if duration is None or duration <= 0:
        raise BookingValidationError(f"Service duration must be positive, got {duration}")

    if not profile.works_on(target_date):
        return []

    step = timedelta(minutes=duration)
    window_end = datetime.combine(target_date, profile.available_to)
    current = datetime.combine(target_date, profile.available_from)

    slots = []
    while current + step <= window_end:
        slot_end = current + step
        slots.append(
            TimeSlot(
                start=current,
                end=slot_end,
                is_past=current <= now,
                is_lunch_break=bool(lunch_break and lunch_break.overlaps(current, slot_end)),
            )
        )
        current = slot_end

    return slots

