"""
Booking Conflict Checker

Classifies generated slots as booked, and answers the two write-path
questions the booking coordinator asks:
- does the patient already have a SCHEDULED visit with this doctor that day?
- does a requested interval overlap any SCHEDULED appointment of the doctor?

Only SCHEDULED appointments take part; completed, cancelled and no-show ones
free their interval.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from ...models import Appointment
from .repository import SchedulingRepository
from .slot_generator import TimeSlot
from .time_calculator import day_bounds, interval_end, intervals_overlap

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookedInterval:
    appointment_id: int
    start: datetime
    end: datetime

    @classmethod
    def from_appointment(cls, appointment: Appointment) -> "BookedInterval":
        return cls(
            appointment_id=appointment.id,
            start=appointment.appointment_date,
            end=interval_end(appointment.appointment_date, appointment.duration),
        )

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return intervals_overlap(self.start, self.end, start, end)

    def days(self) -> list[date]:
        """Every local day the interval touches"""
        days = []
        current = self.start.date()
        last = (self.end - timedelta(microseconds=1)).date()
        while current <= last:
            days.append(current)
            current += timedelta(days=1)
        return days


def apply_bookings(slots: Iterable[TimeSlot], booked: Iterable[BookedInterval]) -> list[TimeSlot]:
    """Return the slots with is_booked set where they intersect a booking"""
    booked = list(booked)
    result = []
    for slot in slots:
        if any(interval.overlaps(slot.start, slot.end) for interval in booked):
            slot = slot.mark_booked()
        result.append(slot)
    return result


def partition_by_day(booked: Iterable[BookedInterval]) -> dict[date, list[BookedInterval]]:
    by_day = defaultdict(list)
    for interval in booked:
        for day in interval.days():
            by_day[day].append(interval)
    return by_day


class ConflictChecker:
    """Database-backed conflict queries for one session"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = SchedulingRepository()

    def booked_intervals(
        self,
        doctor_id: int,
        window_start: datetime,
        window_end: datetime,
        exclude_appointment_id: Optional[int] = None,
    ) -> list[BookedInterval]:
        """SCHEDULED intervals of the doctor intersecting [window_start, window_end)"""
        appointments = self.repo.get_scheduled_in_window(
            self.db, doctor_id, window_start, window_end, exclude_appointment_id
        )
        intervals = [BookedInterval.from_appointment(appt) for appt in appointments]
        return [i for i in intervals if i.overlaps(window_start, window_end)]

    def find_duplicate_booking(
        self,
        patient_id: int,
        doctor_id: int,
        day: date,
        exclude_appointment_id: Optional[int] = None,
    ) -> Optional[Appointment]:
        day_start, day_end = day_bounds(day)
        return self.repo.find_patient_booking_on_day(
            self.db, patient_id, doctor_id, day_start, day_end, exclude_appointment_id
        )

    def find_overlap(
        self,
        doctor_id: int,
        start: datetime,
        duration: int,
        exclude_appointment_id: Optional[int] = None,
    ) -> Optional[BookedInterval]:
        end = interval_end(start, duration)
        overlapping = self.booked_intervals(doctor_id, start, end, exclude_appointment_id)
        if overlapping:
            logger.debug(
                f"Requested {start:%Y-%m-%d %H:%M}-{end:%H:%M} for doctor {doctor_id} "
                f"overlaps appointment {overlapping[0].appointment_id}"
            )
            return overlapping[0]
        return None
