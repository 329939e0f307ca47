"""Availability service - Read-only day and month availability projections"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...auth import RequestContext
from ...models import Doctor, Service
from .availability import AvailabilityProfile, LunchBreak, Weekday
from .calendar_aggregator import CalendarDay, aggregate_month, classify_day
from .conflict_checker import ConflictChecker
from .exceptions import BookingValidationError, NotFoundError
from .repository import SchedulingRepository
from .slot_generator import DaySlots
from .time_calculator import clinic_now, day_bounds, month_bounds

logger = logging.getLogger(__name__)

# Default for `lunch_break`: read the window from config. Passing None disables it.
LUNCH_FROM_CONFIG = object()


@dataclass
class DayAvailability:
    doctor: Doctor
    service: Service
    profile: AvailabilityProfile
    lunch_break: Optional[LunchBreak]
    day: DaySlots
    message: Optional[str] = None


@dataclass
class MonthAvailability:
    doctor: Doctor
    service: Service
    profile: AvailabilityProfile
    lunch_break: Optional[LunchBreak]
    year: int
    month: int
    days: list[CalendarDay] = field(default_factory=list)


class AvailabilityService:
    """Service layer for availability reads. Takes no locks and writes nothing."""

    def __init__(self, db: Session, lunch_break=LUNCH_FROM_CONFIG):
        self.db = db
        self.repo = SchedulingRepository()
        self.checker = ConflictChecker(db)
        if lunch_break is LUNCH_FROM_CONFIG:
            lunch_break = LunchBreak.from_config()
        self.lunch_break: Optional[LunchBreak] = lunch_break

    def _load(
        self, context: RequestContext, doctor_id: int, service_id: int
    ) -> tuple[Doctor, Service, AvailabilityProfile]:
        doctor = self.repo.get_doctor(self.db, doctor_id, context.clinic_id)
        if not doctor:
            raise NotFoundError("Doctor not found", doctor_id=doctor_id)

        service = self.repo.get_service(self.db, service_id, context.clinic_id)
        if not service or not service.is_active:
            raise NotFoundError("Service not found", service_id=service_id)

        if not self.repo.doctor_offers_service(self.db, doctor_id, service_id):
            raise BookingValidationError(
                f"{doctor.display_name} does not offer {service.name}",
                doctor_id=doctor_id,
                service_id=service_id,
            )

        return doctor, service, AvailabilityProfile.from_doctor(doctor)

    def get_day_availability(
        self,
        context: RequestContext,
        doctor_id: int,
        service_id: int,
        target_date: date,
        now: Optional[datetime] = None,
    ) -> DayAvailability:
        """Slots for one day with booked / past / lunch flags"""
        doctor, service, profile = self._load(context, doctor_id, service_id)
        now = clinic_now(now)

        message = None
        booked = []
        if profile.works_on(target_date):
            day_start, day_end = day_bounds(target_date)
            booked = self.checker.booked_intervals(doctor.id, day_start, day_end)
        else:
            message = f"Doctor is not available on {Weekday.of(target_date).value.capitalize()}s"

        day = classify_day(profile, service.duration, target_date, now, booked, self.lunch_break)
        logger.debug(
            f"📅 Day availability doctor={doctor.id} service={service.id} {target_date}: "
            f"{day.available_count}/{day.total_count} available"
        )
        return DayAvailability(
            doctor=doctor,
            service=service,
            profile=profile,
            lunch_break=self.lunch_break,
            day=day,
            message=message,
        )

    def get_month_availability(
        self,
        context: RequestContext,
        doctor_id: int,
        service_id: int,
        year: int,
        month: int,
        now: Optional[datetime] = None,
    ) -> MonthAvailability:
        """Per-day summaries for a month, from a single appointment query"""
        doctor, service, profile = self._load(context, doctor_id, service_id)
        now = clinic_now(now)

        month_start, month_end = month_bounds(year, month)
        booked = self.checker.booked_intervals(doctor.id, month_start, month_end)

        days = aggregate_month(
            profile, service.duration, year, month, now, booked, self.lunch_break
        )
        logger.debug(
            f"📅 Month availability doctor={doctor.id} service={service.id} {year}-{month:02d}: "
            f"{len(booked)} booked intervals"
        )
        return MonthAvailability(
            doctor=doctor,
            service=service,
            profile=profile,
            lunch_break=self.lunch_break,
            year=year,
            month=month,
            days=days,
        )
