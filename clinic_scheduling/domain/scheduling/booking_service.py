"""
Booking Transaction Coordinator

The only write path of the scheduling engine. Turns a confirmed
(doctor, service, date/time, patient) selection into an Appointment plus its
Invoice inside one transaction, and owns the appointment lifecycle after that
(status transitions, rescheduling).

Every write runs:
    1. inside one session transaction,
    2. holding the per-doctor schedule lock (see SchedulingRepository),
    3. with all conflict checks re-evaluated under that lock,
so two concurrent requests for overlapping intervals cannot both commit.
"""

import logging
from datetime import datetime
from typing import Callable, Optional, TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from ...auth import RequestContext
from ...config import BOOKING_MAX_RETRIES
from ...models import Appointment, AppointmentStatus, Doctor, Service, UserRole
from ..billing.invoice_service import InvoiceService
from .access import own_patient_id
from .availability import AvailabilityProfile
from .conflict_checker import ConflictChecker
from .exceptions import (
    BookingStorageError,
    BookingValidationError,
    DuplicateBookingError,
    InvalidStatusTransitionError,
    NotFoundError,
    PermissionDeniedError,
    SchedulingError,
    SlotUnavailableError,
)
from .repository import MAX_SERVICE_DURATION, SchedulingRepository
from .time_calculator import interval_end, to_clinic_local

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Errors worth one more attempt: lock timeouts, serialization failures,
# dropped connections, invoice number collisions
TRANSIENT_ERRORS = (OperationalError, IntegrityError)


def is_invoice_number_collision(error: IntegrityError) -> bool:
    """Unique violation on invoices.invoice_number; SQLite and PostgreSQL both name the column"""
    return "invoice_number" in str(error.orig)


TERMINAL_STATUSES = (
    AppointmentStatus.COMPLETED,
    AppointmentStatus.CANCELLED,
    AppointmentStatus.NO_SHOW,
)


class BookingService:
    """Service layer for appointment writes"""

    def __init__(
        self,
        db: Session,
        invoice_service: Optional[InvoiceService] = None,
        max_retries: int = BOOKING_MAX_RETRIES,
    ):
        self.db = db
        self.repo = SchedulingRepository()
        self.checker = ConflictChecker(db)
        self.invoices = invoice_service or InvoiceService(db)
        self.max_retries = max_retries

    # ------------------------------------------------------------------
    # Transaction plumbing
    # ------------------------------------------------------------------

    def _run_in_transaction(self, operation: str, work: Callable[[], T]) -> T:
        """
        Run `work` and commit, rolling back on any failure.

        Transient storage errors retry the whole unit up to max_retries times;
        domain errors (conflicts, validation) are raised immediately.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                result = work()
                self.db.commit()
                return result
            except SchedulingError:
                self.db.rollback()
                raise
            except TRANSIENT_ERRORS as e:
                self.db.rollback()
                if isinstance(e, IntegrityError) and not is_invoice_number_collision(e):
                    # FK / NOT NULL: a referenced row changed under us
                    logger.warning(f"⚠️ Integrity error during {operation}: {e.orig}")
                    raise BookingValidationError(
                        f"Could not complete {operation}: a referenced record no longer exists"
                    ) from e
                if attempt > self.max_retries:
                    logger.error(f"❌ {operation} failed after {attempt} attempts: {e}")
                    raise BookingStorageError(
                        f"Could not complete {operation}, please try again", cause=e
                    ) from e
                logger.warning(f"⚠️ Transient storage error during {operation}, retrying: {e}")
            except Exception:
                self.db.rollback()
                logger.exception(f"❌ Unexpected error during {operation}, rolled back")
                raise

    def _ensure_slot_free(
        self,
        doctor: Doctor,
        patient_id: int,
        start: datetime,
        duration: int,
        exclude_appointment_id: Optional[int] = None,
    ) -> None:
        """Duplicate-day guard first, then interval overlap"""
        duplicate = self.checker.find_duplicate_booking(
            patient_id, doctor.id, start.date(), exclude_appointment_id
        )
        if duplicate:
            logger.warning(
                f"⚠️ Duplicate booking: patient {patient_id} already has appointment "
                f"{duplicate.id} with doctor {doctor.id} on {start.date()}"
            )
            raise DuplicateBookingError(
                f"Patient already has an appointment with {doctor.display_name} "
                f"on {start:%Y-%m-%d}",
                doctor_id=doctor.id,
                doctor_name=doctor.display_name,
                date=start.date().isoformat(),
                conflicting_appointment_id=duplicate.id,
            )

        overlap = self.checker.find_overlap(doctor.id, start, duration, exclude_appointment_id)
        if overlap:
            logger.warning(
                f"⚠️ Slot unavailable: doctor {doctor.id} {start:%Y-%m-%d %H:%M} "
                f"({duration} min) overlaps appointment {overlap.appointment_id}"
            )
            raise SlotUnavailableError(
                f"{doctor.display_name} is already booked at {start:%Y-%m-%d %H:%M}",
                doctor_id=doctor.id,
                doctor_name=doctor.display_name,
                requested_start=start.isoformat(),
                requested_end=interval_end(start, duration).isoformat(),
                conflicting_start=overlap.start.isoformat(),
                conflicting_end=overlap.end.isoformat(),
            )

    def _load_bookable(
        self, context: RequestContext, patient_id: int, doctor_id: int, service_id: int
    ) -> tuple[Service, Doctor]:
        """Precondition 1: service, doctor and patient exist in this clinic and fit together"""
        service = self.repo.get_service(self.db, service_id, context.clinic_id)
        if not service or not service.is_active:
            raise NotFoundError("Service not found", service_id=service_id)
        if not 1 <= (service.duration or 0) <= MAX_SERVICE_DURATION:
            raise BookingValidationError(
                f"{service.name} lasts {service.duration} minutes, bookable services "
                f"last between 1 and {MAX_SERVICE_DURATION} minutes",
                service_id=service.id,
                duration=service.duration,
            )

        doctor = self.repo.lock_doctor_schedule(self.db, doctor_id, context.clinic_id)
        if not doctor:
            raise NotFoundError("Doctor not found", doctor_id=doctor_id)
        if not AvailabilityProfile.from_doctor(doctor).is_bookable:
            raise BookingValidationError(
                f"{doctor.display_name} has no working days configured",
                doctor_id=doctor.id,
            )

        if not self.repo.doctor_offers_service(self.db, doctor.id, service.id):
            raise BookingValidationError(
                f"{doctor.display_name} does not offer {service.name}",
                doctor_id=doctor.id,
                service_id=service.id,
            )

        if not self.repo.get_patient(self.db, patient_id, context.clinic_id):
            raise NotFoundError("Patient not found", patient_id=patient_id)

        return service, doctor

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def book_appointment(
        self,
        context: RequestContext,
        patient_id: Optional[int],
        doctor_id: int,
        service_id: int,
        appointment_date: datetime,
        notes: Optional[str] = None,
    ) -> Appointment:
        """Create a SCHEDULED appointment and its PENDING invoice, or nothing at all.

        Patients always book for themselves; staff must name the patient.
        """
        own_id = own_patient_id(self.db, context)
        if own_id is not None:
            if patient_id not in (None, own_id):
                logger.info(
                    f"User {context.user_id} (PATIENT) booked for patient {patient_id}, "
                    f"using own patient {own_id}"
                )
            patient_id = own_id
        elif patient_id is None:
            raise BookingValidationError("patientId is required")

        start = to_clinic_local(appointment_date)
        logger.info(
            f"📅 Booking request: patient {patient_id} with doctor {doctor_id}, "
            f"service {service_id} at {start:%Y-%m-%d %H:%M} (clinic {context.clinic_id})"
        )

        def work() -> Appointment:
            service, doctor = self._load_bookable(context, patient_id, doctor_id, service_id)
            self._ensure_slot_free(doctor, patient_id, start, service.duration)

            appointment = self.repo.add_appointment(
                self.db,
                clinic_id=context.clinic_id,
                patient_id=patient_id,
                doctor_id=doctor.id,
                service_id=service.id,
                appointment_date=start,
                duration=service.duration,
                status=AppointmentStatus.SCHEDULED.value,
                notes=notes or None,
            )
            self.invoices.create_for_appointment(appointment, service, doctor)
            return appointment

        appointment = self._run_in_transaction("booking", work)
        self.db.refresh(appointment)
        logger.info(
            f"✅ Appointment {appointment.id} booked for patient {patient_id} with "
            f"doctor {doctor_id} at {start:%Y-%m-%d %H:%M}"
        )
        return appointment

    def update_status(
        self,
        context: RequestContext,
        appointment_id: int,
        new_status: AppointmentStatus,
        notes: Optional[str] = None,
    ) -> Appointment:
        """SCHEDULED -> COMPLETED / CANCELLED / NO_SHOW, applying the invoice policy"""
        new_status = AppointmentStatus(new_status)
        if new_status not in TERMINAL_STATUSES:
            raise InvalidStatusTransitionError(
                f"Appointments cannot be moved to {new_status.value}",
                appointment_id=appointment_id,
                requested_status=new_status.value,
            )
        if context.role == UserRole.PATIENT and new_status != AppointmentStatus.CANCELLED:
            raise PermissionDeniedError(
                "Patients can only cancel their appointments",
                appointment_id=appointment_id,
                requested_status=new_status.value,
            )

        def work() -> Appointment:
            appointment = self._get_for_update(context, appointment_id)
            if appointment.status != AppointmentStatus.SCHEDULED:
                raise InvalidStatusTransitionError(
                    f"Appointment is {appointment.status}, only SCHEDULED appointments can change status",
                    appointment_id=appointment.id,
                    current_status=appointment.status,
                    requested_status=new_status.value,
                )

            appointment.status = new_status.value
            if notes is not None:
                appointment.notes = notes
            self.invoices.apply_cancellation_policy(appointment)
            return appointment

        appointment = self._run_in_transaction("status update", work)
        self.db.refresh(appointment)
        logger.info(
            f"🔄 Appointment {appointment.id} -> {appointment.status} by user {context.user_id} "
            f"({context.role.value})"
        )
        return appointment

    def reschedule(
        self, context: RequestContext, appointment_id: int, new_date: datetime
    ) -> Appointment:
        """Move a SCHEDULED appointment, re-running both conflict checks under the lock"""
        start = to_clinic_local(new_date)

        def work() -> Appointment:
            appointment = self._get_for_update(context, appointment_id)
            if appointment.status != AppointmentStatus.SCHEDULED:
                raise InvalidStatusTransitionError(
                    f"Appointment is {appointment.status}, only SCHEDULED appointments can be rescheduled",
                    appointment_id=appointment.id,
                    current_status=appointment.status,
                )

            doctor = self.repo.lock_doctor_schedule(
                self.db, appointment.doctor_id, context.clinic_id
            )
            if not doctor:
                raise NotFoundError("Doctor not found", doctor_id=appointment.doctor_id)

            self._ensure_slot_free(
                doctor,
                appointment.patient_id,
                start,
                appointment.duration,
                exclude_appointment_id=appointment.id,
            )
            appointment.appointment_date = start
            self.invoices.sync_due_date(appointment)
            return appointment

        appointment = self._run_in_transaction("reschedule", work)
        self.db.refresh(appointment)
        logger.info(f"📅 Appointment {appointment.id} rescheduled to {start:%Y-%m-%d %H:%M}")
        return appointment

    def _get_for_update(self, context: RequestContext, appointment_id: int) -> Appointment:
        appointment = self.repo.get_appointment(
            self.db, appointment_id, context.clinic_id, for_update=True
        )
        if not appointment:
            raise NotFoundError("Appointment not found", appointment_id=appointment_id)
        if context.role == UserRole.DOCTOR and appointment.doctor.user_id != context.user_id:
            # Doctors only manage their own agenda
            raise NotFoundError("Appointment not found", appointment_id=appointment_id)
        self._check_patient_owns(context, appointment)
        return appointment

    def _check_patient_owns(self, context: RequestContext, appointment: Appointment) -> None:
        own_id = own_patient_id(self.db, context)
        if own_id is not None and appointment.patient_id != own_id:
            raise NotFoundError("Appointment not found", appointment_id=appointment.id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_appointment(self, context: RequestContext, appointment_id: int) -> Appointment:
        appointment = self.repo.get_appointment(self.db, appointment_id, context.clinic_id)
        if not appointment:
            raise NotFoundError("Appointment not found", appointment_id=appointment_id)
        self._check_patient_owns(context, appointment)
        return appointment

    def list_appointments(
        self,
        context: RequestContext,
        doctor_id: Optional[int] = None,
        patient_id: Optional[int] = None,
        status: Optional[AppointmentStatus] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[Appointment]:
        own_id = own_patient_id(self.db, context)
        if own_id is not None:
            patient_id = own_id
        return self.repo.list_appointments(
            self.db,
            context.clinic_id,
            doctor_id=doctor_id,
            patient_id=patient_id,
            status=status.value if status else None,
            start=to_clinic_local(start) if start else None,
            end=to_clinic_local(end) if end else None,
        )

    def list_doctor_services(self, context: RequestContext, doctor_id: int) -> list[Service]:
        doctor = self.repo.get_doctor(self.db, doctor_id, context.clinic_id)
        if not doctor:
            raise NotFoundError("Doctor not found", doctor_id=doctor_id)
        return self.repo.list_doctor_services(self.db, doctor.id)
