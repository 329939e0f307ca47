"""Scheduling repository - Database operations for doctors, services and appointments"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import text
from sqlalchemy.orm import Session, joinedload

from ...models import Appointment, AppointmentStatus, Doctor, Patient, Service, doctor_services

# Bookable services last at most a day, so no appointment starting earlier
# than this before a window can reach into it
MAX_SERVICE_DURATION = 24 * 60
MAX_APPOINTMENT_SPAN = timedelta(minutes=MAX_SERVICE_DURATION)


class SchedulingRepository:
    """Repository for scheduling database operations.

    Write helpers only flush; the booking coordinator owns the transaction.
    """

    @staticmethod
    def get_doctor(db: Session, doctor_id: int, clinic_id: int) -> Optional[Doctor]:
        return (
            db.query(Doctor)
            .filter(Doctor.id == doctor_id, Doctor.clinic_id == clinic_id)
            .first()
        )

    @staticmethod
    def get_service(db: Session, service_id: int, clinic_id: int) -> Optional[Service]:
        return (
            db.query(Service)
            .filter(Service.id == service_id, Service.clinic_id == clinic_id)
            .first()
        )

    @staticmethod
    def get_patient(db: Session, patient_id: int, clinic_id: int) -> Optional[Patient]:
        return (
            db.query(Patient)
            .filter(Patient.id == patient_id, Patient.clinic_id == clinic_id)
            .first()
        )

    @staticmethod
    def get_patient_by_user(db: Session, user_id: int, clinic_id: int) -> Optional[Patient]:
        return (
            db.query(Patient)
            .filter(Patient.user_id == user_id, Patient.clinic_id == clinic_id)
            .first()
        )

    @staticmethod
    def doctor_offers_service(db: Session, doctor_id: int, service_id: int) -> bool:
        row = (
            db.query(doctor_services.c.doctor_id)
            .filter(
                doctor_services.c.doctor_id == doctor_id,
                doctor_services.c.service_id == service_id,
            )
            .first()
        )
        return row is not None

    @staticmethod
    def lock_doctor_schedule(db: Session, doctor_id: int, clinic_id: int) -> Optional[Doctor]:
        """
        Serialize booking writes for one doctor until the transaction ends.

        PostgreSQL: transaction-scoped advisory lock keyed by doctor id, plus a
        row lock on the doctor. SQLite file databases already run the whole
        transaction under BEGIN IMMEDIATE (see database.py).
        """
        if db.get_bind().dialect.name == "postgresql":
            db.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": doctor_id})
        return (
            db.query(Doctor)
            .filter(Doctor.id == doctor_id, Doctor.clinic_id == clinic_id)
            .with_for_update(of=Doctor)
            .first()
        )

    @staticmethod
    def get_scheduled_in_window(
        db: Session,
        doctor_id: int,
        window_start: datetime,
        window_end: datetime,
        exclude_appointment_id: Optional[int] = None,
    ) -> list[Appointment]:
        """SCHEDULED appointments for the doctor that may intersect [window_start, window_end).

        Candidates are bounded by start time only; callers apply the exact
        interval test with each appointment's own duration.
        """
        query = db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.status == AppointmentStatus.SCHEDULED.value,
            Appointment.appointment_date < window_end,
            Appointment.appointment_date > window_start - MAX_APPOINTMENT_SPAN,
        )
        if exclude_appointment_id is not None:
            query = query.filter(Appointment.id != exclude_appointment_id)
        return query.order_by(Appointment.appointment_date).all()

    @staticmethod
    def find_patient_booking_on_day(
        db: Session,
        patient_id: int,
        doctor_id: int,
        day_start: datetime,
        day_end: datetime,
        exclude_appointment_id: Optional[int] = None,
    ) -> Optional[Appointment]:
        query = db.query(Appointment).filter(
            Appointment.patient_id == patient_id,
            Appointment.doctor_id == doctor_id,
            Appointment.status == AppointmentStatus.SCHEDULED.value,
            Appointment.appointment_date >= day_start,
            Appointment.appointment_date < day_end,
        )
        if exclude_appointment_id is not None:
            query = query.filter(Appointment.id != exclude_appointment_id)
        return query.first()

    @staticmethod
    def add_appointment(db: Session, **appointment_data) -> Appointment:
        appointment = Appointment(**appointment_data)
        db.add(appointment)
        db.flush()
        return appointment

    @staticmethod
    def get_appointment(
        db: Session, appointment_id: int, clinic_id: int, for_update: bool = False
    ) -> Optional[Appointment]:
        query = db.query(Appointment).filter(
            Appointment.id == appointment_id, Appointment.clinic_id == clinic_id
        )
        if for_update:
            return query.with_for_update(of=Appointment).first()
        return query.options(
            joinedload(Appointment.doctor),
            joinedload(Appointment.patient),
            joinedload(Appointment.service),
        ).first()

    @staticmethod
    def list_appointments(
        db: Session,
        clinic_id: int,
        doctor_id: Optional[int] = None,
        patient_id: Optional[int] = None,
        status: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = 100,
    ) -> list[Appointment]:
        query = db.query(Appointment).filter(Appointment.clinic_id == clinic_id)

        if doctor_id is not None:
            query = query.filter(Appointment.doctor_id == doctor_id)
        if patient_id is not None:
            query = query.filter(Appointment.patient_id == patient_id)
        if status:
            query = query.filter(Appointment.status == status)
        if start:
            query = query.filter(Appointment.appointment_date >= start)
        if end:
            query = query.filter(Appointment.appointment_date < end)

        return (
            query.options(
                joinedload(Appointment.doctor),
                joinedload(Appointment.patient),
                joinedload(Appointment.service),
            )
            .order_by(Appointment.appointment_date.asc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def list_doctor_services(db: Session, doctor_id: int) -> list[Service]:
        return (
            db.query(Service)
            .join(doctor_services, doctor_services.c.service_id == Service.id)
            .filter(doctor_services.c.doctor_id == doctor_id, Service.is_active.is_(True))
            .order_by(Service.name)
            .all()
        )
