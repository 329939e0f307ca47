"""Shared database setup for the scheduling tests"""

import unittest
from datetime import date, datetime

from sqlalchemy.orm import sessionmaker

from clinic_scheduling import models_invoice  # noqa: F401
from clinic_scheduling.auth import RequestContext
from clinic_scheduling.database import Base, create_db_engine
from clinic_scheduling.domain.scheduling.availability import AvailabilityProfile, parse_weekdays
from clinic_scheduling.domain.scheduling.time_calculator import parse_hhmm
from clinic_scheduling.models import (
    Appointment,
    Clinic,
    Doctor,
    Patient,
    Service,
    User,
    UserRole,
)

# January 2030: the 1st is a Tuesday
MONDAY = date(2030, 1, 7)
TUESDAY = date(2030, 1, 8)
WEEKDAYS = ["MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY"]

# Before every slot in the tests below
EARLY = datetime(2029, 12, 31, 8, 0)


def at(day: date, hhmm: str) -> datetime:
    hour, minute = hhmm.split(":")
    return datetime(day.year, day.month, day.day, int(hour), int(minute))


def profile(start="09:00", end="17:00", days=WEEKDAYS) -> AvailabilityProfile:
    return AvailabilityProfile(parse_hhmm(start), parse_hhmm(end), parse_weekdays(days))


def seed_clinic(db) -> dict:
    """Doctors, services, patients and a receptionist in one clinic, plus a
    second clinic that must never leak into the first."""
    clinic = Clinic(name="Princeton Plainsboro")
    other_clinic = Clinic(name="Sacred Heart")
    db.add_all([clinic, other_clinic])
    db.flush()

    def user(first, last, role, clinic_id=clinic.id):
        u = User(
            clinic_id=clinic_id,
            first_name=first,
            last_name=last,
            email=f"{first.lower()}.{last.lower()}@example.com",
            role=role.value,
        )
        db.add(u)
        db.flush()
        return u

    house_user = user("Gregory", "House", UserRole.DOCTOR)
    cuddy_user = user("Lisa", "Cuddy", UserRole.DOCTOR)
    receptionist = user("Pam", "Front", UserRole.RECEPTIONIST)
    alice_user = user("Alice", "Patient", UserRole.PATIENT)
    bob_user = user("Bob", "Patient", UserRole.PATIENT)
    kelso_user = user("Bob", "Kelso", UserRole.DOCTOR, other_clinic.id)

    consultation = Service(clinic_id=clinic.id, name="Consultation", duration=30, price=100.0)
    extended = Service(clinic_id=clinic.id, name="Extended Exam", duration=45, price=150.0)
    quick = Service(clinic_id=clinic.id, name="Quick Check", duration=15, price=40.0)
    retired = Service(
        clinic_id=clinic.id, name="Retired Service", duration=30, price=10.0, is_active=False
    )
    foreign = Service(clinic_id=other_clinic.id, name="Foreign Consult", duration=30, price=90.0)
    db.add_all([consultation, extended, quick, retired, foreign])
    db.flush()

    house = Doctor(
        user_id=house_user.id,
        clinic_id=clinic.id,
        specialization="Diagnostics",
        available_from="09:00",
        available_to="17:00",
        available_days=WEEKDAYS,
    )
    house.services = [consultation, extended, quick, retired]
    cuddy = Doctor(
        user_id=cuddy_user.id,
        clinic_id=clinic.id,
        specialization="Endocrinology",
        available_from="09:00",
        available_to="12:00",
        available_days=["MONDAY"],
    )
    cuddy.services = [consultation]
    kelso = Doctor(
        user_id=kelso_user.id,
        clinic_id=other_clinic.id,
        available_from="09:00",
        available_to="17:00",
        available_days=WEEKDAYS,
    )
    kelso.services = [foreign]

    alice = Patient(user_id=alice_user.id, clinic_id=clinic.id)
    bob = Patient(user_id=bob_user.id, clinic_id=clinic.id)
    db.add_all([house, cuddy, kelso, alice, bob])
    db.commit()

    return {
        "clinic": clinic,
        "other_clinic": other_clinic,
        "house": house,
        "cuddy": cuddy,
        "kelso": kelso,
        "house_user": house_user,
        "cuddy_user": cuddy_user,
        "receptionist": receptionist,
        "alice": alice,
        "bob": bob,
        "alice_user": alice_user,
        "bob_user": bob_user,
        "consultation": consultation,
        "extended": extended,
        "quick": quick,
        "retired": retired,
        "foreign": foreign,
    }


class SchedulingTestCase(unittest.TestCase):
    """Fresh in-memory database with a seeded clinic for every test"""

    database_url = "sqlite://"

    def setUp(self):
        self.engine = create_db_engine(self.database_url)
        Base.metadata.create_all(bind=self.engine)
        self.Session = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        self.db = self.Session()

        data = seed_clinic(self.db)
        for name, value in data.items():
            setattr(self, name, value)

        self.context = RequestContext(
            clinic_id=self.clinic.id, user_id=self.receptionist.id, role=UserRole.RECEPTIONIST
        )

    def tearDown(self):
        self.db.close()
        Base.metadata.drop_all(bind=self.engine)
        self.engine.dispose()

    def context_for(self, user, role) -> RequestContext:
        return RequestContext(clinic_id=self.clinic.id, user_id=user.id, role=role)

    def add_appointment(self, doctor, patient, service, start, status="SCHEDULED") -> Appointment:
        """Insert an appointment directly, bypassing the booking checks"""
        appointment = Appointment(
            clinic_id=self.clinic.id,
            doctor_id=doctor.id,
            patient_id=patient.id,
            service_id=service.id,
            appointment_date=start,
            duration=service.duration,
            status=status,
        )
        self.db.add(appointment)
        self.db.commit()
        return appointment

    def count(self, model) -> int:
        self.db.expire_all()
        return self.db.query(model).count()
