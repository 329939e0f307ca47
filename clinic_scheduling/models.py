import enum

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    DOCTOR = "DOCTOR"
    RECEPTIONIST = "RECEPTIONIST"
    PATIENT = "PATIENT"


class AppointmentStatus(str, enum.Enum):
    SCHEDULED = "SCHEDULED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


# Many-to-many: which services a doctor offers
doctor_services = Table(
    "doctor_services",
    Base.metadata,
    Column("doctor_id", Integer, ForeignKey("doctors.id", ondelete="CASCADE"), primary_key=True),
    Column("service_id", Integer, ForeignKey("services.id", ondelete="CASCADE"), primary_key=True),
)


class Clinic(Base):
    __tablename__ = "clinics"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    timezone = Column(String(64), nullable=True)  # Informational, engine uses CLINIC_TIMEZONE
    created_at = Column(DateTime, server_default=func.now())

    doctors = relationship("Doctor", back_populates="clinic")
    services = relationship("Service", back_populates="clinic")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    clinic_id = Column(Integer, ForeignKey("clinics.id"), nullable=True, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(50), nullable=True)
    role = Column(String(20), nullable=False, default=UserRole.PATIENT.value)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Doctor(Base):
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    clinic_id = Column(Integer, ForeignKey("clinics.id"), nullable=False, index=True)
    specialization = Column(String(255), nullable=True)

    # Availability profile
    available_from = Column(String(5), nullable=True)  # "HH:MM", inclusive
    available_to = Column(String(5), nullable=True)  # "HH:MM", exclusive end of last slot
    available_days = Column(JSON, default=list)  # ["MONDAY", "TUESDAY", ...]

    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", lazy="joined", innerjoin=True)
    clinic = relationship("Clinic", back_populates="doctors")
    services = relationship("Service", secondary=doctor_services, back_populates="doctors")
    appointments = relationship("Appointment", back_populates="doctor")

    @property
    def display_name(self) -> str:
        if self.user:
            return f"Dr. {self.user.first_name} {self.user.last_name}"
        return f"Doctor #{self.id}"


class Patient(Base):
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    clinic_id = Column(Integer, ForeignKey("clinics.id"), nullable=False, index=True)
    date_of_birth = Column(Date, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", lazy="joined", innerjoin=True)
    appointments = relationship("Appointment", back_populates="patient")


class Service(Base):
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    clinic_id = Column(Integer, ForeignKey("clinics.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    duration = Column(Integer, nullable=False)  # Minutes, also the slot length
    price = Column(Float, nullable=False, default=0)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    clinic = relationship("Clinic", back_populates="services")
    doctors = relationship("Doctor", secondary=doctor_services, back_populates="services")


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        # Range lookups: SCHEDULED appointments for doctor X within interval Y
        Index("ix_appointments_doctor_status_date", "doctor_id", "status", "appointment_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    clinic_id = Column(Integer, ForeignKey("clinics.id"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)

    appointment_date = Column(DateTime, nullable=False)  # Naive local time (CLINIC_TIMEZONE)
    duration = Column(Integer, nullable=False)  # Copied from service at booking time
    status = Column(String(20), nullable=False, default=AppointmentStatus.SCHEDULED.value)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    doctor = relationship("Doctor", back_populates="appointments")
    patient = relationship("Patient", back_populates="appointments")
    service = relationship("Service")
    invoice = relationship("Invoice", back_populates="appointment", uselist=False)
