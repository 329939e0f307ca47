"""Scheduling domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...models import AppointmentStatus
from ...shared.validators import validate_notes

# ============================================================================
# AVAILABILITY
# ============================================================================


class TimeSlotResponse(BaseModel):
    """One candidate slot on the day view"""

    time: str
    endTime: str
    available: bool
    isBooked: bool
    isPast: bool
    isLunchBreak: bool = False


class DoctorSummary(BaseModel):
    id: int
    name: str
    specialization: Optional[str] = None


class ServiceResponse(BaseModel):
    """Schema for service response"""

    id: int
    name: str
    description: Optional[str] = None
    duration: int
    price: float
    isActive: bool = True


class AvailabilityProfileResponse(BaseModel):
    availableFrom: str
    availableTo: str
    availableDays: list[str]
    lunchBreak: Optional[str] = None


class DayAvailabilityResponse(BaseModel):
    """Schema for GET /scheduling/availability"""

    date: date
    doctor: DoctorSummary
    service: ServiceResponse
    availability: AvailabilityProfileResponse
    isDoctorAvailable: bool
    availableSlots: int
    totalSlots: int
    fullyBooked: bool
    slots: list[TimeSlotResponse]
    message: Optional[str] = None


class CalendarDayResponse(BaseModel):
    date: date
    state: str
    availableSlots: int
    totalSlots: int
    fullyBooked: bool
    isPast: bool
    isDoctorAvailable: bool


class MonthAvailabilityResponse(BaseModel):
    """Schema for GET /scheduling/calendar-availability"""

    month: str
    doctor: DoctorSummary
    service: ServiceResponse
    availability: AvailabilityProfileResponse
    days: list[CalendarDayResponse]


# ============================================================================
# APPOINTMENTS
# ============================================================================


class AppointmentCreate(BaseModel):
    """Schema for booking a new appointment"""

    patientId: Optional[int] = None  # Ignored for patients, who book for themselves
    doctorId: int
    serviceId: int
    appointmentDate: datetime
    notes: Optional[str] = None

    @field_validator("patientId", "doctorId", "serviceId")
    @classmethod
    def validate_positive_id(cls, v):
        if v is not None and v <= 0:
            raise ValueError("must be a positive id")
        return v

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, v):
        return validate_notes(v)


class AppointmentStatusUpdate(BaseModel):
    """Schema for moving an appointment out of SCHEDULED"""

    status: AppointmentStatus
    notes: Optional[str] = None

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, v):
        return validate_notes(v)


class AppointmentReschedule(BaseModel):
    appointmentDate: datetime


class AppointmentResponse(BaseModel):
    """Schema for appointment response"""

    id: int
    clinicId: int
    patientId: int
    patientName: Optional[str] = None
    doctorId: int
    doctorName: Optional[str] = None
    serviceId: int
    serviceName: Optional[str] = None
    appointmentDate: datetime
    endTime: datetime
    duration: int
    status: str
    notes: Optional[str] = None
    invoiceId: Optional[int] = None
    invoiceNumber: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
