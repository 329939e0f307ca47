"""Scheduling router - FastAPI endpoints for availability and appointments"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import RequestContext, get_request_context
from ...config import BOOKING_RATE_LIMIT, BOOKING_RATE_WINDOW_SECONDS
from ...database import get_db
from ...models import Appointment, AppointmentStatus, Doctor, Service
from ...rate_limiter import create_rate_limiter
from ..billing.invoice_service import InvoiceService
from ..billing.schemas import InvoiceResponse, to_invoice_response
from .availability import AvailabilityProfile, LunchBreak
from .availability_service import AvailabilityService
from .booking_service import BookingService
from .schemas import (
    AppointmentCreate,
    AppointmentReschedule,
    AppointmentResponse,
    AppointmentStatusUpdate,
    AvailabilityProfileResponse,
    CalendarDayResponse,
    DayAvailabilityResponse,
    DoctorSummary,
    MonthAvailabilityResponse,
    ServiceResponse,
    TimeSlotResponse,
)
from .time_calculator import format_hhmm, interval_end, parse_iso_date, parse_year_month

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/scheduling", tags=["Scheduling"])

booking_rate_limit = create_rate_limiter(
    limit=BOOKING_RATE_LIMIT, window_seconds=BOOKING_RATE_WINDOW_SECONDS, key_prefix="booking"
)


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    """Dependency injection for AvailabilityService"""
    return AvailabilityService(db)


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db)


def get_invoice_service(db: Session = Depends(get_db)) -> InvoiceService:
    """Dependency injection for InvoiceService"""
    return InvoiceService(db)


# ============================================================================
# RESPONSE BUILDERS
# ============================================================================


def _doctor_summary(doctor: Doctor) -> DoctorSummary:
    return DoctorSummary(
        id=doctor.id, name=doctor.display_name, specialization=doctor.specialization
    )


def _service_response(service: Service) -> ServiceResponse:
    return ServiceResponse(
        id=service.id,
        name=service.name,
        description=service.description,
        duration=service.duration,
        price=service.price,
        isActive=service.is_active,
    )


def _profile_response(
    profile: AvailabilityProfile, lunch_break: Optional[LunchBreak]
) -> AvailabilityProfileResponse:
    return AvailabilityProfileResponse(
        availableFrom=format_hhmm(profile.available_from),
        availableTo=format_hhmm(profile.available_to),
        availableDays=profile.ordered_days(),
        lunchBreak=str(lunch_break) if lunch_break else None,
    )


def _appointment_response(appointment: Appointment) -> AppointmentResponse:
    invoice = appointment.invoice
    return AppointmentResponse(
        id=appointment.id,
        clinicId=appointment.clinic_id,
        patientId=appointment.patient_id,
        patientName=appointment.patient.user.full_name if appointment.patient else None,
        doctorId=appointment.doctor_id,
        doctorName=appointment.doctor.display_name if appointment.doctor else None,
        serviceId=appointment.service_id,
        serviceName=appointment.service.name if appointment.service else None,
        appointmentDate=appointment.appointment_date,
        endTime=interval_end(appointment.appointment_date, appointment.duration),
        duration=appointment.duration,
        status=appointment.status,
        notes=appointment.notes,
        invoiceId=invoice.id if invoice else None,
        invoiceNumber=invoice.invoice_number if invoice else None,
        created_at=appointment.created_at,
    )


# ============================================================================
# AVAILABILITY
# ============================================================================


@router.get("/calendar-availability", response_model=MonthAvailabilityResponse)
async def get_calendar_availability(
    doctor_id: int = Query(..., gt=0),
    service_id: int = Query(..., gt=0),
    month: str = Query(..., description="YYYY-MM"),
    context: RequestContext = Depends(get_request_context),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Per-day availability summary for a whole month"""
    year, month_number = parse_year_month(month)
    result = service.get_month_availability(context, doctor_id, service_id, year, month_number)
    return MonthAvailabilityResponse(
        month=f"{year}-{month_number:02d}",
        doctor=_doctor_summary(result.doctor),
        service=_service_response(result.service),
        availability=_profile_response(result.profile, result.lunch_break),
        days=[
            CalendarDayResponse(
                date=day.date,
                state=day.state.value,
                availableSlots=day.available_slots,
                totalSlots=day.total_slots,
                fullyBooked=day.fully_booked,
                isPast=day.is_past,
                isDoctorAvailable=day.is_doctor_available,
            )
            for day in result.days
        ],
    )


@router.get("/availability", response_model=DayAvailabilityResponse)
async def get_day_availability(
    doctor_id: int = Query(..., gt=0),
    service_id: int = Query(..., gt=0),
    date: str = Query(..., description="YYYY-MM-DD"),
    context: RequestContext = Depends(get_request_context),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Time slots for one day with booked, past and lunch flags"""
    target_date = parse_iso_date(date)
    result = service.get_day_availability(context, doctor_id, service_id, target_date)
    day = result.day
    return DayAvailabilityResponse(
        date=day.date,
        doctor=_doctor_summary(result.doctor),
        service=_service_response(result.service),
        availability=_profile_response(result.profile, result.lunch_break),
        isDoctorAvailable=day.is_doctor_available,
        availableSlots=day.available_count,
        totalSlots=day.total_count,
        fullyBooked=day.fully_booked,
        slots=[
            TimeSlotResponse(
                time=slot.time,
                endTime=format_hhmm(slot.end.time()),
                available=slot.available,
                isBooked=slot.is_booked,
                isPast=slot.is_past,
                isLunchBreak=slot.is_lunch_break,
            )
            for slot in day.slots
        ],
        message=result.message,
    )


@router.get("/doctors/{doctor_id}/services", response_model=list[ServiceResponse])
async def get_doctor_services(
    doctor_id: int,
    context: RequestContext = Depends(get_request_context),
    service: BookingService = Depends(get_booking_service),
):
    """Active services a doctor offers"""
    return [_service_response(s) for s in service.list_doctor_services(context, doctor_id)]


# ============================================================================
# APPOINTMENTS
# ============================================================================


@router.post("/appointments", response_model=AppointmentResponse, status_code=201)
async def book_appointment(
    data: AppointmentCreate,
    context: RequestContext = Depends(get_request_context),
    service: BookingService = Depends(get_booking_service),
    _: None = Depends(booking_rate_limit),
):
    """Book an appointment and create its invoice"""
    appointment = service.book_appointment(
        context,
        patient_id=data.patientId,
        doctor_id=data.doctorId,
        service_id=data.serviceId,
        appointment_date=data.appointmentDate,
        notes=data.notes,
    )
    return _appointment_response(appointment)


@router.get("/appointments", response_model=list[AppointmentResponse])
async def list_appointments(
    doctor_id: Optional[int] = Query(None),
    patient_id: Optional[int] = Query(None),
    status: Optional[AppointmentStatus] = Query(None),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    context: RequestContext = Depends(get_request_context),
    service: BookingService = Depends(get_booking_service),
):
    """List clinic appointments (first 100 by date)"""
    appointments = service.list_appointments(
        context,
        doctor_id=doctor_id,
        patient_id=patient_id,
        status=status,
        start=start,
        end=end,
    )
    return [_appointment_response(a) for a in appointments]


@router.get("/appointments/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: int,
    context: RequestContext = Depends(get_request_context),
    service: BookingService = Depends(get_booking_service),
):
    """Get a specific appointment"""
    return _appointment_response(service.get_appointment(context, appointment_id))


@router.get("/appointments/{appointment_id}/invoice", response_model=InvoiceResponse)
async def get_appointment_invoice(
    appointment_id: int,
    context: RequestContext = Depends(get_request_context),
    service: BookingService = Depends(get_booking_service),
    invoices: InvoiceService = Depends(get_invoice_service),
):
    """Get the invoice created with an appointment"""
    appointment = service.get_appointment(context, appointment_id)
    return to_invoice_response(invoices.get_for_appointment(context, appointment))


@router.patch("/appointments/{appointment_id}/status", response_model=AppointmentResponse)
async def update_appointment_status(
    appointment_id: int,
    data: AppointmentStatusUpdate,
    context: RequestContext = Depends(get_request_context),
    service: BookingService = Depends(get_booking_service),
):
    """Complete, cancel or mark an appointment as no-show (patients may only cancel their own)"""
    appointment = service.update_status(context, appointment_id, data.status, data.notes)
    return _appointment_response(appointment)


@router.patch("/appointments/{appointment_id}/reschedule", response_model=AppointmentResponse)
async def reschedule_appointment(
    appointment_id: int,
    data: AppointmentReschedule,
    context: RequestContext = Depends(get_request_context),
    service: BookingService = Depends(get_booking_service),
):
    """Move an appointment to a new start time (patients: their own only)"""
    appointment = service.reschedule(context, appointment_id, data.appointmentDate)
    return _appointment_response(appointment)
