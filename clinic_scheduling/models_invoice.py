"""
Invoice model for appointment billing
"""

import enum

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class InvoiceStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class Invoice(Base):
    """Invoice created together with exactly one appointment"""

    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    clinic_id = Column(Integer, ForeignKey("clinics.id"), nullable=False, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id"), unique=True, nullable=False)

    # Invoice details
    invoice_number = Column(String(50), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)

    # Pricing
    amount = Column(Float, nullable=False)  # Service price at booking time
    tax = Column(Float, default=0, nullable=False)
    total_amount = Column(Float, nullable=False)
    currency = Column(String(10), default="USD")

    # Status
    status = Column(String(20), default=InvoiceStatus.PENDING.value, nullable=False)

    # Dates
    due_date = Column(DateTime, nullable=True)  # Appointment date
    payment_date = Column(DateTime, nullable=True)
    payment_method = Column(String(50), nullable=True)  # cash, card, ...

    # Audit
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    appointment = relationship("Appointment", back_populates="invoice")
    patient = relationship("Patient")
