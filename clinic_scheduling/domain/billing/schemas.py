"""Billing domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...models_invoice import Invoice
from ...shared.validators import validate_payment_method


class PayInvoiceRequest(BaseModel):
    """Schema for recording a payment"""

    paymentMethod: Optional[str] = "cash"

    @field_validator("paymentMethod")
    @classmethod
    def validate_method(cls, v: Optional[str]) -> str:
        return validate_payment_method(v)


class InvoiceResponse(BaseModel):
    """Schema for invoice response"""

    id: int
    invoiceNumber: str
    clinicId: int
    patientId: int
    appointmentId: Optional[int] = None
    description: Optional[str] = None
    amount: float
    tax: float
    totalAmount: float
    currency: str
    status: str
    dueDate: Optional[datetime] = None
    paymentDate: Optional[datetime] = None
    paymentMethod: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


def to_invoice_response(invoice: Invoice) -> InvoiceResponse:
    return InvoiceResponse(
        id=invoice.id,
        invoiceNumber=invoice.invoice_number,
        clinicId=invoice.clinic_id,
        patientId=invoice.patient_id,
        appointmentId=invoice.appointment_id,
        description=invoice.description,
        amount=invoice.amount,
        tax=invoice.tax,
        totalAmount=invoice.total_amount,
        currency=invoice.currency,
        status=invoice.status,
        dueDate=invoice.due_date,
        paymentDate=invoice.payment_date,
        paymentMethod=invoice.payment_method,
        created_at=invoice.created_at,
    )
