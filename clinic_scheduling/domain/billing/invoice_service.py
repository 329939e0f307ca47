"""
Invoice Service
Derives the invoice for a new appointment, applies the cancellation policy
and records payments.
"""

import enum
import logging
import secrets
import time
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...auth import RequestContext
from ...config import INVOICE_CANCELLATION_POLICY, INVOICE_CURRENCY, INVOICE_TAX_RATE
from ...models import Appointment, AppointmentStatus, Doctor, Service
from ...models_invoice import Invoice, InvoiceStatus
from ..scheduling.access import own_patient_id
from ..scheduling.exceptions import (
    BookingStorageError,
    InvalidInvoiceStateError,
    NotFoundError,
    SchedulingError,
)
from .repository import InvoiceRepository

logger = logging.getLogger(__name__)


class CancellationPolicy(str, enum.Enum):
    """What happens to a PENDING invoice when its appointment stops being SCHEDULED"""

    RETAIN = "retain"
    VOID_ON_CANCEL = "void_on_cancel"
    VOID_ON_CANCEL_OR_NO_SHOW = "void_on_cancel_or_no_show"

    def voids(self, status: str) -> bool:
        if self == CancellationPolicy.VOID_ON_CANCEL:
            return status == AppointmentStatus.CANCELLED
        if self == CancellationPolicy.VOID_ON_CANCEL_OR_NO_SHOW:
            return status in (AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW)
        return False


def generate_invoice_number() -> str:
    """Globally unique invoice number: INV-<epoch ms>-<random>"""
    return f"INV-{int(time.time() * 1000)}-{secrets.token_hex(4).upper()}"


def calculate_amounts(price: float, tax_rate: float = INVOICE_TAX_RATE) -> tuple[float, float, float]:
    """Return (amount, tax, total) rounded to cents"""
    amount = round(float(price), 2)
    tax = round(amount * tax_rate, 2)
    return amount, tax, round(amount + tax, 2)


class InvoiceService:
    """Service layer for appointment invoices"""

    def __init__(
        self,
        db: Session,
        policy: Optional[CancellationPolicy] = None,
        tax_rate: float = INVOICE_TAX_RATE,
    ):
        self.db = db
        self.repo = InvoiceRepository()
        self.policy = policy or CancellationPolicy(INVOICE_CANCELLATION_POLICY)
        self.tax_rate = tax_rate

    def create_for_appointment(
        self, appointment: Appointment, service: Service, doctor: Doctor
    ) -> Invoice:
        """Stage the invoice paired with a just-created appointment (no commit)"""
        amount, tax, total = calculate_amounts(service.price, self.tax_rate)
        invoice = self.repo.add_invoice(
            self.db,
            clinic_id=appointment.clinic_id,
            patient_id=appointment.patient_id,
            appointment_id=appointment.id,
            invoice_number=generate_invoice_number(),
            amount=amount,
            tax=tax,
            total_amount=total,
            currency=INVOICE_CURRENCY,
            status=InvoiceStatus.PENDING.value,
            due_date=appointment.appointment_date,
            description=f"{service.name} - Appointment with {doctor.display_name}",
        )
        logger.info(
            f"🧾 Invoice {invoice.invoice_number} staged for appointment {appointment.id}: "
            f"{amount:.2f} + {tax:.2f} tax = {total:.2f}"
        )
        return invoice

    def apply_cancellation_policy(self, appointment: Appointment) -> Optional[Invoice]:
        """Void the appointment's PENDING invoice if the policy says so (no commit)"""
        if not self.policy.voids(appointment.status):
            return None

        invoice = self.repo.get_invoice_for_appointment(self.db, appointment.id)
        if not invoice or invoice.status != InvoiceStatus.PENDING:
            return None

        invoice.status = InvoiceStatus.CANCELLED.value
        logger.info(
            f"🧾 Cancelled invoice {invoice.invoice_number} for appointment {appointment.id} "
            f"({appointment.status}, policy={self.policy.value})"
        )
        return invoice

    def sync_due_date(self, appointment: Appointment) -> Optional[Invoice]:
        """Keep a PENDING invoice due on the (rescheduled) appointment date"""
        invoice = self.repo.get_invoice_for_appointment(self.db, appointment.id)
        if invoice and invoice.status == InvoiceStatus.PENDING:
            invoice.due_date = appointment.appointment_date
        return invoice

    def get_invoice(
        self, context: RequestContext, invoice_id: int, for_update: bool = False
    ) -> Invoice:
        invoice = self.repo.get_invoice(self.db, invoice_id, context.clinic_id, for_update)
        if not invoice:
            raise NotFoundError("Invoice not found", invoice_id=invoice_id)
        own_id = own_patient_id(self.db, context)
        if own_id is not None and invoice.patient_id != own_id:
            raise NotFoundError("Invoice not found", invoice_id=invoice_id)
        return invoice

    def get_for_appointment(self, context: RequestContext, appointment: Appointment) -> Invoice:
        invoice = self.repo.get_invoice_for_appointment(self.db, appointment.id)
        if not invoice or invoice.clinic_id != context.clinic_id:
            raise NotFoundError("Invoice not found", appointment_id=appointment.id)
        return invoice

    def list_invoices(
        self,
        context: RequestContext,
        patient_id: Optional[int] = None,
        status: Optional[str] = None,
    ) -> list[Invoice]:
        own_id = own_patient_id(self.db, context)
        if own_id is not None:
            patient_id = own_id
        return self.repo.list_invoices(self.db, context.clinic_id, patient_id, status)

    def pay_invoice(
        self, context: RequestContext, invoice_id: int, payment_method: str = "cash"
    ) -> Invoice:
        """Mark a PENDING invoice as PAID. The invoice row stays locked until commit."""
        try:
            invoice = self.get_invoice(context, invoice_id, for_update=True)
            if invoice.status != InvoiceStatus.PENDING:
                raise InvalidInvoiceStateError(
                    f"Invoice {invoice.invoice_number} is {invoice.status}, only PENDING invoices can be paid",
                    invoice_id=invoice.id,
                    status=invoice.status,
                )

            invoice.status = InvoiceStatus.PAID.value
            invoice.payment_date = datetime.now()
            invoice.payment_method = payment_method
            self.db.commit()
        except SchedulingError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to record payment for invoice {invoice_id}: {e}")
            raise BookingStorageError("Could not record payment, please try again", cause=e) from e

        self.db.refresh(invoice)
        logger.info(
            f"💰 Invoice {invoice.invoice_number} paid ({payment_method}) by user {context.user_id}"
        )
        return invoice
