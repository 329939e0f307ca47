"""Billing repository - Database operations for appointment invoices"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models_invoice import Invoice


class InvoiceRepository:
    """Repository for invoice database operations"""

    @staticmethod
    def add_invoice(db: Session, **invoice_data) -> Invoice:
        """Stage a new invoice in the current transaction"""
        invoice = Invoice(**invoice_data)
        db.add(invoice)
        db.flush()
        return invoice

    @staticmethod
    def get_invoice(
        db: Session, invoice_id: int, clinic_id: int, for_update: bool = False
    ) -> Optional[Invoice]:
        query = db.query(Invoice).filter(Invoice.id == invoice_id, Invoice.clinic_id == clinic_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def get_invoice_for_appointment(db: Session, appointment_id: int) -> Optional[Invoice]:
        return db.query(Invoice).filter(Invoice.appointment_id == appointment_id).first()

    @staticmethod
    def list_invoices(
        db: Session,
        clinic_id: int,
        patient_id: Optional[int] = None,
        status: Optional[str] = None,
    ) -> list[Invoice]:
        query = db.query(Invoice).filter(Invoice.clinic_id == clinic_id)

        if patient_id is not None:
            query = query.filter(Invoice.patient_id == patient_id)
        if status:
            query = query.filter(Invoice.status == status)

        return query.order_by(Invoice.created_at.desc(), Invoice.id.desc()).all()
