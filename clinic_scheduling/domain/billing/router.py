"""Billing router - FastAPI endpoints for appointment invoices"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import RequestContext, get_request_context, require_staff
from ...database import get_db
from ...models_invoice import InvoiceStatus
from .invoice_service import InvoiceService
from .schemas import InvoiceResponse, PayInvoiceRequest, to_invoice_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/invoices", tags=["Invoices"])


def get_invoice_service(db: Session = Depends(get_db)) -> InvoiceService:
    """Dependency injection for InvoiceService"""
    return InvoiceService(db)


@router.get("", response_model=list[InvoiceResponse])
async def list_invoices(
    patient_id: Optional[int] = Query(None),
    status: Optional[InvoiceStatus] = Query(None),
    context: RequestContext = Depends(get_request_context),
    service: InvoiceService = Depends(get_invoice_service),
):
    """List clinic invoices, newest first"""
    invoices = service.list_invoices(
        context, patient_id=patient_id, status=status.value if status else None
    )
    return [to_invoice_response(i) for i in invoices]


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: int,
    context: RequestContext = Depends(get_request_context),
    service: InvoiceService = Depends(get_invoice_service),
):
    """Get a specific invoice"""
    return to_invoice_response(service.get_invoice(context, invoice_id))


@router.post("/{invoice_id}/pay", response_model=InvoiceResponse)
async def pay_invoice(
    invoice_id: int,
    body: Optional[PayInvoiceRequest] = None,
    context: RequestContext = Depends(require_staff),
    service: InvoiceService = Depends(get_invoice_service),
):
    """Record payment of a PENDING invoice (cash by default)"""
    method = body.paymentMethod if body else "cash"
    return to_invoice_response(service.pay_invoice(context, invoice_id, method))
