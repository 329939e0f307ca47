"""Caller scoping: which patient records a request may see and change"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...auth import RequestContext
from ...models import UserRole
from .exceptions import PermissionDeniedError
from .repository import SchedulingRepository

logger = logging.getLogger(__name__)


def own_patient_id(db: Session, context: RequestContext) -> Optional[int]:
    """
    Patient id a PATIENT caller is confined to, or None for staff.

    Patients only ever see, book, cancel and reschedule their own
    appointments and invoices.
    """
    if context.role != UserRole.PATIENT:
        return None

    patient = SchedulingRepository.get_patient_by_user(db, context.user_id, context.clinic_id)
    if not patient:
        logger.warning(
            f"🚫 User {context.user_id} has role PATIENT but no patient profile in clinic {context.clinic_id}"
        )
        raise PermissionDeniedError("No patient profile for this user")
    return patient.id
