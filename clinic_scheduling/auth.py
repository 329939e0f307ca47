"""
Caller context resolution.

Authentication happens upstream (gateway / portal session). By the time a
request reaches this service the gateway has resolved the acting user and
their clinic, and forwards them as headers. Every core operation receives the
resulting RequestContext explicitly; nothing here reads ambient session state.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException

from .models import UserRole

logger = logging.getLogger(__name__)

STAFF_ROLES = (UserRole.ADMIN, UserRole.DOCTOR, UserRole.RECEPTIONIST)


@dataclass(frozen=True)
class RequestContext:
    """Tenant + identity of the caller, supplied with every operation"""

    clinic_id: int
    user_id: int
    role: UserRole

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


def _parse_int_header(name: str, value: Optional[str]) -> int:
    if not value:
        logger.warning(f"⚠️ Missing {name} header")
        raise HTTPException(status_code=401, detail=f"Missing {name} header")
    try:
        return int(value)
    except ValueError:
        logger.warning(f"⚠️ Invalid {name} header: {value!r}")
        raise HTTPException(status_code=401, detail=f"Invalid {name} header") from None


async def get_request_context(
    x_clinic_id: Optional[str] = Header(None),
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> RequestContext:
    """Build the caller context from the headers forwarded by the gateway"""
    clinic_id = _parse_int_header("X-Clinic-Id", x_clinic_id)
    user_id = _parse_int_header("X-User-Id", x_user_id)

    try:
        role = UserRole((x_user_role or "").upper())
    except ValueError:
        logger.warning(f"⚠️ Invalid X-User-Role header: {x_user_role!r}")
        raise HTTPException(status_code=401, detail="Invalid X-User-Role header") from None

    return RequestContext(clinic_id=clinic_id, user_id=user_id, role=role)


async def require_staff(context: RequestContext = Depends(get_request_context)) -> RequestContext:
    """Only doctors, receptionists and admins may change appointment state"""
    if not context.is_staff:
        logger.warning(f"🚫 User {context.user_id} ({context.role.value}) denied staff action")
        raise HTTPException(status_code=403, detail="Staff role required")
    return context
