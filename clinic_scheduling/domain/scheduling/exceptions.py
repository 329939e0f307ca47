"""Scheduling domain errors, mapped to HTTP responses in main.py"""

from typing import Any, Optional


class SchedulingError(Exception):
    """Base class for expected, user-facing scheduling failures"""

    status_code = 400
    code = "scheduling_error"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message, **self.details}


class BookingValidationError(SchedulingError):
    """Malformed or inconsistent input (bad date, service not offered, ...)"""

    status_code = 400
    code = "validation_error"


class NotFoundError(SchedulingError):
    status_code = 404
    code = "not_found"


class PermissionDeniedError(SchedulingError):
    """Caller's role may not perform this action"""

    status_code = 403
    code = "forbidden"


class DuplicateBookingError(SchedulingError):
    """Patient already has a SCHEDULED appointment with this doctor that day"""

    status_code = 409
    code = "duplicate_booking"


class SlotUnavailableError(SchedulingError):
    """Requested interval overlaps an existing SCHEDULED appointment"""

    status_code = 409
    code = "slot_unavailable"


class InvalidStatusTransitionError(SchedulingError):
    status_code = 409
    code = "invalid_status_transition"


class InvalidInvoiceStateError(SchedulingError):
    status_code = 409
    code = "invalid_invoice_state"


class BookingStorageError(SchedulingError):
    """Storage kept failing after the bounded retry; nothing was persisted"""

    status_code = 503
    code = "storage_error"

    def __init__(self, message: str, cause: Optional[BaseException] = None, **details: Any):
        super().__init__(message, **details)
        self.cause = cause
