"""
Custom exceptions for the application.

Every error raised by the scheduling and ledger core derives from
ClinicError so controllers can map it to an HTTP response in one place.
"""

from typing import Any, Dict, Optional


class ClinicError(Exception):
    """Base class for business errors raised by the core."""

    status_code = 500
    code = "clinic_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details:
            data["details"] = self.details
        return data


class ValidationError(ClinicError, ValueError):
    """Malformed input: bad enum value, start >= end, cut percent out of range."""

    status_code = 400
    code = "validation_error"


class NotFoundError(ClinicError):
    """The requested appointment does not exist."""

    status_code = 404
    code = "not_found"


class ConflictError(ClinicError):
    """The clinician already has an overlapping, non-cancelled appointment."""

    status_code = 409
    code = "conflict"


class ScheduleViolation(ClinicError):
    """IN_CLINIC session requested on a day the clinic is closed."""

    status_code = 422
    code = "schedule_violation"


class EligibilityError(ClinicError):
    """FREE_RETURN requested without a qualifying PAID visit."""

    status_code = 422
    code = "free_return_not_allowed"


class LedgerGenerationError(ClinicError):
    """
    Ledger events could not be written after the appointment write succeeded.

    The appointment is kept. Callers receive this as a flag on the result so
    the ledger can be reconciled later.
    """

    status_code = 500
    code = "ledger_generation_failed"

    def __init__(self, message: str, appointment_id: Optional[int] = None):
        super().__init__(message, {"appointment_id": appointment_id})
        self.appointment_id = appointment_id


class DeletionError(ClinicError):
    """The atomic deletion transaction failed and was rolled back."""

    status_code = 500
    code = "deletion_failed"
