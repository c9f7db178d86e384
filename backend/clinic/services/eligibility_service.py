"""
FREE_RETURN eligibility.

A patient may book a FREE_RETURN visit only when their most recent PAID
appointment falls between 0 and FREE_RETURN_WINDOW_DAYS calendar days
before the candidate date.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from clinic.core import config
from clinic.core.exceptions import EligibilityError
from clinic.domain.calendar import DateLike, days_between, to_calendar_date
from clinic.domain.entities import Appointment
from clinic.domain.interfaces import IAppointmentReader

logger = logging.getLogger(__name__)


@dataclass
class EligibilityResult:
    eligible: bool
    message: str
    days_since_last_paid: Optional[int] = None
    days_remaining: int = 0
    last_paid: Optional[Dict[str, Any]] = None
    window_days: int = 10

    @property
    def policy(self) -> str:
        return (
            f"{self.window_days}-day free return policy: FREE_RETURN is only "
            f"allowed within {self.window_days} days of a PAID session"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "eligible": self.eligible,
            "message": self.message,
            "days_since_last_paid": self.days_since_last_paid,
            "days_remaining": self.days_remaining,
            "last_paid": self.last_paid,
            "policy": self.policy,
        }


def summarize_paid(appointment: Appointment) -> Dict[str, Any]:
    """Short description of a PAID appointment for eligibility responses."""
    return {
        "id": appointment.id,
        "date": to_calendar_date(appointment.start_at),
        "session_type": appointment.session_type.value,
    }


def last_paid(
    appointments: IAppointmentReader,
    patient_id: int,
    exclude_id: Optional[int] = None,
) -> Optional[Appointment]:
    return appointments.get_last_paid(patient_id, exclude_id=exclude_id)


def evaluate(
    appointments: IAppointmentReader,
    patient_id: int,
    candidate: DateLike,
    exclude_id: Optional[int] = None,
    window_days: Optional[int] = None,
) -> EligibilityResult:
    """
    Decide whether ``patient_id`` may book a FREE_RETURN on ``candidate``.

    Args:
        appointments: Appointment reader
        patient_id: Patient requesting the free return
        candidate: Date (or timestamp) of the requested visit
        exclude_id: Appointment being edited, left out of the PAID lookup
        window_days: Override of FREE_RETURN_WINDOW_DAYS

    Returns:
        EligibilityResult with the decision and the supporting numbers
    """
    window = config.FREE_RETURN_WINDOW_DAYS if window_days is None else window_days
    previous = last_paid(appointments, patient_id, exclude_id)
    if previous is None:
        return EligibilityResult(
            eligible=False,
            message=f"No paid session found within the last {window} days",
            window_days=window,
        )

    days = days_between(previous.start_at, candidate)
    eligible = 0 <= days <= window
    if eligible:
        message = f"Previous paid session was {days} days ago"
    elif days < 0:
        message = "Previous paid session is after the requested date"
    else:
        message = f"Previous paid session was {days} days ago (must be ≤ {window} days)"

    return EligibilityResult(
        eligible=eligible,
        message=message,
        days_since_last_paid=days,
        days_remaining=max(0, window - days),
        last_paid=summarize_paid(previous),
        window_days=window,
    )


def ensure_eligible(
    appointments: IAppointmentReader,
    patient_id: int,
    candidate: DateLike,
    exclude_id: Optional[int] = None,
) -> EligibilityResult:
    """Evaluate eligibility and raise EligibilityError when it is refused."""
    result = evaluate(appointments, patient_id, candidate, exclude_id)
    if not result.eligible:
        logger.info(
            "FREE_RETURN refused",
            extra={
                "context": {
                    "patient_id": patient_id,
                    "candidate": str(to_calendar_date(candidate)),
                    "days_since_last_paid": result.days_since_last_paid,
                }
            },
        )
        raise EligibilityError(
            f"FREE_RETURN not allowed: {result.message}",
            {
                "patient_id": patient_id,
                "days_since_last_paid": result.days_since_last_paid,
                "last_paid_date": (
                    result.last_paid["date"].isoformat() if result.last_paid else None
                ),
            },
        )
    return result

