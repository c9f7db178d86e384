"""
Conflict detection for clinician bookings.

Two non-cancelled appointments of the same clinician conflict when
``existing.start < candidate.end and existing.end > candidate.start``.
Back-to-back slots (one ending exactly when the next starts) do not conflict.
"""

import logging
from datetime import datetime
from typing import Optional

from clinic.core.exceptions import ConflictError
from clinic.domain.interfaces import IAppointmentReader

logger = logging.getLogger(__name__)


def intervals_overlap(
    start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime
) -> bool:
    """Half-open interval overlap test."""
    return start_a < end_b and end_a > start_b


def has_conflict(
    appointments: IAppointmentReader,
    clinician_id: int,
    start_at: datetime,
    end_at: datetime,
    exclude_id: Optional[int] = None,
) -> bool:
    return appointments.has_conflict(clinician_id, start_at, end_at, exclude_id)


def ensure_no_conflict(
    appointments: IAppointmentReader,
    clinician_id: int,
    start_at: datetime,
    end_at: datetime,
    exclude_id: Optional[int] = None,
) -> None:
    """Raise ConflictError if the slot overlaps another booking of the clinician."""
    if has_conflict(appointments, clinician_id, start_at, end_at, exclude_id):
        logger.info(
            "Booking rejected: overlapping appointment",
            extra={
                "context": {
                    "clinician_id": clinician_id,
                    "start_at": start_at.isoformat(),
                    "end_at": end_at.isoformat(),
                    "exclude_id": exclude_id,
                }
            },
        )
        raise ConflictError(
            "Appointment overlaps with an existing one.",
            {
                "clinician_id": clinician_id,
                "start_at": start_at.isoformat(),
                "end_at": end_at.isoformat(),
            },
        )
