"""
Deletion coordinator - atomic removal of an appointment and its ledger.

Ledger events referencing the appointment are deleted first, then the
appointment row, inside one store transaction. Either both happen or
neither does.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from clinic.core.exceptions import DeletionError, NotFoundError
from clinic.domain.interfaces import IClinicStore

logger = logging.getLogger(__name__)


@dataclass
class DeletionResult:
    appointment_id: int
    deleted_event_count: int


class DeletionCoordinator:
    def __init__(self, store: IClinicStore):
        self.store = store

    def delete(
        self, appointment_id: int, correlation_id: Optional[str] = None
    ) -> DeletionResult:
        """
        Delete an appointment together with every event referencing it.

        Raises:
            NotFoundError: the appointment does not exist
            DeletionError: any failure inside the transaction (rolled back)
        """
        extra = {
            "context": {
                "appointment_id": appointment_id,
                "correlation_id": correlation_id,
            }
        }
        logger.info("Starting atomic appointment deletion", extra=extra)

        try:
            with self.store.transaction() as tx:
                if tx.appointments.get_by_id(appointment_id) is None:
                    raise NotFoundError(
                        "Appointment not found", {"appointment_id": appointment_id}
                    )
                deleted_events = tx.financial_events.delete_for_appointment(
                    appointment_id
                )
                if not tx.appointments.delete(appointment_id):
                    raise NotFoundError(
                        "Appointment not found", {"appointment_id": appointment_id}
                    )
        except NotFoundError:
            raise
        except Exception as e:
            logger.error(
                f"Appointment deletion rolled back: {str(e)}", extra=extra, exc_info=True
            )
            raise DeletionError(
                f"Failed to delete appointment #{appointment_id}",
                {"appointment_id": appointment_id},
            ) from e

        logger.info(
            f"✓ Deleted appointment and {deleted_events} ledger events", extra=extra
        )
        return DeletionResult(
            appointment_id=appointment_id, deleted_event_count=deleted_events
        )
