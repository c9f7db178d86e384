"""
Ledger writer - idempotent persistence of the events of a PAID appointment.

The income event is inserted through ``add_income_once``, which is guarded
by the partial unique index on (reference_type, reference_id) for INCOME
rows. Expense events are only written when the income insert actually
happened, so retrying a PAID transition never double-counts revenue.
All inserts of one appointment share a single store transaction.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

from clinic.core.exceptions import LedgerGenerationError, ValidationError
from clinic.core.logging_config import log_performance
from clinic.domain.entities import Appointment, FinancialEvent
from clinic.domain.interfaces import IClinicStore
from clinic.services.revenue_engine import compute_revenue

logger = logging.getLogger(__name__)

INCOME_EXISTS_NOTE = "Income event already exists for this appointment"


@dataclass
class LedgerWriteResult:
    created: bool
    events: List[FinancialEvent] = field(default_factory=list)
    note: Optional[str] = None


class LedgerWriter:
    """Writes the ledger of PAID appointments through an IClinicStore."""

    def __init__(self, store: IClinicStore):
        self.store = store

    def record_paid_appointment(self, appointment: Appointment) -> LedgerWriteResult:
        """
        Generate the income and expense events of a PAID appointment.

        Args:
            appointment: Saved appointment with its resolved doctor cut percent

        Returns:
            LedgerWriteResult; ``created`` is False when income already existed

        Raises:
            LedgerGenerationError: any storage failure. Nothing is kept.
        """
        breakdown = compute_revenue(appointment)
        started = time.perf_counter()
        try:
            with self.store.transaction() as tx:
                income = tx.financial_events.add_income_once(breakdown.income)
                if income is None:
                    return LedgerWriteResult(created=False, note=INCOME_EXISTS_NOTE)
                written = [income]
                for expense in breakdown.expenses:
                    written.append(tx.financial_events.add(expense))
        except Exception as e:
            logger.error(
                "Ledger generation failed",
                extra={
                    "context": {
                        "appointment_id": appointment.id,
                        "session_type": appointment.session_type.value,
                        "error": str(e),
                    }
                },
                exc_info=True,
            )
            raise LedgerGenerationError(
                f"Failed to generate ledger events for appointment #{appointment.id}",
                appointment_id=appointment.id,
            ) from e

        log_performance(
            "ledger.record_paid_appointment",
            (time.perf_counter() - started) * 1000,
            appointment_id=appointment.id,
            event_count=len(written),
        )
        logger.info(
            "Ledger events generated",
            extra={
                "context": {
                    "appointment_id": appointment.id,
                    "categories": [e.category for e in written],
                    "income": str(income.amount),
                }
            },
        )
        return LedgerWriteResult(created=True, events=written)

    def reconcile(self, appointment: Appointment) -> LedgerWriteResult:
        """Re-run ledger generation for a PAID appointment (idempotent)."""
        if not appointment.is_paid:
            raise ValidationError(
                "Only PAID appointments have ledger events",
                {"appointment_id": appointment.id},
            )
        return self.record_paid_appointment(appointment)

    def events_for(self, appointment_id: int) -> List[FinancialEvent]:
        with self.store.transaction() as tx:
            return tx.financial_events.list_for_appointment(appointment_id)

    def income_for(self, appointment_id: int) -> Optional[FinancialEvent]:
        with self.store.transaction() as tx:
            return tx.financial_events.get_income(appointment_id)
