"""
Appointment service following SOLID principles.

Orchestrates the scheduling use cases: every create/update runs the
schedule policy, conflict detection and FREE_RETURN eligibility before the
appointment is written; a transition into PAID then drives the revenue
engine and the ledger writer.

The appointment write and the ledger write are separate transactions. If
the ledger write fails the appointment is kept and the result carries
``ledger_error=True``; ``reconcile_ledger`` retries it later.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from clinic.core.exceptions import (
    LedgerGenerationError,
    NotFoundError,
    ValidationError,
)
from clinic.domain.clock import Clock, SystemClock
from clinic.domain.entities import (
    Appointment,
    AutoCut,
    DoctorCutRule,
    FinancialEvent,
    OverrideCut,
    PaymentStatus,
)
from clinic.domain.interfaces import ClinicTransaction, IClinicStore
from clinic.schemas.dtos import (
    AppointmentCreateRequest,
    AppointmentUpdateRequest,
    PaymentUpdateRequest,
)
from clinic.services import conflict_detector, eligibility_service, schedule_policy
from clinic.services.deletion_coordinator import DeletionCoordinator, DeletionResult
from clinic.services.eligibility_service import EligibilityResult
from clinic.services.ledger_writer import (
    INCOME_EXISTS_NOTE,
    LedgerWriter,
    LedgerWriteResult,
)
from clinic.services.revenue_engine import resolve_doctor_cut

logger = logging.getLogger(__name__)


@dataclass
class AppointmentResult:
    """Outcome of a write use case on one appointment."""

    appointment: Appointment
    generated_events: List[FinancialEvent] = field(default_factory=list)
    note: Optional[str] = None
    ledger_error: bool = False


@dataclass
class PaymentUpdateResult(AppointmentResult):
    """Outcome of a payment status change."""

    previous_payment_status: Optional[PaymentStatus] = None


class AppointmentService:
    """Application service for appointment-related use-cases.

    Depends only on the IClinicStore contract, so the same rules run against
    the SQLAlchemy store and the in-memory store.
    """

    def __init__(
        self,
        store: IClinicStore,
        clock: Optional[Clock] = None,
        ledger_writer: Optional[LedgerWriter] = None,
        deletion_coordinator: Optional[DeletionCoordinator] = None,
    ):
        self.store = store
        self.clock = clock or SystemClock()
        self.ledger_writer = ledger_writer or LedgerWriter(store)
        self.deletion_coordinator = deletion_coordinator or DeletionCoordinator(store)

    # ------------------------------------------------------------------
    # Write use cases
    # ------------------------------------------------------------------

    def create_appointment(self, request: AppointmentCreateRequest) -> AppointmentResult:
        """Create a new appointment with business rule validation.

        Business Rules:
        - IN_CLINIC only on open days
        - No overlapping booking for the same clinician
        - FREE_RETURN only within the window after a PAID visit
        - PAID at creation generates the ledger immediately
        """
        request.validate()

        appointment = Appointment(
            patient_id=request.patient_id,
            clinician_id=request.clinician_id,
            start_at=request.start_at,
            end_at=request.end_at,
            session_type=request.session_type,
            payment_status=PaymentStatus.UNPAID,
            status=request.status,
            doctor_involved=request.doctor_involved,
        )
        schedule_policy.ensure_allowed(appointment.session_type, appointment.start_at)

        with self.store.transaction() as tx:
            conflict_detector.ensure_no_conflict(
                tx.appointments,
                appointment.clinician_id,
                appointment.start_at,
                appointment.end_at,
            )
            self._apply_payment_status(
                tx,
                appointment,
                request.payment_status,
                request.doctor_cut,
                request.free_return_reason,
            )
            created = tx.appointments.create(appointment)

        logger.info(
            "Appointment created",
            extra={
                "context": {
                    "appointment_id": created.id,
                    "patient_id": created.patient_id,
                    "clinician_id": created.clinician_id,
                    "session_type": created.session_type.value,
                    "payment_status": created.payment_status.value,
                    "doctor_cut_percent": created.doctor_cut_percent,
                }
            },
        )

        if created.is_paid:
            return self._write_ledger(created, AppointmentResult)
        return AppointmentResult(appointment=created)

    def update_payment(
        self, appointment_id: int, request: PaymentUpdateRequest
    ) -> PaymentUpdateResult:
        """
        Change the payment status (and optionally session fields).

        UNPAID/FREE_RETURN -> PAID generates the ledger once. PAID -> PAID is
        a no-op. PAID -> anything else keeps the existing ledger events.
        """
        request.validate()

        with self.store.transaction() as tx:
            appointment = self._get_or_raise(tx, appointment_id)
            previous = appointment.payment_status

            if (
                request.session_type is not None
                and request.session_type != appointment.session_type
            ):
                schedule_policy.ensure_allowed(
                    request.session_type, appointment.start_at
                )
                appointment.session_type = request.session_type
            if request.doctor_involved is not None:
                appointment.doctor_involved = request.doctor_involved

            self._apply_payment_status(
                tx,
                appointment,
                request.payment_status,
                request.doctor_cut,
                request.free_return_reason,
            )
            updated = tx.appointments.update(appointment)
            income_exists = (
                previous == PaymentStatus.PAID
                and updated.is_paid
                and tx.financial_events.has_income(appointment_id)
            )

        logger.info(
            "Payment status updated",
            extra={
                "context": {
                    "appointment_id": appointment_id,
                    "from": previous.value,
                    "to": updated.payment_status.value,
                }
            },
        )

        if updated.is_paid and previous != PaymentStatus.PAID:
            result = self._write_ledger(updated, PaymentUpdateResult)
        else:
            result = PaymentUpdateResult(appointment=updated)
            if income_exists:
                result.note = INCOME_EXISTS_NOTE
        result.previous_payment_status = previous
        return result

    def update_appointment(
        self, appointment_id: int, request: AppointmentUpdateRequest
    ) -> AppointmentResult:
        """Reschedule or edit an appointment, re-running the relevant checks."""
        request.validate()

        with self.store.transaction() as tx:
            appointment = self._get_or_raise(tx, appointment_id)
            previous = appointment.payment_status
            was_cancelled = appointment.is_cancelled

            start_at = request.start_at or appointment.start_at
            end_at = request.end_at or appointment.end_at
            if start_at >= end_at:
                raise ValidationError("Start time must be before end time")
            session_type = request.session_type or appointment.session_type
            rescheduled = (start_at, end_at) != (
                appointment.start_at,
                appointment.end_at,
            )

            if rescheduled or session_type != appointment.session_type:
                schedule_policy.ensure_allowed(session_type, start_at)

            if request.status is not None:
                appointment.status = request.status
            reactivated = was_cancelled and not appointment.is_cancelled
            if (rescheduled or reactivated) and not appointment.is_cancelled:
                conflict_detector.ensure_no_conflict(
                    tx.appointments,
                    appointment.clinician_id,
                    start_at,
                    end_at,
                    exclude_id=appointment_id,
                )

            appointment.start_at = start_at
            appointment.end_at = end_at
            appointment.session_type = session_type
            if request.doctor_involved is not None:
                appointment.doctor_involved = request.doctor_involved

            self._apply_payment_status(
                tx,
                appointment,
                request.payment_status or previous,
                request.doctor_cut,
                request.free_return_reason,
                recheck_eligibility=rescheduled,
            )
            updated = tx.appointments.update(appointment)

        logger.info(
            "Appointment updated",
            extra={
                "context": {
                    "appointment_id": appointment_id,
                    "rescheduled": rescheduled,
                    "payment_status": updated.payment_status.value,
                }
            },
        )

        if updated.is_paid and previous != PaymentStatus.PAID:
            return self._write_ledger(updated, AppointmentResult)
        return AppointmentResult(appointment=updated)

    def delete_appointment(self, appointment_id: int) -> DeletionResult:
        """Delete an appointment and its ledger atomically."""
        return self.deletion_coordinator.delete(appointment_id)

    def reconcile_ledger(self, appointment_id: int) -> LedgerWriteResult:
        """Generate the missing ledger of a PAID appointment (idempotent)."""
        appointment = self.get_appointment(appointment_id)
        return self.ledger_writer.reconcile(appointment)

    # ------------------------------------------------------------------
    # Read use cases
    # ------------------------------------------------------------------

    def get_appointment(self, appointment_id: int) -> Appointment:
        with self.store.transaction() as tx:
            return self._get_or_raise(tx, appointment_id)

    def list_appointments(self, day: date) -> List[Appointment]:
        with self.store.transaction() as tx:
            return tx.appointments.list_by_date(day)

    def list_patient_appointments(self, patient_id: int) -> List[Appointment]:
        with self.store.transaction() as tx:
            return tx.appointments.list_for_patient(patient_id)

    def get_income_event(self, appointment_id: int) -> FinancialEvent:
        event = self.ledger_writer.income_for(appointment_id)
        if event is None:
            raise NotFoundError(
                "No income event found for this appointment",
                {"appointment_id": appointment_id},
            )
        return event

    def get_ledger(self, appointment_id: int) -> List[FinancialEvent]:
        self.get_appointment(appointment_id)
        return self.ledger_writer.events_for(appointment_id)

    def get_last_paid(self, patient_id: int) -> Optional[Appointment]:
        with self.store.transaction() as tx:
            return eligibility_service.last_paid(tx.appointments, patient_id)

    def check_free_return_eligibility(
        self, patient_id: int, on: Optional[date] = None
    ) -> EligibilityResult:
        """Would a FREE_RETURN for ``patient_id`` be accepted on ``on`` (default today)?"""
        candidate = on or self.clock.today()
        with self.store.transaction() as tx:
            return eligibility_service.evaluate(tx.appointments, patient_id, candidate)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _get_or_raise(tx: ClinicTransaction, appointment_id: int) -> Appointment:
        appointment = tx.appointments.get_by_id(appointment_id)
        if appointment is None:
            raise NotFoundError(
                "Appointment not found", {"appointment_id": appointment_id}
            )
        return appointment

    def _apply_payment_status(
        self,
        tx: ClinicTransaction,
        appointment: Appointment,
        new_status: PaymentStatus,
        doctor_cut: Optional[DoctorCutRule],
        free_return_reason: Optional[str],
        recheck_eligibility: bool = False,
    ) -> None:
        """Check and apply a payment status on an unsaved appointment."""
        previous = appointment.payment_status
        new_status = PaymentStatus(new_status)

        if new_status == PaymentStatus.FREE_RETURN and (
            previous != PaymentStatus.FREE_RETURN or recheck_eligibility
        ):
            eligibility_service.ensure_eligible(
                tx.appointments,
                appointment.patient_id,
                appointment.start_at,
                exclude_id=appointment.id,
            )

        if new_status == PaymentStatus.PAID and previous != PaymentStatus.PAID:
            if doctor_cut is None:
                # Keep a percent chosen earlier; otherwise use the automatic tier
                doctor_cut = (
                    OverrideCut(appointment.doctor_cut_percent)
                    if appointment.doctor_cut_percent is not None
                    else AutoCut()
                )
            prior_paid = tx.appointments.count_paid(
                appointment.patient_id, exclude_id=appointment.id
            )
            appointment.doctor_cut_percent = resolve_doctor_cut(doctor_cut, prior_paid)
        elif isinstance(doctor_cut, OverrideCut):
            appointment.doctor_cut_percent = doctor_cut.percent

        if previous == PaymentStatus.PAID and new_status != PaymentStatus.PAID:
            logger.warning(
                "Payment status moved away from PAID, ledger events are kept",
                extra={
                    "context": {
                        "appointment_id": appointment.id,
                        "new_status": new_status.value,
                    }
                },
            )

        if new_status == PaymentStatus.FREE_RETURN:
            if free_return_reason is not None:
                appointment.free_return_reason = free_return_reason
        else:
            appointment.free_return_reason = None
        appointment.payment_status = new_status

    def _write_ledger(self, appointment: Appointment, result_cls):
        try:
            ledger = self.ledger_writer.record_paid_appointment(appointment)
        except LedgerGenerationError as e:
            logger.warning(
                "Appointment saved but ledger generation failed",
                extra={"context": {"appointment_id": appointment.id}},
            )
            return result_cls(
                appointment=appointment,
                note=f"{e.message}. Retry with ledger reconciliation.",
                ledger_error=True,
            )
        return result_cls(
            appointment=appointment, generated_events=ledger.events, note=ledger.note
        )
