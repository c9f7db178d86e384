"""
Unit tests for AppointmentService - scheduling and ledger use cases.

Each test runs against both the in-memory and the SQLAlchemy store.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from unittest.mock import Mock, patch

import pytest

from clinic.core.exceptions import (
    ConflictError,
    EligibilityError,
    LedgerGenerationError,
    NotFoundError,
    ScheduleViolation,
)
from clinic.domain.entities import (
    AppointmentStatus,
    AutoCut,
    OverrideCut,
    PaymentStatus,
)
from clinic.services.appointment_service import AppointmentService
from clinic.services.ledger_writer import INCOME_EXISTS_NOTE
from tests.factories.appointment_factories import (
    FRIDAY,
    MONDAY,
    SATURDAY,
    SUNDAY,
    TUESDAY,
)


def _amounts(events):
    return {e.category: e.amount for e in events}


class TestCreateAppointment:
    def test_first_paid_in_clinic_visit(self, service, factory):
        result = service.create_appointment(factory.create(payment_status="PAID"))

        assert result.appointment.id is not None
        assert result.appointment.doctor_cut_percent == 20
        assert not result.ledger_error
        assert _amounts(result.generated_events) == {
            "IN_CLINIC_VISIT": Decimal("15000"),
            "DOCTOR_CUT": Decimal("3000"),
        }

    def test_second_paid_visit_of_same_patient(self, service, factory):
        service.create_appointment(factory.create(SATURDAY, payment_status="PAID"))
        result = service.create_appointment(factory.create(SUNDAY, payment_status="PAID"))

        assert result.appointment.doctor_cut_percent == 10
        assert _amounts(result.generated_events)["DOCTOR_CUT"] == Decimal("1500")

    def test_paid_visit_of_another_patient_is_first_visit(self, service, factory):
        service.create_appointment(factory.create(SATURDAY, payment_status="PAID"))
        result = service.create_appointment(
            factory.create(SUNDAY, patient_id=2, payment_status="PAID")
        )
        assert result.appointment.doctor_cut_percent == 20

    def test_online_visit_without_doctor(self, service, factory):
        result = service.create_appointment(
            factory.create(
                MONDAY,
                session_type="ONLINE",
                payment_status="PAID",
                doctor_involved=False,
            )
        )

        assert _amounts(result.generated_events) == {
            "ONLINE_SESSION": Decimal("20000"),
            "ONLINE_SECRETARY_CUT": Decimal("2000"),
        }

    def test_override_percent(self, service, factory):
        result = service.create_appointment(
            factory.create(payment_status="PAID", doctor_cut=OverrideCut(15))
        )

        assert result.appointment.doctor_cut_percent == 15
        assert _amounts(result.generated_events)["DOCTOR_CUT"] == Decimal("2250")

    def test_closed_day_is_rejected_and_nothing_is_saved(self, service, factory):
        with pytest.raises(ScheduleViolation, match="Clinic is closed on Friday"):
            service.create_appointment(factory.create(FRIDAY, payment_status="PAID"))

        assert service.list_appointments(FRIDAY.date()) == []
        assert service.list_patient_appointments(1) == []

    def test_online_on_closed_day_is_allowed(self, service, factory):
        result = service.create_appointment(factory.create(FRIDAY, session_type="ONLINE"))
        assert result.appointment.session_type.value == "ONLINE"

    def test_unpaid_creates_no_ledger(self, service, factory):
        result = service.create_appointment(factory.create())

        assert result.generated_events == []
        assert result.appointment.doctor_cut_percent is None
        with pytest.raises(NotFoundError, match="No income event"):
            service.get_income_event(result.appointment.id)

    def test_overlap_for_same_clinician(self, service, factory):
        service.create_appointment(factory.create(SATURDAY, minutes=60))

        with pytest.raises(ConflictError):
            service.create_appointment(
                factory.create(SATURDAY + timedelta(minutes=30), patient_id=2)
            )
        assert len(service.list_appointments(SATURDAY.date())) == 1

    def test_back_to_back_and_other_clinician_are_fine(self, service, factory):
        service.create_appointment(factory.create(SATURDAY, minutes=60))
        service.create_appointment(
            factory.create(SATURDAY + timedelta(minutes=60), patient_id=2)
        )
        service.create_appointment(factory.create(SATURDAY, clinician_id=2))

        assert len(service.list_appointments(SATURDAY.date())) == 3


class TestFreeReturn:
    def test_within_window(self, service, factory):
        service.create_appointment(factory.create(SATURDAY, payment_status="PAID"))
        result = service.create_appointment(
            factory.create(
                datetime(2025, 1, 14, 10, 0),
                payment_status="FREE_RETURN",
                free_return_reason="Follow-up on lab results",
            )
        )

        assert result.appointment.payment_status == PaymentStatus.FREE_RETURN
        assert result.appointment.free_return_reason == "Follow-up on lab results"
        assert result.generated_events == []

    def test_day_eleven_is_refused(self, service, factory):
        service.create_appointment(factory.create(SATURDAY, payment_status="PAID"))

        with pytest.raises(EligibilityError, match="must be ≤ 10 days"):
            service.create_appointment(
                factory.create(datetime(2025, 1, 15, 10, 0), payment_status="FREE_RETURN")
            )
        assert len(service.list_patient_appointments(1)) == 1

    def test_without_paid_history(self, service, factory):
        with pytest.raises(EligibilityError, match="No paid session"):
            service.create_appointment(factory.create(payment_status="FREE_RETURN"))

    def test_reschedule_out_of_window_is_refused(self, service, factory):
        service.create_appointment(factory.create(SATURDAY, payment_status="PAID"))
        free = service.create_appointment(
            factory.create(TUESDAY, payment_status="FREE_RETURN")
        ).appointment

        later = datetime(2025, 1, 18, 10, 0)
        with pytest.raises(EligibilityError):
            service.update_appointment(
                free.id,
                factory.update(start_at=later, end_at=later + timedelta(minutes=30)),
            )
        assert service.get_appointment(free.id).start_at == TUESDAY

    def test_eligibility_defaults_to_today(self, service, factory):
        service.create_appointment(
            factory.create(datetime(2025, 1, 8, 10, 0), payment_status="PAID")
        )

        result = service.check_free_return_eligibility(1)

        assert result.eligible
        assert result.days_since_last_paid == 7
        assert result.days_remaining == 3

    def test_eligibility_for_explicit_date(self, service, factory):
        service.create_appointment(factory.create(SATURDAY, payment_status="PAID"))
        assert not service.check_free_return_eligibility(1, date(2025, 1, 20)).eligible


class TestUpdatePayment:
    def test_unpaid_to_paid_generates_ledger(self, service, factory):
        appointment = service.create_appointment(factory.create()).appointment

        result = service.update_payment(appointment.id, factory.payment("PAID"))

        assert result.previous_payment_status == PaymentStatus.UNPAID
        assert result.appointment.doctor_cut_percent == 20
        assert len(result.generated_events) == 2

    def test_paid_again_is_a_no_op(self, service, factory):
        appointment = service.create_appointment(
            factory.create(payment_status="PAID")
        ).appointment
        before = service.get_ledger(appointment.id)

        result = service.update_payment(appointment.id, factory.payment("PAID"))

        assert result.generated_events == []
        assert result.note == INCOME_EXISTS_NOTE
        assert result.previous_payment_status == PaymentStatus.PAID
        assert service.get_ledger(appointment.id) == before

    def test_leaving_paid_keeps_ledger_and_warns(self, service, factory):
        appointment = service.create_appointment(
            factory.create(payment_status="PAID")
        ).appointment

        with patch("clinic.services.appointment_service.logger") as mock_logger:
            result = service.update_payment(appointment.id, factory.payment("UNPAID"))

        assert result.appointment.payment_status == PaymentStatus.UNPAID
        assert len(service.get_ledger(appointment.id)) == 2
        warnings = [c.args[0] for c in mock_logger.warning.call_args_list]
        assert "Payment status moved away from PAID, ledger events are kept" in warnings

    def test_paid_unpaid_paid_does_not_double_count(self, service, factory):
        appointment = service.create_appointment(
            factory.create(payment_status="PAID")
        ).appointment
        service.update_payment(appointment.id, factory.payment("UNPAID"))

        result = service.update_payment(appointment.id, factory.payment("PAID"))

        assert result.generated_events == []
        assert result.note == INCOME_EXISTS_NOTE
        assert result.appointment.doctor_cut_percent == 20
        assert len(service.get_ledger(appointment.id)) == 2

    def test_override_at_payment_time(self, service, factory):
        appointment = service.create_appointment(factory.create()).appointment

        result = service.update_payment(
            appointment.id, factory.payment("PAID", doctor_cut=OverrideCut(12))
        )

        assert _amounts(result.generated_events)["DOCTOR_CUT"] == Decimal("1800")

    def test_auto_cut_follows_payment_order(self, service, factory):
        first = service.create_appointment(factory.create(SATURDAY)).appointment
        second = service.create_appointment(factory.create(SUNDAY)).appointment

        service.update_payment(second.id, factory.payment("PAID", doctor_cut=AutoCut()))
        result = service.update_payment(first.id, factory.payment("PAID"))

        assert result.appointment.doctor_cut_percent == 10

    def test_switch_to_online_while_paying(self, service, factory):
        appointment = service.create_appointment(factory.create()).appointment

        result = service.update_payment(
            appointment.id, factory.payment("PAID", session_type="ONLINE")
        )

        assert set(_amounts(result.generated_events)) == {
            "ONLINE_SESSION",
            "DOCTOR_CUT",
            "ONLINE_SECRETARY_CUT",
        }

    def test_unknown_appointment(self, service, factory):
        with pytest.raises(NotFoundError):
            service.update_payment(999, factory.payment("PAID"))


class TestLedgerFailure:
    @pytest.fixture
    def failing_service(self, store, clock):
        ledger_writer = Mock()
        ledger_writer.record_paid_appointment.side_effect = LedgerGenerationError(
            "Failed to generate ledger events for appointment #1", appointment_id=1
        )
        return AppointmentService(store, clock=clock, ledger_writer=ledger_writer)

    def test_appointment_is_kept_and_flagged(self, failing_service, store, clock, factory):
        result = failing_service.create_appointment(factory.create(payment_status="PAID"))

        assert result.ledger_error
        assert "Retry with ledger reconciliation" in result.note
        assert result.generated_events == []

        healthy = AppointmentService(store, clock=clock)
        saved = healthy.get_appointment(result.appointment.id)
        assert saved.payment_status == PaymentStatus.PAID
        assert healthy.get_ledger(saved.id) == []

        reconciled = healthy.reconcile_ledger(saved.id)
        assert reconciled.created
        assert len(healthy.get_ledger(saved.id)) == 2


class TestUpdateAppointment:
    def test_reschedule(self, service, factory):
        appointment = service.create_appointment(factory.create(SATURDAY)).appointment

        result = service.update_appointment(
            appointment.id,
            factory.update(start_at=SUNDAY, end_at=SUNDAY + timedelta(minutes=45)),
        )

        assert result.appointment.start_at == SUNDAY
        assert result.appointment.duration_minutes == 45

    def test_reschedule_into_conflict(self, service, factory):
        service.create_appointment(factory.create(SUNDAY, minutes=60))
        appointment = service.create_appointment(factory.create(SATURDAY)).appointment

        with pytest.raises(ConflictError):
            service.update_appointment(
                appointment.id,
                factory.update(start_at=SUNDAY, end_at=SUNDAY + timedelta(minutes=30)),
            )

    def test_moving_within_own_slot_is_not_a_conflict(self, service, factory):
        appointment = service.create_appointment(
            factory.create(SATURDAY, minutes=60)
        ).appointment

        result = service.update_appointment(
            appointment.id, factory.update(end_at=SATURDAY + timedelta(minutes=90))
        )
        assert result.appointment.duration_minutes == 90

    def test_reschedule_to_closed_day(self, service, factory):
        appointment = service.create_appointment(factory.create(SATURDAY)).appointment

        with pytest.raises(ScheduleViolation):
            service.update_appointment(
                appointment.id,
                factory.update(start_at=MONDAY, end_at=MONDAY + timedelta(minutes=30)),
            )

    def test_cancel_frees_slot_and_reactivation_checks_conflicts(
        self, service, factory
    ):
        first = service.create_appointment(factory.create(SATURDAY)).appointment
        service.update_appointment(
            first.id, factory.update(status=AppointmentStatus.CANCELLED)
        )
        service.create_appointment(factory.create(SATURDAY, patient_id=2))

        with pytest.raises(ConflictError):
            service.update_appointment(
                first.id, factory.update(status=AppointmentStatus.SCHEDULED)
            )

    def test_marking_paid_through_update(self, service, factory):
        appointment = service.create_appointment(factory.create()).appointment

        result = service.update_appointment(
            appointment.id, factory.update(payment_status="PAID")
        )

        assert result.appointment.is_paid
        assert len(result.generated_events) == 2


class TestDeletionAndQueries:
    def test_delete_removes_ledger(self, service, factory):
        appointment = service.create_appointment(
            factory.create(payment_status="PAID")
        ).appointment

        result = service.delete_appointment(appointment.id)

        assert result.deleted_event_count == 2
        with pytest.raises(NotFoundError):
            service.get_appointment(appointment.id)
        with pytest.raises(NotFoundError):
            service.get_ledger(appointment.id)

    def test_last_paid(self, service, factory):
        assert service.get_last_paid(1) is None
        service.create_appointment(factory.create(SATURDAY, payment_status="PAID"))
        latest = service.create_appointment(
            factory.create(SUNDAY, payment_status="PAID")
        ).appointment
        service.create_appointment(factory.create(TUESDAY))

        assert service.get_last_paid(1).id == latest.id

    def test_list_appointments_orders_by_start(self, service, factory):
        later = service.create_appointment(
            factory.create(SATURDAY + timedelta(hours=2))
        ).appointment
        earlier = service.create_appointment(factory.create(SATURDAY)).appointment

        listed = service.list_appointments(SATURDAY.date())
        assert [a.id for a in listed] == [earlier.id, later.id]
