"""
Unit tests for ledger reports.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from clinic.core.exceptions import ValidationError
from clinic.domain.entities import EventType, FinancialEvent, ReferenceType
from tests.factories.appointment_factories import SATURDAY, SUNDAY


@pytest.fixture
def january_ledger(service, factory):
    """Two in-clinic visits (20% then 10%) and one online visit with a doctor."""
    service.create_appointment(factory.create(SATURDAY, payment_status="PAID"))
    service.create_appointment(factory.create(SUNDAY, payment_status="PAID"))
    service.create_appointment(
        factory.create(
            datetime(2025, 1, 20, 18, 0),
            patient_id=2,
            session_type="ONLINE",
            payment_status="PAID",
        )
    )


def _add_rent(store, day):
    with store.transaction() as tx:
        tx.financial_events.add(
            FinancialEvent(
                event_date=day,
                event_type=EventType.EXPENSE,
                category="RENT",
                amount=Decimal("5000"),
                description="Clinic rent",
            )
        )


class TestListEvents:
    def test_filters_by_type(self, reports, january_ledger):
        income = reports.list_events(event_type="INCOME")
        assert len(income) == 3
        assert all(e.is_income for e in income)

    def test_filters_by_category_and_range(self, reports, january_ledger):
        cuts = reports.list_events(
            category="DOCTOR_CUT",
            start_date=date(2025, 1, 5),
            end_date=date(2025, 1, 31),
        )
        assert sorted(e.amount for e in cuts) == [Decimal("1500"), Decimal("4000")]

    def test_newest_first(self, reports, january_ledger):
        days = [e.event_date for e in reports.list_events()]
        assert days == sorted(days, reverse=True)

    def test_inverted_range(self, reports):
        with pytest.raises(ValidationError):
            reports.list_events(start_date=date(2025, 2, 1), end_date=date(2025, 1, 1))

    def test_unknown_event_type(self, reports):
        with pytest.raises(ValidationError, match="event_type"):
            reports.list_events(event_type="REFUND")


class TestDailySummary:
    def test_single_day(self, reports, january_ledger):
        summary = reports.daily_summary(date(2025, 1, 4))

        assert summary["income"]["total"] == Decimal("15000")
        assert summary["expenses"]["breakdown"] == {"DOCTOR_CUT": Decimal("3000")}
        assert summary["net_profit"] == Decimal("12000")
        assert len(summary["events"]["income_events"]) == 1

    def test_empty_day(self, reports):
        summary = reports.daily_summary(date(2025, 1, 6))

        assert summary["income"]["total"] == Decimal(0)
        assert summary["income"]["count"] == 0
        assert summary["net_profit"] == Decimal(0)


class TestMonthlyReport:
    def test_january(self, reports, store, january_ledger):
        _add_rent(store, date(2025, 1, 31))

        report = reports.monthly_report(2025, 1)

        assert report["period"] == "January 2025"
        assert report["income"]["total"] == Decimal("50000")
        assert report["income"]["in_clinic"] == Decimal("30000")
        assert report["income"]["online"] == Decimal("20000")
        assert report["expenses"]["doctor_cuts"] == Decimal("8500")
        assert report["expenses"]["secretary_cuts"] == Decimal("2000")
        assert report["expenses"]["other"] == {
            "total": Decimal("5000"),
            "breakdown": {"RENT": Decimal("5000")},
        }
        assert report["expenses"]["total"] == Decimal("15500")
        assert report["net_profit"] == Decimal("34500")
        assert report["profit_margin"] == Decimal("69.00")
        assert report["summary"] == {
            "total_days_with_activity": 4,
            "total_events": 8,
        }

    def test_month_boundaries_are_inclusive(self, reports, store):
        _add_rent(store, date(2025, 1, 31))
        _add_rent(store, date(2025, 2, 1))

        assert reports.monthly_report(2025, 1)["expenses"]["total"] == Decimal("5000")
        assert reports.monthly_report(2025, 2)["expenses"]["total"] == Decimal("5000")

    def test_empty_month_has_zero_margin(self, reports):
        report = reports.monthly_report(2025, 3)
        assert report["profit_margin"] == Decimal(0)
        assert report["income"]["count"] == 0

    @pytest.mark.parametrize("month", [0, 13])
    def test_invalid_month(self, reports, month):
        with pytest.raises(ValidationError, match="Month must be 1-12"):
            reports.monthly_report(2025, month)


class TestDoctorCuts:
    def test_january(self, reports, store, january_ledger):
        _add_rent(store, date(2025, 1, 31))

        report = reports.doctor_cuts(2025, 1)

        assert report["month"] == "2025-01"
        assert report["period"] == "January 2025"
        assert report["total_owed"] == Decimal("8500")
        assert report["session_count"] == 3
        assert report["breakdown"] == {
            "in_clinic": {"total": Decimal("4500"), "count": 2},
            "online": {"total": Decimal("4000"), "count": 1},
        }
        assert [
            (s["date"], s["session_type"], s["cut_percent"], s["amount"])
            for s in report["sessions"]
        ] == [
            (date(2025, 1, 20), "ONLINE", 20, Decimal("4000")),
            (date(2025, 1, 5), "IN_CLINIC", 10, Decimal("1500")),
            (date(2025, 1, 4), "IN_CLINIC", 20, Decimal("3000")),
        ]
        assert all(s["appointment_id"] is not None for s in report["sessions"])
        assert "patient_id" not in report["sessions"][0]

    def test_cut_without_appointment_is_unknown(self, reports, store):
        with store.transaction() as tx:
            tx.financial_events.add(
                FinancialEvent(
                    event_date=date(2025, 2, 3),
                    event_type=EventType.EXPENSE,
                    category="DOCTOR_CUT",
                    amount=Decimal("2000"),
                    reference_type=ReferenceType.APPOINTMENT,
                    reference_id=999,
                )
            )

        report = reports.doctor_cuts(2025, 2)

        assert report["total_owed"] == Decimal("2000")
        assert report["sessions"][0]["session_type"] == "Unknown"
        assert report["sessions"][0]["cut_percent"] is None
        assert report["breakdown"]["in_clinic"]["count"] == 0
        assert report["breakdown"]["online"]["count"] == 0

    def test_empty_month(self, reports, january_ledger):
        report = reports.doctor_cuts(2025, 3)
        assert report["total_owed"] == Decimal(0)
        assert report["sessions"] == []

    def test_invalid_month(self, reports):
        with pytest.raises(ValidationError, match="Month must be 1-12"):
            reports.doctor_cuts(2025, 13)
