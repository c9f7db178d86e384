"""
Revenue engine: income and the doctor/secretary split of a PAID appointment.

Pure functions, no storage access. The caller supplies the appointment
(with its resolved ``doctor_cut_percent``) and gets back unsaved ledger
event drafts.
"""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

from clinic.core import config
from clinic.domain.calendar import to_calendar_date
from clinic.domain.entities import (
    Appointment,
    AutoCut,
    DoctorCutRule,
    EventType,
    FinancialEvent,
    OverrideCut,
    ReferenceType,
    SessionType,
)

FIRST_VISIT_CUT_PERCENT = 20
FOLLOW_UP_CUT_PERCENT = 10
SECRETARY_CUT_PERCENT = 10

INCOME_CATEGORIES = {
    SessionType.IN_CLINIC: "IN_CLINIC_VISIT",
    SessionType.ONLINE: "ONLINE_SESSION",
}
DOCTOR_CUT_CATEGORY = "DOCTOR_CUT"
SECRETARY_CUT_CATEGORY = "ONLINE_SECRETARY_CUT"


@dataclass
class RevenueBreakdown:
    income: FinancialEvent
    expenses: List[FinancialEvent] = field(default_factory=list)

    @property
    def events(self) -> List[FinancialEvent]:
        return [self.income, *self.expenses]

    @property
    def net(self) -> Decimal:
        return self.income.amount - sum((e.amount for e in self.expenses), Decimal(0))


def round_amount(value: Decimal) -> Decimal:
    """Round to whole currency units, halves away from zero."""
    return Decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def percent_of(amount: Decimal, percent: int) -> Decimal:
    return round_amount(Decimal(amount) * Decimal(percent) / Decimal(100))


def income_rate(session_type) -> Decimal:
    """Flat income of one session of ``session_type``."""
    if SessionType(session_type) == SessionType.ONLINE:
        return round_amount(config.ONLINE_RATE)
    return round_amount(config.IN_CLINIC_RATE)


def auto_cut_percent(prior_paid_count: int) -> int:
    """First-ever PAID visit of a patient gets 20%, every later one 10%."""
    if prior_paid_count <= 0:
        return FIRST_VISIT_CUT_PERCENT
    return FOLLOW_UP_CUT_PERCENT


def resolve_doctor_cut(rule: Optional[DoctorCutRule], prior_paid_count: int) -> int:
    """
    Turn a doctor cut rule into a percent.

    Args:
        rule: OverrideCut with an explicit percent, or AutoCut/None for the tier
        prior_paid_count: PAID visits of the patient, not counting this one
    """
    if isinstance(rule, OverrideCut):
        return rule.percent
    if rule is None or isinstance(rule, AutoCut):
        return auto_cut_percent(prior_paid_count)
    raise TypeError(f"Unsupported doctor cut rule: {rule!r}")


def should_pay_doctor(appointment: Appointment) -> bool:
    if appointment.doctor_cut_percent is None:
        return False
    return appointment.session_type == SessionType.IN_CLINIC or appointment.doctor_involved


def compute_revenue(appointment: Appointment) -> RevenueBreakdown:
    """
    Build the ledger drafts of a PAID appointment.

    Returns:
        RevenueBreakdown holding one INCOME event and zero to two EXPENSE
        events (doctor cut, online secretary cut), all referencing the
        appointment and dated on the calendar day of ``start_at``.
    """
    if appointment.id is None:
        raise ValueError("Revenue can only be computed for a saved appointment")

    event_date = to_calendar_date(appointment.start_at)
    session_type = appointment.session_type
    income_amount = income_rate(session_type)

    def draft(event_type, category, amount, description):
        return FinancialEvent(
            event_date=event_date,
            event_type=event_type,
            category=category,
            amount=amount,
            description=description,
            reference_type=ReferenceType.APPOINTMENT,
            reference_id=appointment.id,
        )

    income = draft(
        EventType.INCOME,
        INCOME_CATEGORIES[session_type],
        income_amount,
        f"Income from {session_type.value} visit - Appointment #{appointment.id}",
    )

    expenses = []
    if should_pay_doctor(appointment):
        percent = appointment.doctor_cut_percent
        expenses.append(
            draft(
                EventType.EXPENSE,
                DOCTOR_CUT_CATEGORY,
                percent_of(income_amount, percent),
                f"Doctor cut ({percent}%) - Appointment #{appointment.id}",
            )
        )

    if session_type == SessionType.ONLINE and appointment.is_paid:
        expenses.append(
            draft(
                EventType.EXPENSE,
                SECRETARY_CUT_CATEGORY,
                percent_of(income_amount, SECRETARY_CUT_PERCENT),
                f"Online secretary cut ({SECRETARY_CUT_PERCENT}%) - "
                f"Appointment #{appointment.id}",
            )
        )

    return RevenueBreakdown(income=income, expenses=expenses)
