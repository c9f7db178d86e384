"""
Ledger reports: filtered listing, daily summary, monthly report and the
monthly doctor-cut payable report.

Amounts are summed as Decimal. Category breakdowns map category -> total.
"""

import calendar
import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from clinic.core.exceptions import ValidationError
from clinic.domain.entities import (
    EventType,
    FinancialEvent,
    SessionType,
    coerce_enum,
)
from clinic.domain.interfaces import IClinicStore
from clinic.services.revenue_engine import (
    DOCTOR_CUT_CATEGORY,
    INCOME_CATEGORIES,
    SECRETARY_CUT_CATEGORY,
)

logger = logging.getLogger(__name__)

ZERO = Decimal(0)


def _breakdown(events: Iterable[FinancialEvent]) -> Dict[str, Decimal]:
    totals: Dict[str, Decimal] = defaultdict(lambda: ZERO)
    for event in events:
        totals[event.category] += event.amount
    return dict(totals)


def _split(events: List[FinancialEvent]):
    income = [e for e in events if e.event_type == EventType.INCOME]
    expenses = [e for e in events if e.event_type == EventType.EXPENSE]
    return income, expenses


def _total(events: Iterable[FinancialEvent]) -> Decimal:
    return sum((e.amount for e in events), ZERO)


def _month_bounds(year: int, month: int) -> Tuple[date, date]:
    if not 1 <= month <= 12 or year < 1:
        raise ValidationError(
            "Invalid year or month. Month must be 1-12",
            {"year": year, "month": month},
        )
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


class LedgerReportService:
    """Read-only reporting over the financial_events ledger."""

    def __init__(self, store: IClinicStore):
        self.store = store

    def list_events(
        self,
        event_type: Optional[str] = None,
        category: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[FinancialEvent]:
        """Events matching every given filter, newest first."""
        if event_type is not None:
            event_type = coerce_enum(EventType, event_type, "event_type")
        if start_date and end_date and start_date > end_date:
            raise ValidationError("start_date must not be after end_date")
        with self.store.transaction() as tx:
            return tx.financial_events.search(
                event_type=event_type,
                category=category,
                start_date=start_date,
                end_date=end_date,
            )

    def daily_summary(self, day: date) -> Dict[str, Any]:
        """Income, expenses and net profit of one calendar day."""
        events = sorted(
            self.list_events(start_date=day, end_date=day),
            key=lambda e: (e.event_type.value, e.category, e.id or 0),
        )
        income, expenses = _split(events)
        total_income = _total(income)
        total_expenses = _total(expenses)
        return {
            "date": day,
            "income": {
                "total": total_income,
                "breakdown": _breakdown(income),
                "count": len(income),
            },
            "expenses": {
                "total": total_expenses,
                "breakdown": _breakdown(expenses),
                "count": len(expenses),
            },
            "net_profit": total_income - total_expenses,
            "events": {"income_events": income, "expense_events": expenses},
        }

    def monthly_report(self, year: int, month: int) -> Dict[str, Any]:
        """
        Monthly accounting report.

        Raises:
            ValidationError: month outside 1-12 or a non-positive year
        """
        first, last = _month_bounds(year, month)
        events = self.list_events(start_date=first, end_date=last)

        income, expenses = _split(events)
        income_breakdown = _breakdown(income)
        expense_breakdown = _breakdown(expenses)
        total_income = _total(income)
        total_expenses = _total(expenses)
        net_profit = total_income - total_expenses

        other_expenses = {
            category: amount
            for category, amount in expense_breakdown.items()
            if category not in (DOCTOR_CUT_CATEGORY, SECRETARY_CUT_CATEGORY)
        }
        month_name = calendar.month_name[month]
        profit_margin = (
            (net_profit / total_income * 100).quantize(Decimal("0.01"))
            if total_income > 0
            else ZERO
        )

        logger.info(
            "Monthly report generated",
            extra={
                "context": {
                    "year": year,
                    "month": month,
                    "events": len(events),
                    "net_profit": str(net_profit),
                }
            },
        )
        return {
            "year": year,
            "month": month,
            "month_name": month_name,
            "period": f"{month_name} {year}",
            "income": {
                "total": total_income,
                "breakdown": income_breakdown,
                "in_clinic": income_breakdown.get(
                    INCOME_CATEGORIES[SessionType.IN_CLINIC], ZERO
                ),
                "online": income_breakdown.get(
                    INCOME_CATEGORIES[SessionType.ONLINE], ZERO
                ),
                "count": len(income),
            },
            "expenses": {
                "total": total_expenses,
                "breakdown": expense_breakdown,
                "doctor_cuts": expense_breakdown.get(DOCTOR_CUT_CATEGORY, ZERO),
                "secretary_cuts": expense_breakdown.get(SECRETARY_CUT_CATEGORY, ZERO),
                "other": {
                    "total": sum(other_expenses.values(), ZERO),
                    "breakdown": other_expenses,
                },
                "count": len(expenses),
            },
            "net_profit": net_profit,
            "profit_margin": profit_margin,
            "summary": {
                "total_days_with_activity": len({e.event_date for e in events}),
                "total_events": len(events),
            },
        }

    def doctor_cuts(self, year: int, month: int) -> Dict[str, Any]:
        """
        What the clinic owes the doctor for one month.

        Every DOCTOR_CUT expense of the month is listed newest first, with
        the session type and percent of the appointment it was cut from.
        Events whose appointment no longer resolves report ``"Unknown"``.

        Raises:
            ValidationError: month outside 1-12 or a non-positive year
        """
        first, last = _month_bounds(year, month)
        with self.store.transaction() as tx:
            events = tx.financial_events.search(
                event_type=EventType.EXPENSE,
                category=DOCTOR_CUT_CATEGORY,
                start_date=first,
                end_date=last,
            )
            appointments = {
                e.reference_id: tx.appointments.get_by_id(e.reference_id)
                for e in events
                if e.reference_id is not None
            }

        breakdown = {
            SessionType.IN_CLINIC: {"total": ZERO, "count": 0},
            SessionType.ONLINE: {"total": ZERO, "count": 0},
        }
        sessions = []
        for event in events:
            appointment = appointments.get(event.reference_id)
            session_type = appointment.session_type if appointment else None
            if session_type in breakdown:
                breakdown[session_type]["total"] += event.amount
                breakdown[session_type]["count"] += 1
            sessions.append(
                {
                    "id": event.id,
                    "date": event.event_date,
                    "session_type": session_type.value if session_type else "Unknown",
                    "cut_percent": appointment.doctor_cut_percent if appointment else None,
                    "amount": event.amount,
                    "appointment_id": event.reference_id,
                }
            )

        period = f"{calendar.month_name[month]} {year}"
        total_owed = _total(events)
        logger.info(
            "Doctor cut report generated",
            extra={
                "context": {
                    "period": period,
                    "sessions": len(sessions),
                    "total_owed": str(total_owed),
                }
            },
        )
        return {
            "month": f"{year:04d}-{month:02d}",
            "period": period,
            "total_owed": total_owed,
            "session_count": len(sessions),
            "breakdown": {
                "in_clinic": breakdown[SessionType.IN_CLINIC],
                "online": breakdown[SessionType.ONLINE],
            },
            "sessions": sessions,
        }
