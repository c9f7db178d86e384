"""
API endpoints for the financial ledger.
Read-only: events are only written by the appointment use cases.
"""

import logging
import re

from flask import Blueprint, current_app, request

from clinic.controllers.appointment_controller import events_to_dicts
from clinic.core.api_utils import api_response
from clinic.core.exceptions import ValidationError
from clinic.domain.calendar import to_calendar_date

logger = logging.getLogger(__name__)

MONTH_PATTERN = re.compile(r"^\d{4}-\d{2}$")

financial_events_bp = Blueprint(
    "financial_events", __name__, url_prefix="/api/financial-events"
)


def _reports():
    return current_app.extensions["clinic"]["ledger_reports"]


def _optional_date(name: str):
    raw = request.args.get(name)
    return to_calendar_date(raw) if raw else None


def _required_int(name: str) -> int:
    raw = request.args.get(name)
    if raw is None or raw == "":
        raise ValidationError("year and month parameters are required")
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(
            "Invalid year or month. Month must be 1-12", {name: raw}
        ) from None


@financial_events_bp.route("", methods=["GET"])
def list_financial_events():
    """List ledger events filtered by event_type, category, start_date, end_date."""
    events = _reports().list_events(
        event_type=request.args.get("event_type") or None,
        category=request.args.get("category") or None,
        start_date=_optional_date("start_date"),
        end_date=_optional_date("end_date"),
    )
    return api_response(
        True, f"{len(events)} financial events found", events_to_dicts(events)
    )


@financial_events_bp.route("/daily-summary", methods=["GET"])
def daily_summary():
    """Income, expense and net profit totals for ``?date=YYYY-MM-DD``."""
    raw_date = request.args.get("date")
    if not raw_date:
        raise ValidationError("date parameter is required (format: YYYY-MM-DD)")
    summary = _reports().daily_summary(to_calendar_date(raw_date))
    summary["events"] = {
        key: events_to_dicts(events) for key, events in summary["events"].items()
    }
    return api_response(True, "Daily summary generated", summary)


@financial_events_bp.route("/monthly-report", methods=["GET"])
def monthly_report():
    """Monthly accounting report for ``?year=YYYY&month=M``."""
    report = _reports().monthly_report(_required_int("year"), _required_int("month"))
    return api_response(True, f"Monthly report for {report['period']}", report)


@financial_events_bp.route("/doctor-cuts", methods=["GET"])
def doctor_cuts():
    """Doctor cut payable for ``?month=YYYY-MM`` with a per-session listing."""
    raw_month = request.args.get("month")
    if not raw_month:
        raise ValidationError("month parameter is required (format: YYYY-MM)")
    if not MONTH_PATTERN.match(raw_month):
        raise ValidationError("Invalid month format. Use YYYY-MM", {"month": raw_month})
    year, month = (int(part) for part in raw_month.split("-"))
    report = _reports().doctor_cuts(year, month)
    return api_response(True, f"Doctor cuts for {report['period']}", report)
