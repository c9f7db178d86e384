"""
Appointment controller - HTTP endpoints for scheduling and payments.

Routes only translate HTTP to service calls. Business errors raised by the
services are ClinicError subclasses and are turned into JSON responses by
the application error handler.
"""

import logging
from dataclasses import asdict
from typing import Any, Dict, List

from flask import Blueprint, current_app, request

from clinic.core.api_utils import api_response, get_json_payload
from clinic.core.exceptions import ValidationError
from clinic.domain.calendar import to_calendar_date
from clinic.schemas.dtos import (
    AppointmentCreateRequest,
    AppointmentResponse,
    AppointmentUpdateRequest,
    FinancialEventResponse,
    PaymentUpdateRequest,
)

logger = logging.getLogger(__name__)

appointment_bp = Blueprint("appointments", __name__, url_prefix="/api/appointments")


def _service():
    return current_app.extensions["clinic"]["appointments"]


def appointment_to_dict(appointment) -> Dict[str, Any]:
    return asdict(AppointmentResponse.from_domain(appointment))


def events_to_dicts(events) -> List[Dict[str, Any]]:
    return [asdict(FinancialEventResponse.from_domain(e)) for e in events]


def _result_to_dict(result) -> Dict[str, Any]:
    return {
        "appointment": appointment_to_dict(result.appointment),
        "generated_events": events_to_dicts(result.generated_events),
        "note": result.note,
        "ledger_error": result.ledger_error,
    }


def _write_message(base: str, result) -> str:
    if result.ledger_error:
        return f"{base}, but ledger generation failed"
    return base


@appointment_bp.route("", methods=["POST"])
def create_appointment():
    """Create an appointment. PAID appointments get their ledger at once."""
    create_request = AppointmentCreateRequest.from_dict(get_json_payload())
    result = _service().create_appointment(create_request)
    return api_response(
        True,
        _write_message("Appointment created successfully", result),
        _result_to_dict(result),
        201,
    )


@appointment_bp.route("", methods=["GET"])
def list_appointments():
    """List the appointments of one day (``?date=YYYY-MM-DD``)."""
    raw_date = request.args.get("date")
    if not raw_date:
        raise ValidationError("date parameter is required (format: YYYY-MM-DD)")
    appointments = _service().list_appointments(to_calendar_date(raw_date))
    return api_response(
        True,
        f"{len(appointments)} appointments found",
        [appointment_to_dict(a) for a in appointments],
    )


@appointment_bp.route("/<int:appointment_id>", methods=["GET"])
def get_appointment(appointment_id: int):
    appointment = _service().get_appointment(appointment_id)
    return api_response(True, "Appointment found", appointment_to_dict(appointment))


@appointment_bp.route("/<int:appointment_id>", methods=["PUT"])
def update_appointment(appointment_id: int):
    """Reschedule or edit an appointment."""
    update_request = AppointmentUpdateRequest.from_dict(get_json_payload())
    result = _service().update_appointment(appointment_id, update_request)
    return api_response(
        True,
        _write_message("Appointment updated successfully", result),
        _result_to_dict(result),
    )


@appointment_bp.route("/<int:appointment_id>", methods=["DELETE"])
def delete_appointment(appointment_id: int):
    """Delete an appointment and every ledger event referencing it."""
    result = _service().delete_appointment(appointment_id)
    return api_response(
        True,
        "Appointment deleted successfully",
        {
            "appointment_id": result.appointment_id,
            "deleted_event_count": result.deleted_event_count,
        },
    )


@appointment_bp.route("/<int:appointment_id>/payment", methods=["PATCH"])
def update_payment(appointment_id: int):
    """Change payment status; a transition into PAID writes the ledger once."""
    payment_request = PaymentUpdateRequest.from_dict(get_json_payload())
    result = _service().update_payment(appointment_id, payment_request)
    data = _result_to_dict(result)
    data["previous_payment_status"] = result.previous_payment_status.value
    return api_response(
        True,
        _write_message("Payment status updated successfully", result),
        data,
    )


@appointment_bp.route("/<int:appointment_id>/income", methods=["GET"])
def get_income_event(appointment_id: int):
    event = _service().get_income_event(appointment_id)
    return api_response(
        True, "Income event found", asdict(FinancialEventResponse.from_domain(event))
    )


@appointment_bp.route("/<int:appointment_id>/ledger", methods=["GET"])
def get_ledger(appointment_id: int):
    events = _service().get_ledger(appointment_id)
    return api_response(True, f"{len(events)} ledger events", events_to_dicts(events))


@appointment_bp.route("/<int:appointment_id>/ledger/reconcile", methods=["POST"])
def reconcile_ledger(appointment_id: int):
    """Write the ledger of a PAID appointment whose ledger write failed."""
    result = _service().reconcile_ledger(appointment_id)
    message = "Ledger events generated" if result.created else result.note
    return api_response(
        True,
        message,
        {"created": result.created, "events": events_to_dicts(result.events)},
    )


@appointment_bp.route("/patient/<int:patient_id>", methods=["GET"])
def list_patient_appointments(patient_id: int):
    """Every appointment of one patient, newest first."""
    appointments = _service().list_patient_appointments(patient_id)
    return api_response(
        True,
        f"{len(appointments)} appointments found",
        [appointment_to_dict(a) for a in appointments],
    )


@appointment_bp.route("/patient/<int:patient_id>/last-paid", methods=["GET"])
def get_last_paid(patient_id: int):
    appointment = _service().get_last_paid(patient_id)
    if appointment is None:
        return api_response(True, "No paid appointments found", {"last_paid": None})
    return api_response(
        True,
        "Last paid appointment found",
        {
            "last_paid": {
                "id": appointment.id,
                "date": to_calendar_date(appointment.start_at),
                "session_type": appointment.session_type.value,
            }
        },
    )


@appointment_bp.route(
    "/patient/<int:patient_id>/free-return-eligibility", methods=["GET"]
)
def free_return_eligibility(patient_id: int):
    """FREE_RETURN eligibility as of today, or as of ``?date=YYYY-MM-DD``."""
    raw_date = request.args.get("date")
    on = to_calendar_date(raw_date) if raw_date else None
    result = _service().check_free_return_eligibility(patient_id, on=on)
    return api_response(True, result.message, result.to_dict())
