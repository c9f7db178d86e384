"""
Data Transfer Objects (DTOs) and validation schemas.

Following SOLID principles:
- Single Responsibility: Each schema validates one specific data contract
- Open/Closed: Schemas can be extended without modification
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from clinic.core.exceptions import ValidationError
from clinic.domain.calendar import parse_timestamp, to_calendar_date
from clinic.domain.entities import (
    AppointmentStatus,
    AutoCut,
    DoctorCutRule,
    OverrideCut,
    PaymentStatus,
    SessionType,
    coerce_enum,
    validate_doctor_cut_percent,
)


def _require_int(data: Dict[str, Any], field_name: str) -> int:
    value = data.get(field_name)
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be an integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(
            f"{field_name} is required and must be an integer",
            {"field": field_name},
        ) from None
    if number <= 0:
        raise ValidationError(f"Valid {field_name} is required")
    return number


def _optional_bool(data: Dict[str, Any], field_name: str) -> Optional[bool]:
    if field_name not in data or data[field_name] is None:
        return None
    value = data[field_name]
    if not isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a boolean")
    return value


def doctor_cut_from_payload(
    data: Dict[str, Any], bare_percent_overrides: bool = False
) -> Optional[DoctorCutRule]:
    """
    Read the doctor cut choice from a request body.

    ``doctor_cut_override: true`` with ``doctor_cut_percent`` selects an
    explicit percent. ``doctor_cut_override: false`` selects the automatic
    tier. Without the flag the caller expressed no choice and None is
    returned, unless ``bare_percent_overrides`` is set, in which case a
    ``doctor_cut_percent`` on its own selects that percent.

    A ``doctor_cut_percent`` present in the body is always range-checked.
    """
    percent = data.get("doctor_cut_percent")
    if percent is not None:
        percent = validate_doctor_cut_percent(percent)

    override = data.get("doctor_cut_override")
    if override is None:
        if bare_percent_overrides and percent is not None:
            return OverrideCut(percent)
        return None
    if not isinstance(override, bool):
        raise ValidationError("doctor_cut_override must be a boolean")
    if not override:
        return AutoCut()
    if percent is None:
        raise ValidationError(
            "doctor_cut_percent is required when doctor_cut_override is true",
            {"field": "doctor_cut_percent"},
        )
    return OverrideCut(percent)


@dataclass
class AppointmentCreateRequest:
    """DTO for appointment creation requests."""

    patient_id: int
    clinician_id: int
    start_at: datetime
    end_at: datetime
    session_type: SessionType
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    free_return_reason: Optional[str] = None
    doctor_cut: DoctorCutRule = AutoCut()
    doctor_involved: bool = True

    def validate(self) -> None:
        """Validate the request data."""
        if not self.patient_id or self.patient_id <= 0:
            raise ValidationError("Valid patient_id is required")
        if not self.clinician_id or self.clinician_id <= 0:
            raise ValidationError("Valid clinician_id is required")
        if self.start_at >= self.end_at:
            raise ValidationError("Start time must be before end time")
        self.session_type = coerce_enum(SessionType, self.session_type, "session_type")
        self.payment_status = coerce_enum(
            PaymentStatus, self.payment_status, "payment_status"
        )
        self.status = coerce_enum(AppointmentStatus, self.status, "status")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppointmentCreateRequest":
        """Build the request from a JSON body."""
        if not data.get("start_at") or not data.get("end_at"):
            raise ValidationError("start_at and end_at are required")
        if not data.get("session_type"):
            raise ValidationError("session_type is required")
        doctor_involved = _optional_bool(data, "doctor_involved")
        request = cls(
            patient_id=_require_int(data, "patient_id"),
            clinician_id=_require_int(data, "clinician_id"),
            start_at=parse_timestamp(data["start_at"]),
            end_at=parse_timestamp(data["end_at"]),
            session_type=data["session_type"],
            payment_status=data.get("payment_status") or PaymentStatus.UNPAID,
            status=data.get("status") or AppointmentStatus.SCHEDULED,
            free_return_reason=data.get("free_return_reason"),
            doctor_cut=doctor_cut_from_payload(data) or AutoCut(),
            doctor_involved=True if doctor_involved is None else doctor_involved,
        )
        request.validate()
        return request


@dataclass
class AppointmentUpdateRequest:
    """DTO for appointment update requests. None means "leave unchanged"."""

    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    status: Optional[AppointmentStatus] = None
    session_type: Optional[SessionType] = None
    payment_status: Optional[PaymentStatus] = None
    free_return_reason: Optional[str] = None
    doctor_cut: Optional[DoctorCutRule] = None
    doctor_involved: Optional[bool] = None

    def validate(self) -> None:
        """Validate the request data."""
        if self.status is not None:
            self.status = coerce_enum(AppointmentStatus, self.status, "status")
        if self.session_type is not None:
            self.session_type = coerce_enum(
                SessionType, self.session_type, "session_type"
            )
        if self.payment_status is not None:
            self.payment_status = coerce_enum(
                PaymentStatus, self.payment_status, "payment_status"
            )
        if self.start_at and self.end_at and self.start_at >= self.end_at:
            raise ValidationError("Start time must be before end time")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppointmentUpdateRequest":
        request = cls(
            start_at=parse_timestamp(data["start_at"]) if data.get("start_at") else None,
            end_at=parse_timestamp(data["end_at"]) if data.get("end_at") else None,
            status=data.get("status"),
            session_type=data.get("session_type"),
            payment_status=data.get("payment_status"),
            free_return_reason=data.get("free_return_reason"),
            doctor_cut=doctor_cut_from_payload(data, bare_percent_overrides=True),
            doctor_involved=_optional_bool(data, "doctor_involved"),
        )
        request.validate()
        return request


@dataclass
class PaymentUpdateRequest:
    """DTO for the payment patch of an appointment."""

    payment_status: PaymentStatus
    free_return_reason: Optional[str] = None
    session_type: Optional[SessionType] = None
    doctor_cut: Optional[DoctorCutRule] = None
    doctor_involved: Optional[bool] = None

    def validate(self) -> None:
        """Validate the request data."""
        if self.payment_status is None:
            raise ValidationError("payment_status is required")
        self.payment_status = coerce_enum(
            PaymentStatus, self.payment_status, "payment_status"
        )
        if self.session_type is not None:
            self.session_type = coerce_enum(
                SessionType, self.session_type, "session_type"
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PaymentUpdateRequest":
        request = cls(
            payment_status=data.get("payment_status"),
            free_return_reason=data.get("free_return_reason"),
            session_type=data.get("session_type"),
            doctor_cut=doctor_cut_from_payload(data),
            doctor_involved=_optional_bool(data, "doctor_involved"),
        )
        request.validate()
        return request


@dataclass
class AppointmentResponse:
    """DTO for appointment API responses."""

    id: int
    patient_id: int
    clinician_id: int
    start_at: datetime
    end_at: datetime
    date: date
    status: str
    session_type: str
    payment_status: str
    free_return_reason: Optional[str]
    doctor_cut_percent: Optional[int]
    doctor_involved: bool
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    @classmethod
    def from_domain(cls, appointment) -> "AppointmentResponse":
        """Create response from domain entity."""
        return cls(
            id=appointment.id,
            patient_id=appointment.patient_id,
            clinician_id=appointment.clinician_id,
            start_at=appointment.start_at,
            end_at=appointment.end_at,
            date=to_calendar_date(appointment.start_at),
            status=appointment.status.value,
            session_type=appointment.session_type.value,
            payment_status=appointment.payment_status.value,
            free_return_reason=appointment.free_return_reason,
            doctor_cut_percent=appointment.doctor_cut_percent,
            doctor_involved=appointment.doctor_involved,
            created_at=appointment.created_at,
            updated_at=appointment.updated_at,
        )


@dataclass
class FinancialEventResponse:
    """DTO for ledger event API responses."""

    id: Optional[int]
    event_date: date
    event_type: str
    category: str
    amount: Decimal
    description: str
    reference_type: Optional[str]
    reference_id: Optional[int]
    created_at: Optional[datetime]

    @classmethod
    def from_domain(cls, event) -> "FinancialEventResponse":
        return cls(
            id=event.id,
            event_date=event.event_date,
            event_type=event.event_type.value,
            category=event.category,
            amount=event.amount,
            description=event.description,
            reference_type=event.reference_type.value if event.reference_type else None,
            reference_id=event.reference_id,
            created_at=event.created_at,
        )
