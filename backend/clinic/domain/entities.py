"""
Domain entities - Pure business logic, no framework dependencies.

Entities are independent of:
- Database implementation (SQLAlchemy)
- HTTP frameworks (Flask)
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from clinic.core.exceptions import ValidationError

DOCTOR_CUT_MIN = 10
DOCTOR_CUT_MAX = 20


class SessionType(str, Enum):
    IN_CLINIC = "IN_CLINIC"
    ONLINE = "ONLINE"


class PaymentStatus(str, Enum):
    PAID = "PAID"
    UNPAID = "UNPAID"
    FREE_RETURN = "FREE_RETURN"


class AppointmentStatus(str, Enum):
    SCHEDULED = "scheduled"
    ARRIVED = "arrived"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class EventType(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class ReferenceType(str, Enum):
    APPOINTMENT = "APPOINTMENT"
    PATIENT = "PATIENT"
    EXPENSE = "EXPENSE"
    SYSTEM = "SYSTEM"


def coerce_enum(enum_cls, value, field_name: str):
    """Return ``value`` as a member of ``enum_cls`` or raise ValidationError."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(
            f"{field_name} must be one of: {allowed}",
            {"field": field_name, "value": value},
        ) from None


def validate_doctor_cut_percent(percent) -> int:
    """Check that ``percent`` is an integer within [10, 20] and return it."""
    if isinstance(percent, bool) or not isinstance(percent, (int, float, Decimal)):
        raise ValidationError(
            f"doctor_cut_percent must be a number between {DOCTOR_CUT_MIN} and {DOCTOR_CUT_MAX}",
            {"field": "doctor_cut_percent", "value": percent},
        )
    if percent != int(percent):
        raise ValidationError(
            "doctor_cut_percent must be a whole number",
            {"field": "doctor_cut_percent", "value": percent},
        )
    if not DOCTOR_CUT_MIN <= percent <= DOCTOR_CUT_MAX:
        raise ValidationError(
            f"doctor_cut_percent must be a number between {DOCTOR_CUT_MIN} and {DOCTOR_CUT_MAX}",
            {"field": "doctor_cut_percent", "value": percent},
        )
    return int(percent)


@dataclass(frozen=True)
class AutoCut:
    """Doctor cut derived from the patient's PAID visit history."""


@dataclass(frozen=True)
class OverrideCut:
    """Doctor cut explicitly chosen by the caller."""

    percent: int

    def __post_init__(self):
        object.__setattr__(self, "percent", validate_doctor_cut_percent(self.percent))


DoctorCutRule = Union[AutoCut, OverrideCut]


@dataclass
class Appointment:
    """Domain entity for a clinical appointment."""

    patient_id: int = 0
    clinician_id: int = 0
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    session_type: SessionType = SessionType.IN_CLINIC
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    free_return_reason: Optional[str] = None
    doctor_cut_percent: Optional[int] = None
    doctor_involved: bool = True
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        """Validate business rules."""
        if not self.patient_id or self.patient_id <= 0:
            raise ValidationError("Valid patient_id is required")
        if not self.clinician_id or self.clinician_id <= 0:
            raise ValidationError("Valid clinician_id is required")
        if self.start_at is None or self.end_at is None:
            raise ValidationError("start_at and end_at are required")
        if self.start_at >= self.end_at:
            raise ValidationError("Start time must be before end time")

        self.session_type = coerce_enum(SessionType, self.session_type, "session_type")
        self.payment_status = coerce_enum(
            PaymentStatus, self.payment_status, "payment_status"
        )
        self.status = coerce_enum(AppointmentStatus, self.status, "status")
        if self.doctor_cut_percent is not None:
            self.doctor_cut_percent = validate_doctor_cut_percent(
                self.doctor_cut_percent
            )
        self.doctor_involved = bool(self.doctor_involved)

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID

    @property
    def is_cancelled(self) -> bool:
        return self.status == AppointmentStatus.CANCELLED

    @property
    def duration_minutes(self) -> int:
        delta = self.end_at - self.start_at
        return int(delta.total_seconds() / 60)


@dataclass
class FinancialEvent:
    """Immutable ledger entry. Amounts are whole currency units."""

    event_date: date
    event_type: EventType
    category: str
    amount: Decimal
    description: str = ""
    reference_type: Optional[ReferenceType] = None
    reference_id: Optional[int] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = field(default=None, compare=False)

    def __post_init__(self):
        """Validate business rules."""
        self.event_type = coerce_enum(EventType, self.event_type, "event_type")
        if self.reference_type is not None:
            self.reference_type = coerce_enum(
                ReferenceType, self.reference_type, "reference_type"
            )
        if not self.category:
            raise ValidationError("Category is required")
        self.amount = Decimal(self.amount)
        if self.amount <= 0:
            raise ValidationError("Amount must be positive")

    @property
    def is_income(self) -> bool:
        return self.event_type == EventType.INCOME
