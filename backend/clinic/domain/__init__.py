"""
Domain package - Pure business logic layer.

This package contains:
- entities.py: Domain entities and enumerations
- calendar.py: Calendar date arithmetic
- clock.py: "Now" and "today" sources
- interfaces.py: Repository and store contracts
"""

from .entities import (
    Appointment,
    AppointmentStatus,
    AutoCut,
    DoctorCutRule,
    EventType,
    FinancialEvent,
    OverrideCut,
    PaymentStatus,
    ReferenceType,
    SessionType,
)
from .interfaces import (
    ClinicTransaction,
    IAppointmentReader,
    IAppointmentRepository,
    IAppointmentWriter,
    IClinicStore,
    IFinancialEventReader,
    IFinancialEventRepository,
    IFinancialEventWriter,
)

__all__ = [
    # Domain entities
    "Appointment",
    "FinancialEvent",
    "AutoCut",
    "OverrideCut",
    "DoctorCutRule",
    # Enumerations
    "AppointmentStatus",
    "EventType",
    "PaymentStatus",
    "ReferenceType",
    "SessionType",
    # Repository interfaces
    "IAppointmentRepository",
    "IFinancialEventRepository",
    "IClinicStore",
    "ClinicTransaction",
    # Segregated interfaces
    "IAppointmentReader",
    "IAppointmentWriter",
    "IFinancialEventReader",
    "IFinancialEventWriter",
]
