"""
Abstract interfaces for repositories following Interface Segregation Principle.

These interfaces define contracts without implementation details. The core
services only ever talk to an IClinicStore, so the SQLAlchemy and in-memory
adapters are interchangeable.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from typing import ContextManager, List, Optional

from .entities import Appointment, EventType, FinancialEvent


class IAppointmentReader(ABC):
    """Interface for appointment read operations."""

    @abstractmethod
    def get_by_id(self, appointment_id: int) -> Optional[Appointment]:
        """Get appointment by ID."""
        pass

    @abstractmethod
    def has_conflict(
        self,
        clinician_id: int,
        start_at: datetime,
        end_at: datetime,
        exclude_id: Optional[int] = None,
    ) -> bool:
        """True if a non-cancelled appointment of the clinician overlaps [start_at, end_at)."""
        pass

    @abstractmethod
    def get_last_paid(
        self, patient_id: int, exclude_id: Optional[int] = None
    ) -> Optional[Appointment]:
        """Most recent PAID appointment of the patient by start time."""
        pass

    @abstractmethod
    def count_paid(self, patient_id: int, exclude_id: Optional[int] = None) -> int:
        """Number of PAID appointments of the patient."""
        pass

    @abstractmethod
    def list_by_date(self, day: date) -> List[Appointment]:
        """Appointments starting on the given calendar day, ordered by start."""
        pass

    @abstractmethod
    def list_for_patient(self, patient_id: int) -> List[Appointment]:
        """All appointments of a patient, newest first."""
        pass


class IAppointmentWriter(ABC):
    """Interface for appointment write operations."""

    @abstractmethod
    def create(self, appointment: Appointment) -> Appointment:
        """Insert and return the appointment with its generated id."""
        pass

    @abstractmethod
    def update(self, appointment: Appointment) -> Appointment:
        """Persist changes of an existing appointment."""
        pass

    @abstractmethod
    def delete(self, appointment_id: int) -> bool:
        """Delete an appointment row. Returns False if it did not exist."""
        pass


class IAppointmentRepository(IAppointmentReader, IAppointmentWriter):
    """Complete appointment repository interface."""

    pass


class IFinancialEventReader(ABC):
    """Interface for ledger read operations."""

    @abstractmethod
    def has_income(self, appointment_id: int) -> bool:
        """True if an INCOME event references the appointment."""
        pass

    @abstractmethod
    def get_income(self, appointment_id: int) -> Optional[FinancialEvent]:
        """The INCOME event of the appointment, if any."""
        pass

    @abstractmethod
    def list_for_appointment(self, appointment_id: int) -> List[FinancialEvent]:
        """Every event referencing the appointment, in insertion order."""
        pass

    @abstractmethod
    def search(
        self,
        event_type: Optional[EventType] = None,
        category: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[FinancialEvent]:
        """Events matching all given filters (dates inclusive), newest first."""
        pass


class IFinancialEventWriter(ABC):
    """Interface for ledger write operations. Events are append-only."""

    @abstractmethod
    def add(self, event: FinancialEvent) -> FinancialEvent:
        """Insert and return the event with its generated id."""
        pass

    @abstractmethod
    def add_income_once(self, event: FinancialEvent) -> Optional[FinancialEvent]:
        """Insert an INCOME event unless one already references the same
        appointment. Returns None when it already existed."""
        pass

    @abstractmethod
    def delete_for_appointment(self, appointment_id: int) -> int:
        """Delete every event referencing the appointment. Returns the count."""
        pass


class IFinancialEventRepository(IFinancialEventReader, IFinancialEventWriter):
    """Complete ledger repository interface."""

    pass


@dataclass
class ClinicTransaction:
    """Repositories bound to one atomic unit of work."""

    appointments: IAppointmentRepository
    financial_events: IFinancialEventRepository


class IClinicStore(ABC):
    """Storage engine behind one behavioral contract.

    ``transaction()`` commits when the block exits normally and rolls back
    every write made inside it when the block raises.
    """

    @abstractmethod
    def transaction(self) -> ContextManager[ClinicTransaction]:
        pass
