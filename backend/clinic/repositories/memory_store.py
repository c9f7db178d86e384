"""
In-memory store: serialized execution with snapshot rollback.

Each transaction takes the store lock, works on a deep copy of the committed
state and publishes it only when the block exits normally. An exception
discards the copy, so a failed transaction leaves no trace.
"""

import copy
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Dict, Iterator, List, Optional

from clinic.domain.entities import (
    Appointment,
    EventType,
    FinancialEvent,
    PaymentStatus,
    ReferenceType,
)
from clinic.domain.interfaces import (
    ClinicTransaction,
    IAppointmentRepository,
    IClinicStore,
    IFinancialEventRepository,
)
from clinic.services.conflict_detector import intervals_overlap


@dataclass
class _State:
    appointments: Dict[int, Appointment] = field(default_factory=dict)
    events: Dict[int, FinancialEvent] = field(default_factory=dict)
    next_appointment_id: int = 1
    next_event_id: int = 1


class InMemoryAppointmentRepository(IAppointmentRepository):
    def __init__(self, state: _State):
        self.state = state

    def get_by_id(self, appointment_id: int) -> Optional[Appointment]:
        appointment = self.state.appointments.get(appointment_id)
        return replace(appointment) if appointment else None

    def has_conflict(self, clinician_id, start_at, end_at, exclude_id=None) -> bool:
        return any(
            a.clinician_id == clinician_id
            and not a.is_cancelled
            and a.id != exclude_id
            and intervals_overlap(a.start_at, a.end_at, start_at, end_at)
            for a in self.state.appointments.values()
        )

    def _paid(self, patient_id: int, exclude_id: Optional[int]) -> List[Appointment]:
        return [
            a
            for a in self.state.appointments.values()
            if a.patient_id == patient_id
            and a.payment_status == PaymentStatus.PAID
            and a.id != exclude_id
        ]

    def get_last_paid(self, patient_id, exclude_id=None) -> Optional[Appointment]:
        paid = self._paid(patient_id, exclude_id)
        if not paid:
            return None
        return replace(max(paid, key=lambda a: (a.start_at, a.id)))

    def count_paid(self, patient_id, exclude_id=None) -> int:
        return len(self._paid(patient_id, exclude_id))

    def list_by_date(self, day: date) -> List[Appointment]:
        rows = [a for a in self.state.appointments.values() if a.start_at.date() == day]
        return [replace(a) for a in sorted(rows, key=lambda a: (a.start_at, a.id))]

    def list_for_patient(self, patient_id: int) -> List[Appointment]:
        rows = [a for a in self.state.appointments.values() if a.patient_id == patient_id]
        return [
            replace(a)
            for a in sorted(rows, key=lambda a: (a.start_at, a.id), reverse=True)
        ]

    def create(self, appointment: Appointment) -> Appointment:
        now = datetime.now()
        stored = replace(
            appointment, id=self.state.next_appointment_id, created_at=now
        )
        self.state.appointments[stored.id] = stored
        self.state.next_appointment_id += 1
        return replace(stored)

    def update(self, appointment: Appointment) -> Appointment:
        if appointment.id not in self.state.appointments:
            raise LookupError(f"Appointment {appointment.id} does not exist")
        stored = replace(appointment, updated_at=datetime.now())
        self.state.appointments[stored.id] = stored
        return replace(stored)

    def delete(self, appointment_id: int) -> bool:
        return self.state.appointments.pop(appointment_id, None) is not None


class InMemoryFinancialEventRepository(IFinancialEventRepository):
    def __init__(self, state: _State):
        self.state = state

    def _for_appointment(self, appointment_id: int) -> List[FinancialEvent]:
        return [
            e
            for e in sorted(self.state.events.values(), key=lambda e: e.id)
            if e.reference_type == ReferenceType.APPOINTMENT
            and e.reference_id == appointment_id
        ]

    def has_income(self, appointment_id: int) -> bool:
        return self.get_income(appointment_id) is not None

    def get_income(self, appointment_id: int) -> Optional[FinancialEvent]:
        for event in self._for_appointment(appointment_id):
            if event.is_income:
                return replace(event)
        return None

    def list_for_appointment(self, appointment_id: int) -> List[FinancialEvent]:
        return [replace(e) for e in self._for_appointment(appointment_id)]

    def search(self, event_type=None, category=None, start_date=None, end_date=None):
        rows = []
        for event in self.state.events.values():
            if event_type is not None and event.event_type != EventType(event_type):
                continue
            if category and event.category != category:
                continue
            if start_date is not None and event.event_date < start_date:
                continue
            if end_date is not None and event.event_date > end_date:
                continue
            rows.append(replace(event))
        return sorted(rows, key=lambda e: (e.event_date, e.id), reverse=True)

    def add(self, event: FinancialEvent) -> FinancialEvent:
        if event.is_income and event.reference_id is not None:
            duplicate = any(
                e.is_income
                and e.reference_type == event.reference_type
                and e.reference_id == event.reference_id
                for e in self.state.events.values()
            )
            if duplicate:
                raise ValueError(
                    "Unique violation: income already recorded for "
                    f"{event.reference_type}:{event.reference_id}"
                )
        stored = replace(event, id=self.state.next_event_id, created_at=datetime.now())
        self.state.events[stored.id] = stored
        self.state.next_event_id += 1
        return replace(stored)

    def add_income_once(self, event: FinancialEvent) -> Optional[FinancialEvent]:
        if event.event_type != EventType.INCOME:
            raise ValueError("add_income_once only accepts INCOME events")
        if self.has_income(event.reference_id):
            return None
        return self.add(event)

    def delete_for_appointment(self, appointment_id: int) -> int:
        doomed = [e.id for e in self._for_appointment(appointment_id)]
        for event_id in doomed:
            del self.state.events[event_id]
        return len(doomed)


class InMemoryClinicStore(IClinicStore):
    def __init__(self):
        self._state = _State()
        self._lock = threading.RLock()

    @contextmanager
    def transaction(self) -> Iterator[ClinicTransaction]:
        with self._lock:
            working = copy.deepcopy(self._state)
            yield ClinicTransaction(
                appointments=InMemoryAppointmentRepository(working),
                financial_events=InMemoryFinancialEventRepository(working),
            )
            self._state = working
