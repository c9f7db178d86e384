"""
Appointment repository implementation backed by SQLAlchemy.
"""

from datetime import date, datetime, time, timedelta
from typing import List, Optional

from sqlalchemy import exists, func, select
from sqlalchemy.orm import Session

from clinic.db.base import Appointment as DbAppointment
from clinic.domain.entities import Appointment as DomainAppointment
from clinic.domain.entities import AppointmentStatus, PaymentStatus
from clinic.domain.interfaces import IAppointmentRepository


class AppointmentRepository(IAppointmentRepository):
    """Repository for Appointment persistence operations.

    Maps between the ``appointments`` table and the domain entity. Never
    commits: the surrounding store transaction owns the commit.
    """

    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    def get_by_id(self, appointment_id: int) -> Optional[DomainAppointment]:
        db_appointment = self.db.get(DbAppointment, appointment_id)
        return self._to_domain(db_appointment) if db_appointment else None

    def has_conflict(
        self,
        clinician_id: int,
        start_at: datetime,
        end_at: datetime,
        exclude_id: Optional[int] = None,
    ) -> bool:
        conditions = [
            DbAppointment.clinician_id == clinician_id,
            DbAppointment.status != AppointmentStatus.CANCELLED.value,
            DbAppointment.start_at < end_at,
            DbAppointment.end_at > start_at,
        ]
        if exclude_id is not None:
            conditions.append(DbAppointment.id != exclude_id)
        return bool(self.db.scalar(select(exists().where(*conditions))))

    def get_last_paid(
        self, patient_id: int, exclude_id: Optional[int] = None
    ) -> Optional[DomainAppointment]:
        query = self.db.query(DbAppointment).filter(
            DbAppointment.patient_id == patient_id,
            DbAppointment.payment_status == PaymentStatus.PAID.value,
        )
        if exclude_id is not None:
            query = query.filter(DbAppointment.id != exclude_id)
        db_appointment = query.order_by(
            DbAppointment.start_at.desc(), DbAppointment.id.desc()
        ).first()
        return self._to_domain(db_appointment) if db_appointment else None

    def count_paid(self, patient_id: int, exclude_id: Optional[int] = None) -> int:
        query = select(func.count(DbAppointment.id)).where(
            DbAppointment.patient_id == patient_id,
            DbAppointment.payment_status == PaymentStatus.PAID.value,
        )
        if exclude_id is not None:
            query = query.where(DbAppointment.id != exclude_id)
        return int(self.db.scalar(query) or 0)

    def list_by_date(self, day: date) -> List[DomainAppointment]:
        start_of_day = datetime.combine(day, time.min)
        end_of_day = start_of_day + timedelta(days=1)
        rows = (
            self.db.query(DbAppointment)
            .filter(
                DbAppointment.start_at >= start_of_day,
                DbAppointment.start_at < end_of_day,
            )
            .order_by(DbAppointment.start_at.asc(), DbAppointment.id.asc())
            .all()
        )
        return [self._to_domain(row) for row in rows]

    def list_for_patient(self, patient_id: int) -> List[DomainAppointment]:
        rows = (
            self.db.query(DbAppointment)
            .filter(DbAppointment.patient_id == patient_id)
            .order_by(DbAppointment.start_at.desc(), DbAppointment.id.desc())
            .all()
        )
        return [self._to_domain(row) for row in rows]

    def create(self, appointment: DomainAppointment) -> DomainAppointment:
        db_appointment = DbAppointment()
        self._apply(db_appointment, appointment)
        self.db.add(db_appointment)
        self.db.flush()
        self.db.refresh(db_appointment)
        return self._to_domain(db_appointment)

    def update(self, appointment: DomainAppointment) -> DomainAppointment:
        db_appointment = self.db.get(DbAppointment, appointment.id)
        if db_appointment is None:
            raise LookupError(f"Appointment {appointment.id} does not exist")
        self._apply(db_appointment, appointment)
        self.db.flush()
        return self._to_domain(db_appointment)

    def delete(self, appointment_id: int) -> bool:
        db_appointment = self.db.get(DbAppointment, appointment_id)
        if db_appointment is None:
            return False
        self.db.delete(db_appointment)
        self.db.flush()
        return True

    @staticmethod
    def _apply(db_appointment: DbAppointment, appointment: DomainAppointment) -> None:
        db_appointment.patient_id = appointment.patient_id
        db_appointment.clinician_id = appointment.clinician_id
        db_appointment.start_at = appointment.start_at
        db_appointment.end_at = appointment.end_at
        db_appointment.status = appointment.status.value
        db_appointment.session_type = appointment.session_type.value
        db_appointment.payment_status = appointment.payment_status.value
        db_appointment.free_return_reason = appointment.free_return_reason
        db_appointment.doctor_cut_percent = appointment.doctor_cut_percent
        db_appointment.doctor_involved = appointment.doctor_involved

    @staticmethod
    def _to_domain(db_appointment: DbAppointment) -> DomainAppointment:
        """Convert database model to domain entity."""
        return DomainAppointment(
            id=db_appointment.id,
            patient_id=db_appointment.patient_id,
            clinician_id=db_appointment.clinician_id,
            start_at=db_appointment.start_at,
            end_at=db_appointment.end_at,
            status=db_appointment.status,
            session_type=db_appointment.session_type,
            payment_status=db_appointment.payment_status,
            free_return_reason=db_appointment.free_return_reason,
            doctor_cut_percent=db_appointment.doctor_cut_percent,
            doctor_involved=db_appointment.doctor_involved,
            created_at=db_appointment.created_at,
            updated_at=db_appointment.updated_at,
        )
