import logging
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, exists, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from clinic.db.base import FinancialEvent as DbFinancialEvent
from clinic.domain.entities import EventType
from clinic.domain.entities import FinancialEvent as DomainFinancialEvent
from clinic.domain.entities import ReferenceType
from clinic.domain.interfaces import IFinancialEventRepository

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class FinancialEventRepository(IFinancialEventRepository):
    """Repository for ledger (financial_events) operations."""

    def __init__(self, db: Session):
        """
        Initialize the repository with database session.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    def _appointment_filter(self, appointment_id: int) -> list:
        return [
            DbFinancialEvent.reference_type == ReferenceType.APPOINTMENT.value,
            DbFinancialEvent.reference_id == appointment_id,
        ]

    def has_income(self, appointment_id: int) -> bool:
        """
        Check whether an INCOME event already references the appointment.

        Args:
            appointment_id: ID of the appointment

        Returns:
            True if an income event exists
        """
        condition = exists().where(
            *self._appointment_filter(appointment_id),
            DbFinancialEvent.event_type == EventType.INCOME.value,
        )
        return bool(self.db.scalar(select(condition)))

    def get_income(self, appointment_id: int) -> Optional[DomainFinancialEvent]:
        row = (
            self.db.query(DbFinancialEvent)
            .filter(
                *self._appointment_filter(appointment_id),
                DbFinancialEvent.event_type == EventType.INCOME.value,
            )
            .first()
        )
        return self._to_domain(row) if row else None

    def list_for_appointment(self, appointment_id: int) -> List[DomainFinancialEvent]:
        rows = (
            self.db.query(DbFinancialEvent)
            .filter(*self._appointment_filter(appointment_id))
            .order_by(DbFinancialEvent.id.asc())
            .all()
        )
        return [self._to_domain(row) for row in rows]

    def search(
        self,
        event_type: Optional[EventType] = None,
        category: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[DomainFinancialEvent]:
        query = self.db.query(DbFinancialEvent)
        if event_type is not None:
            query = query.filter(DbFinancialEvent.event_type == EventType(event_type).value)
        if category:
            query = query.filter(DbFinancialEvent.category == category)
        if start_date is not None:
            query = query.filter(DbFinancialEvent.event_date >= start_date)
        if end_date is not None:
            query = query.filter(DbFinancialEvent.event_date <= end_date)
        rows = query.order_by(
            DbFinancialEvent.event_date.desc(), DbFinancialEvent.id.desc()
        ).all()
        return [self._to_domain(row) for row in rows]

    def add(self, event: DomainFinancialEvent) -> DomainFinancialEvent:
        """
        Insert a ledger event inside the current transaction.

        Args:
            event: Domain event to persist

        Returns:
            The event with its generated id
        """
        row = DbFinancialEvent(**self._to_values(event))
        self.db.add(row)
        self.db.flush()
        self.db.refresh(row)
        return self._to_domain(row)

    def add_income_once(
        self, event: DomainFinancialEvent
    ) -> Optional[DomainFinancialEvent]:
        """
        Insert an INCOME event guarded by the partial unique index on
        (reference_type, reference_id) WHERE event_type = 'INCOME'.

        The insert is a single ``ON CONFLICT DO NOTHING`` statement, so two
        concurrent PAID transitions cannot both create income.

        Returns:
            The created event, or None if the appointment already had income
        """
        if event.event_type != EventType.INCOME:
            raise ValueError("add_income_once only accepts INCOME events")

        insert = _UPSERT_DIALECTS.get(self.db.get_bind().dialect.name)
        if insert is None:
            # Other engines: check-then-insert, still backed by the unique index
            if self.has_income(event.reference_id):
                return None
            return self.add(event)

        stmt = (
            insert(DbFinancialEvent)
            .values(**self._to_values(event))
            .on_conflict_do_nothing(
                index_elements=["reference_type", "reference_id"],
                index_where=DbFinancialEvent.event_type == EventType.INCOME.value,
            )
            .returning(DbFinancialEvent.id)
        )
        new_id = self.db.execute(stmt).scalar_one_or_none()
        if new_id is None:
            logger.info(
                "Income event already exists, insert skipped",
                extra={"context": {"reference_id": event.reference_id}},
            )
            return None
        row = self.db.get(DbFinancialEvent, new_id)
        return self._to_domain(row)

    def delete_for_appointment(self, appointment_id: int) -> int:
        """
        Delete every event referencing the appointment.

        Returns:
            Number of deleted rows
        """
        result = self.db.execute(
            delete(DbFinancialEvent)
            .where(*self._appointment_filter(appointment_id))
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)

    @staticmethod
    def _to_values(event: DomainFinancialEvent) -> Dict[str, Any]:
        return {
            "event_date": event.event_date,
            "event_type": event.event_type.value,
            "category": event.category,
            "amount": event.amount,
            "description": event.description,
            "reference_type": (
                event.reference_type.value if event.reference_type else None
            ),
            "reference_id": event.reference_id,
        }

    @staticmethod
    def _to_domain(row: DbFinancialEvent) -> DomainFinancialEvent:
        return DomainFinancialEvent(
            id=row.id,
            event_date=row.event_date,
            event_type=row.event_type,
            category=row.category,
            amount=row.amount,
            description=row.description or "",
            reference_type=row.reference_type,
            reference_id=row.reference_id,
            created_at=row.created_at,
        )
