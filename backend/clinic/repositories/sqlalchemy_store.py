"""
SQLAlchemy store: one Session per transaction.

Works for both supported engines. On PostgreSQL the session runs a regular
multi-statement transaction; on SQLite the same session serializes writes
on its single connection. Either way every write inside ``transaction()``
is committed together or rolled back together.
"""

import logging
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from sqlalchemy.orm import Session

from clinic.db.session import SessionLocal
from clinic.domain.interfaces import ClinicTransaction, IClinicStore
from clinic.repositories.appointment_repo import AppointmentRepository
from clinic.repositories.financial_event_repo import FinancialEventRepository

logger = logging.getLogger(__name__)


class SqlAlchemyClinicStore(IClinicStore):
    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        self.session_factory = session_factory or SessionLocal

    @contextmanager
    def transaction(self) -> Iterator[ClinicTransaction]:
        db = self.session_factory()
        try:
            yield ClinicTransaction(
                appointments=AppointmentRepository(db),
                financial_events=FinancialEventRepository(db),
            )
            db.commit()
        except Exception:
            db.rollback()
            logger.debug("Store transaction rolled back", exc_info=True)
            raise
        finally:
            db.close()
