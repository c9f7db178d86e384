# Repositories package initialization
# Two IClinicStore adapters: SQLAlchemy (SQLite/PostgreSQL) and in-memory

from .memory_store import InMemoryClinicStore
from .sqlalchemy_store import SqlAlchemyClinicStore

__all__ = [
    "InMemoryClinicStore",
    "SqlAlchemyClinicStore",
]
