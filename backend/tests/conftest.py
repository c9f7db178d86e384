"""
Central pytest configuration for the clinic ledger tests.

This file provides common fixtures, test markers, and setup
for both unit and integration tests.
"""

import os
from datetime import datetime

import pytest

# Test database configuration (set early so import-time config uses it)
TEST_DATABASE_URL = "sqlite://"  # Shared in-memory SQLite for fast tests
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["TESTING"] = "true"
os.environ["LOG_TO_FILE"] = "0"
os.environ["TZ"] = "UTC"
os.environ["CLINIC_OPEN_DAYS"] = "sunday,tuesday,wednesday,saturday"
os.environ["IN_CLINIC_RATE"] = "15000"
os.environ["ONLINE_RATE"] = "20000"
os.environ["FREE_RETURN_WINDOW_DAYS"] = "10"

from clinic.db.session import SessionLocal, create_tables, drop_tables  # noqa: E402
from clinic.domain.clock import FixedClock  # noqa: E402
from clinic.repositories.memory_store import InMemoryClinicStore  # noqa: E402
from clinic.repositories.sqlalchemy_store import SqlAlchemyClinicStore  # noqa: E402
from clinic.services.appointment_service import AppointmentService  # noqa: E402
from clinic.services.ledger_report_service import LedgerReportService  # noqa: E402
from tests.config.markers import (  # noqa: E402,F401
    pytest_collection_modifyitems,
    pytest_configure,
)
from tests.factories.appointment_factories import AppointmentRequestFactory  # noqa: E402

# =====================================================
# STORE FIXTURES
# =====================================================


@pytest.fixture
def memory_store():
    """Fresh in-memory store."""
    return InMemoryClinicStore()


@pytest.fixture
def sqlalchemy_store():
    """SQLAlchemy store on a freshly created in-memory SQLite schema."""
    drop_tables()
    create_tables()
    yield SqlAlchemyClinicStore()
    drop_tables()


@pytest.fixture
def db_session(sqlalchemy_store):
    """Raw session on the same database, for direct assertions."""
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture(params=["memory", "sqlalchemy"])
def store(request):
    """Runs the test once against each store adapter."""
    return request.getfixturevalue(f"{request.param}_store")


# =====================================================
# SERVICE FIXTURES
# =====================================================


@pytest.fixture
def clock():
    """Clock pinned to Wednesday 2025-01-15 09:00."""
    return FixedClock(datetime(2025, 1, 15, 9, 0))


@pytest.fixture
def service(store, clock):
    return AppointmentService(store, clock=clock)


@pytest.fixture
def reports(store):
    return LedgerReportService(store)


@pytest.fixture
def factory():
    return AppointmentRequestFactory


# =====================================================
# FLASK FIXTURES
# =====================================================


@pytest.fixture
def app(sqlalchemy_store, clock):
    from clinic.main import create_app

    flask_app = create_app(store=sqlalchemy_store, clock=clock)
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()
