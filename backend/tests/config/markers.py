"""
Pytest markers and configuration for the clinic ledger tests.

Marker definitions and collection hooks are kept here and pulled into
conftest.py so test categorization stays consistent across the suite.
"""

import pytest


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "api: mark test as API endpoint test")
    config.addinivalue_line("markers", "services: mark test as service layer test")
    config.addinivalue_line("markers", "repositories: mark test as repository test")
    config.addinivalue_line("markers", "ledger: mark test as ledger-related")
    config.addinivalue_line("markers", "appointment: mark test as appointment-related")
    config.addinivalue_line("markers", "postgres: mark test as requiring PostgreSQL")


def pytest_collection_modifyitems(config, items):
    """Modify test items during collection."""
    for item in items:
        path = str(item.path)

        # Add markers based on test file location
        if "unit" in path:
            item.add_marker(pytest.mark.unit)

        if "integration" in path:
            item.add_marker(pytest.mark.integration)

        if "api" in path:
            item.add_marker(pytest.mark.api)

        if "service" in path or "service" in item.name:
            item.add_marker(pytest.mark.services)

        if "store" in path or "repo" in path:
            item.add_marker(pytest.mark.repositories)

        if "ledger" in path or "ledger" in item.name or "revenue" in path:
            item.add_marker(pytest.mark.ledger)

        if "appointment" in path or "appointment" in item.name:
            item.add_marker(pytest.mark.appointment)
