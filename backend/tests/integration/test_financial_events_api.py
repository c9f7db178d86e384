"""
Integration tests for the read-only ledger API.
"""

import pytest

from tests.factories.appointment_factories import MONDAY, SATURDAY, SUNDAY


@pytest.fixture
def seeded(client, factory):
    """In-clinic visits on Jan 4 and 5 (patient 1), online visit on Jan 6 (patient 2)."""
    for start_at, overrides in (
        (SATURDAY, {}),
        (SUNDAY, {}),
        (MONDAY, {"patient_id": 2, "session_type": "ONLINE"}),
    ):
        response = client.post(
            "/api/appointments",
            json=factory.payload(start_at, payment_status="PAID", **overrides),
        )
        assert response.status_code == 201


def test_list_with_filters(client, seeded):
    body = client.get("/api/financial-events?event_type=EXPENSE").get_json()
    assert body["message"] == "4 financial events found"

    body = client.get(
        "/api/financial-events?category=DOCTOR_CUT&start_date=2025-01-05&end_date=2025-01-06"
    ).get_json()
    assert sorted(e["amount"] for e in body["data"]) == [1500, 4000]


def test_list_rejects_bad_input(client):
    assert client.get("/api/financial-events?event_type=REFUND").status_code == 400
    assert client.get("/api/financial-events?start_date=01/04/2025").status_code == 400
    response = client.get(
        "/api/financial-events?start_date=2025-02-01&end_date=2025-01-01"
    )
    assert response.status_code == 400


def test_daily_summary(client, seeded):
    data = client.get("/api/financial-events/daily-summary?date=2025-01-06").get_json()[
        "data"
    ]

    assert data["date"] == "2025-01-06"
    assert data["income"] == {
        "total": 20000,
        "breakdown": {"ONLINE_SESSION": 20000},
        "count": 1,
    }
    assert data["expenses"]["total"] == 6000
    assert data["net_profit"] == 14000
    assert [e["category"] for e in data["events"]["expense_events"]] == [
        "DOCTOR_CUT",
        "ONLINE_SECRETARY_CUT",
    ]


def test_daily_summary_requires_date(client):
    assert client.get("/api/financial-events/daily-summary").status_code == 400


def test_monthly_report(client, seeded):
    body = client.get("/api/financial-events/monthly-report?year=2025&month=1").get_json()

    assert body["message"] == "Monthly report for January 2025"
    data = body["data"]
    assert data["income"]["total"] == 50000
    assert data["income"]["in_clinic"] == 30000
    assert data["expenses"]["doctor_cuts"] == 8500
    assert data["expenses"]["secretary_cuts"] == 2000
    assert data["net_profit"] == 39500
    assert data["profit_margin"] == 79
    assert data["summary"]["total_events"] == 7


@pytest.mark.parametrize(
    "query,message",
    [
        ("year=2025", "year and month parameters are required"),
        ("year=2025&month=13", "Invalid year or month. Month must be 1-12"),
        ("year=2025&month=jan", "Invalid year or month. Month must be 1-12"),
    ],
)
def test_monthly_report_validation(client, query, message):
    response = client.get(f"/api/financial-events/monthly-report?{query}")
    assert response.status_code == 400
    assert response.get_json()["message"] == message


def test_doctor_cuts(client, seeded):
    body = client.get("/api/financial-events/doctor-cuts?month=2025-01").get_json()

    assert body["message"] == "Doctor cuts for January 2025"
    data = body["data"]
    assert data["total_owed"] == 8500
    assert data["session_count"] == 3
    assert data["breakdown"] == {
        "in_clinic": {"total": 4500, "count": 2},
        "online": {"total": 4000, "count": 1},
    }
    first = data["sessions"][0]
    assert first["date"] == "2025-01-06"
    assert first["session_type"] == "ONLINE"
    assert first["cut_percent"] == 20


@pytest.mark.parametrize(
    "query,message",
    [
        ("", "month parameter is required (format: YYYY-MM)"),
        ("?month=2025-1", "Invalid month format. Use YYYY-MM"),
        ("?month=January", "Invalid month format. Use YYYY-MM"),
        ("?month=2025-13", "Invalid year or month. Month must be 1-12"),
    ],
)
def test_doctor_cuts_validation(client, query, message):
    response = client.get(f"/api/financial-events/doctor-cuts{query}")
    assert response.status_code == 400
    assert response.get_json()["message"] == message
