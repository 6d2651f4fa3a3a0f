from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

import main
from app.errors import QueueUnavailableError
from app.services.scheduler import ReminderScheduler
from conftest import FakeClock


@pytest.fixture
def client(delay_queue, metrics):
    clock = FakeClock(datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc))
    scheduler = ReminderScheduler(delay_queue, metrics, clock=clock)
    main.app.dependency_overrides[main.get_scheduler] = lambda: scheduler
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


def test_schedule_reminder_accepted(client, delay_queue):
    resp = client.post(
        "/v1/appointments/reminders",
        json={"appointment_id": "apt-1", "appointment_date": "2024-01-02T10:00:00Z", "tenant_id": "tenant-a"},
    )

    assert resp.status_code == 202
    body = resp.json()
    assert body["dedup_key"] == "reminder_apt-1"
    assert body["job_id"] == "reminder_apt-1:1"
    assert body["delay_seconds"] == 3600
    assert body["queued"] is True
    assert "reminder_apt-1" in delay_queue.jobs


def test_duplicate_schedule_reports_not_queued(client):
    body = {"appointment_id": "apt-1", "appointment_date": "2024-01-02T10:00:00Z", "tenant_id": "tenant-a"}
    client.post("/v1/appointments/reminders", json=body)

    resp = client.post("/v1/appointments/reminders", json=body)

    assert resp.status_code == 202
    assert resp.json()["queued"] is False


def test_naive_date_rejected(client):
    resp = client.post(
        "/v1/appointments/reminders",
        json={"appointment_id": "apt-1", "appointment_date": "2024-01-02T10:00:00", "tenant_id": "tenant-a"},
    )
    assert resp.status_code == 422


def test_queue_down_returns_503(client, delay_queue):
    delay_queue.fail_with = QueueUnavailableError("reminder_apt-1", ConnectionError("down"))

    resp = client.post(
        "/v1/appointments/reminders",
        json={"appointment_id": "apt-1", "appointment_date": "2024-01-02T10:00:00Z", "tenant_id": "tenant-a"},
    )
    assert resp.status_code == 503


def test_metrics_and_health(client):
    assert client.get("/healthz").text == "OK"
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/plain")


@pytest.mark.parametrize("field", ["appointment_id", "tenant_id"])
def test_blank_identifiers_rejected(client, delay_queue, field):
    body = {"appointment_id": "apt-1", "appointment_date": "2024-01-02T10:00:00Z", "tenant_id": "tenant-a"}
    body[field] = "   "

    resp = client.post("/v1/appointments/reminders", json=body)

    assert resp.status_code == 422
    assert delay_queue.jobs == {}
