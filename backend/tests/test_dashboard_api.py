import uuid
from datetime import UTC, datetime, timedelta

import pytest

from docnotes.services.appointments import InMemoryAppointmentRepository
from docnotes.services.dashboard import collect_stats, day_bounds, week_start
from docnotes.services.patients import InMemoryPatientRepository
from docnotes.services.records import InMemoryRecordRepository


def test_week_starts_on_monday_midnight():
    thursday = datetime(2026, 10, 15, 17, 30, tzinfo=UTC)

    assert week_start(thursday) == datetime(2026, 10, 12, tzinfo=UTC)
    assert day_bounds(thursday) == (
        datetime(2026, 10, 15, tzinfo=UTC),
        datetime(2026, 10, 16, tzinfo=UTC),
    )


@pytest.mark.anyio
async def test_collect_stats_counts_today_and_this_week():
    now = datetime(2026, 10, 15, 9, 0, tzinfo=UTC)
    author = uuid.uuid4()
    patients = InMemoryPatientRepository()
    appointments = InMemoryAppointmentRepository()
    records = InMemoryRecordRepository()

    active = await patients.create_patient({"first_name": "Asha", "last_name": "Rao"}, author)
    archived = await patients.create_patient({"first_name": "Old", "last_name": "Chart"}, author)
    await patients.update_patient(archived, {"is_active": False})

    for hours in (1, 3, 26):
        await appointments.create_appointment(
            {"patient_id": active.id, "provider_id": author, "scheduled_at": now + timedelta(hours=hours)},
            author,
        )

    this_week = await records.create_record({"patient_id": active.id, "title": "New"}, author)
    last_week = await records.create_record({"patient_id": active.id, "title": "Old"}, author)
    this_week.created_at = now - timedelta(days=1)
    last_week.created_at = now - timedelta(days=7)

    snapshot = await collect_stats(patients, appointments, records, now=now)

    assert snapshot.total_patients == 1
    assert snapshot.today_appointments == 2
    assert snapshot.records_this_week == 1
    assert [a.scheduled_at for a in snapshot.today_schedule] == [
        now + timedelta(hours=1),
        now + timedelta(hours=3),
    ]


def test_stats_endpoint_reports_live_counts(client, nurse, create_patient, create_record):
    patient = create_patient()
    create_patient(first_name="Ravi")
    create_record(patient["id"])

    response = client.get("/api/v1/dashboard/stats", headers=nurse.headers)

    assert response.status_code == 200
    body = response.json()
    assert body["total_patients"] == 2
    assert body["records_this_week"] == 1
    assert body["today_appointments"] == 0
    assert body["today_schedule"] == []


def test_stats_endpoint_requires_session(client):
    assert client.get("/api/v1/dashboard/stats").status_code == 401
