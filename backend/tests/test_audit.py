import logging
import uuid

import pytest
from fastapi import BackgroundTasks

from docnotes.models import AuditAction, AuditResource
from docnotes.services.audit import AuditEvent, AuditSink, InMemoryAuditLog


def _event(user_id=None, **overrides):
    fields = dict(
        user_id=user_id,
        action=AuditAction.read,
        resource=AuditResource.patient,
        resource_id=uuid.uuid4(),
        ip_address="10.0.0.7",
        user_agent="pytest" * 200,
    )
    fields.update(overrides)
    return AuditEvent(**fields)


@pytest.mark.anyio
async def test_sink_defers_write_to_background_tasks():
    tasks = BackgroundTasks()
    log = InMemoryAuditLog()
    sink = AuditSink(tasks, log)
    user_id = uuid.uuid4()

    sink.record(_event(user_id))
    assert log.entries == []

    await tasks()

    assert len(log.entries) == 1
    entry = log.entries[0]
    assert entry.user_id == user_id
    assert entry.action == "read"
    assert len(entry.user_agent) == 500


@pytest.mark.anyio
async def test_anonymous_events_are_not_recorded():
    tasks = BackgroundTasks()
    log = InMemoryAuditLog()

    AuditSink(tasks, log).record(_event(None))
    await tasks()

    assert log.entries == []
    assert tasks.tasks == []


@pytest.mark.anyio
async def test_failed_write_is_logged_and_swallowed(caplog):
    tasks = BackgroundTasks()
    log = InMemoryAuditLog()
    log.fail_writes = True
    user_id = uuid.uuid4()

    AuditSink(tasks, log).record(_event(user_id))
    with caplog.at_level(logging.WARNING, logger="docnotes.audit"):
        await tasks()

    assert log.entries == []
    assert any(
        "Audit write failed" in record.getMessage() and str(user_id) in record.getMessage()
        for record in caplog.records
    )


def test_audit_failure_does_not_fail_the_request(client, gp, store):
    store.audit.fail_writes = True

    response = client.post(
        "/api/v1/patients/",
        json={"first_name": "Asha", "last_name": "Rao", "date_of_birth": "1980-05-17", "gender": "female"},
        headers=gp.headers,
    )

    assert response.status_code == 201
    assert store.audit.entries == []


def test_share_access_is_not_audited(client, gp, store, create_patient):
    patient = create_patient()
    link = client.post(
        "/api/v1/share/",
        json={"resource_type": "patient_summary", "resource_id": patient["id"]},
        headers=gp.headers,
    ).json()
    before = len(store.audit.entries)

    assert client.post("/api/v1/share/access", json={"token": link["token"]}).status_code == 200
    assert len(store.audit.entries) == before


def test_audit_log_is_admin_only(client, gp, nurse):
    for caller in (gp, nurse):
        assert client.get("/api/v1/audit/", headers=caller.headers).status_code == 403


def test_admin_filters_audit_log(client, admin, gp, create_patient):
    patient = create_patient()
    client.get(f"/api/v1/patients/{patient['id']}", headers=gp.headers)
    client.post(f"/api/v1/patients/{patient['id']}/archive", headers=gp.headers)

    everything = client.get("/api/v1/audit/", headers=admin.headers).json()
    deletes = client.get(
        "/api/v1/audit/", params={"action": "delete", "resource": "patient"}, headers=admin.headers
    ).json()
    by_user = client.get(
        "/api/v1/audit/", params={"user_id": str(admin.user.id)}, headers=admin.headers
    ).json()

    assert everything["total"] == 2
    assert everything["limit"] == 50
    assert [entry["action"] for entry in deletes["items"]] == ["delete"]
    assert deletes["items"][0]["resource_id"] == patient["id"]
    assert deletes["items"][0]["user_id"] == str(gp.user.id)
    assert by_user["total"] == 0
