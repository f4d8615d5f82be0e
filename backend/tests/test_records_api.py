import uuid
from types import SimpleNamespace

import pytest

from conftest import record_payload
from docnotes.exceptions import ConflictError
from docnotes.services.records import InMemoryRecordRepository, next_version_fields


def test_create_record_is_version_one_of_its_own_lineage(client, create_patient, create_record):
    patient = create_patient()

    record = create_record(patient["id"])

    assert record["version"] == 1
    assert record["parent_id"] is None
    assert record["lineage_id"] == record["id"]
    assert record["content"]["plan"] == "Repeat HbA1c in 3 months."
    assert record["content"]["objective"] is None


def test_nurse_can_create_and_edit_records(client, nurse, create_patient, create_record):
    patient = create_patient()
    record = create_record(patient["id"])

    created = client.post(
        "/api/v1/records/", json=record_payload(patient["id"]), headers=nurse.headers
    )
    edited = client.put(
        f"/api/v1/records/{record['id']}", json={"title": "Triage note"}, headers=nurse.headers
    )

    assert created.status_code == 201
    assert created.json()["created_by"] == str(nurse.user.id)
    assert edited.status_code == 200
    assert edited.json()["version"] == 2


def test_record_writes_require_a_session(client, create_patient, create_record):
    patient = create_patient()
    record = create_record(patient["id"])

    created = client.post("/api/v1/records/", json=record_payload(patient["id"]))
    edited = client.put(f"/api/v1/records/{record['id']}", json={"title": "Anon"})

    assert created.status_code == 401
    assert edited.status_code == 401


def test_nurse_can_read_records(client, nurse, create_patient, create_record):
    patient = create_patient()
    record = create_record(patient["id"])

    response = client.get(f"/api/v1/records/{record['id']}", headers=nurse.headers)

    assert response.status_code == 200
    assert response.json()["title"] == "Annual review"


def test_create_record_for_unknown_patient_is_not_found(client, gp):
    response = client.post(
        "/api/v1/records/", json=record_payload(uuid.uuid4()), headers=gp.headers
    )

    assert response.status_code == 404
    assert response.json()["error"]["message"] == "Patient not found"


def test_update_appends_a_version_and_leaves_the_original(client, gp, create_patient, create_record, store):
    patient = create_patient()
    original = create_record(patient["id"])

    response = client.put(
        f"/api/v1/records/{original['id']}",
        json={"title": "Annual review (amended)", "diagnoses": ["E11.9", "I10"]},
        headers=gp.headers,
    )

    assert response.status_code == 200
    updated = response.json()
    assert updated["id"] != original["id"]
    assert updated["version"] == 2
    assert updated["parent_id"] == original["id"]
    assert updated["lineage_id"] == original["lineage_id"]
    assert updated["diagnoses"] == ["E11.9", "I10"]
    assert updated["content"] == original["content"]

    unchanged = client.get(f"/api/v1/records/{original['id']}", headers=gp.headers).json()
    assert unchanged["title"] == "Annual review"
    assert unchanged["version"] == 1
    assert store.audit.actions()[-1] == ("update", "medical_record")


def test_editing_a_superseded_version_conflicts(client, gp, create_patient, create_record):
    patient = create_patient()
    original = create_record(patient["id"])
    first = client.put(
        f"/api/v1/records/{original['id']}", json={"title": "First edit"}, headers=gp.headers
    )
    assert first.status_code == 200

    second = client.put(
        f"/api/v1/records/{original['id']}", json={"title": "Second edit"}, headers=gp.headers
    )

    assert second.status_code == 409
    assert second.json()["error"]["code"] == "CONFLICT"
    assert second.json()["error"]["message"] == "Record has been superseded by a newer version"


def test_latest_and_history_follow_the_lineage(client, gp, create_patient, create_record):
    patient = create_patient()
    v1 = create_record(patient["id"])
    v2 = client.put(
        f"/api/v1/records/{v1['id']}", json={"title": "v2"}, headers=gp.headers
    ).json()
    v3 = client.put(
        f"/api/v1/records/{v2['id']}", json={"title": "v3"}, headers=gp.headers
    ).json()

    latest = client.get(f"/api/v1/records/lineage/{v1['id']}/latest", headers=gp.headers)
    history = client.get(f"/api/v1/records/lineage/{v1['id']}/history", headers=gp.headers)

    assert latest.json()["id"] == v3["id"]
    assert [r["version"] for r in history.json()] == [1, 2, 3]
    assert [r["title"] for r in history.json()] == ["Annual review", "v2", "v3"]


def test_unknown_lineage_is_not_found(client, gp):
    lineage_id = uuid.uuid4()

    assert client.get(f"/api/v1/records/lineage/{lineage_id}/latest", headers=gp.headers).status_code == 404
    assert client.get(f"/api/v1/records/lineage/{lineage_id}/history", headers=gp.headers).status_code == 404


def test_list_shows_only_current_versions(client, gp, create_patient, create_record):
    patient = create_patient()
    visit = create_record(patient["id"])
    create_record(patient["id"], type="lab_result", title="HbA1c")
    client.put(f"/api/v1/records/{visit['id']}", json={"title": "Visit v2"}, headers=gp.headers)

    everything = client.get(
        "/api/v1/records/", params={"patient_id": patient["id"]}, headers=gp.headers
    ).json()
    labs = client.get(
        "/api/v1/records/",
        params={"patient_id": patient["id"], "type": "lab_result"},
        headers=gp.headers,
    ).json()

    assert everything["total"] == 2
    assert sorted(r["title"] for r in everything["items"]) == ["HbA1c", "Visit v2"]
    assert [r["title"] for r in labs["items"]] == ["HbA1c"]


def test_list_requires_patient_id(client, gp):
    assert client.get("/api/v1/records/", headers=gp.headers).status_code == 422


def test_next_version_fields_carries_unset_fields_over():
    parent = SimpleNamespace(
        id=uuid.uuid4(),
        lineage_id=uuid.uuid4(),
        patient_id=uuid.uuid4(),
        type="visit_note",
        title="Original",
        content={"plan": "Rest"},
        vitals=None,
        diagnoses=["J06.9"],
        version=4,
    )

    fields = next_version_fields(parent, {"title": "Amended", "diagnoses": None})

    assert fields["title"] == "Amended"
    assert fields["content"] == {"plan": "Rest"}
    assert fields["diagnoses"] == ["J06.9"]
    assert fields["version"] == 5
    assert fields["parent_id"] == parent.id
    assert fields["lineage_id"] == parent.lineage_id


def test_next_version_fields_null_clears_content_and_vitals():
    parent = SimpleNamespace(
        id=uuid.uuid4(),
        lineage_id=uuid.uuid4(),
        patient_id=uuid.uuid4(),
        type="visit_note",
        title="Original",
        content={"plan": "Rest"},
        vitals={"heart_rate": 72},
        diagnoses=["J06.9"],
        version=1,
    )

    fields = next_version_fields(parent, {"content": None, "vitals": None})

    assert fields["content"] is None
    assert fields["vitals"] is None
    assert fields["title"] == "Original"


def test_update_with_null_clears_content_and_vitals(client, gp, create_patient, create_record):
    patient = create_patient()
    original = create_record(patient["id"])

    response = client.put(
        f"/api/v1/records/{original['id']}",
        json={"content": None, "vitals": None},
        headers=gp.headers,
    )

    assert response.status_code == 200
    updated = response.json()
    assert updated["version"] == 2
    assert updated["content"] is None
    assert updated["vitals"] is None
    assert updated["title"] == original["title"]
    assert updated["diagnoses"] == original["diagnoses"]

    kept = client.get(f"/api/v1/records/{original['id']}", headers=gp.headers).json()
    assert kept["vitals"] == original["vitals"]


def test_update_without_sections_keeps_them(client, gp, create_patient, create_record):
    patient = create_patient()
    original = create_record(patient["id"])

    response = client.put(
        f"/api/v1/records/{original['id']}", json={"title": "Retitled"}, headers=gp.headers
    )

    assert response.json()["content"] == original["content"]
    assert response.json()["vitals"] == original["vitals"]


@pytest.mark.anyio
async def test_concurrent_edits_of_the_same_version_have_one_winner():
    repo = InMemoryRecordRepository()
    author = uuid.uuid4()
    v1 = await repo.create_record(
        {"patient_id": uuid.uuid4(), "type": "visit_note", "title": "Note"}, author
    )

    winner = await repo.create_version(v1, {"title": "A"}, author)
    with pytest.raises(ConflictError):
        await repo.create_version(v1, {"title": "B"}, author)

    assert (await repo.latest(v1.lineage_id)).id == winner.id
    assert len(await repo.history(v1.lineage_id)) == 2
