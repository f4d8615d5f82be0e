import base64
import uuid


def test_export_patient_summary(client, nurse, store, create_patient, create_record):
    patient = create_patient()
    create_record(patient["id"])

    response = client.post(
        f"/api/v1/export/patients/{patient['id']}/summary", headers=nurse.headers
    )

    assert response.status_code == 200
    assert response.json()["filename"] == "Asha_Rao_Summary.pdf"
    assert base64.b64decode(response.json()["base64"]).startswith(b"%PDF")
    assert store.audit.actions()[-1] == ("export", "patient")


def test_export_medical_record(client, gp, store, create_patient, create_record):
    patient = create_patient()
    record = create_record(patient["id"], title="Knee  pain")

    response = client.post(f"/api/v1/export/records/{record['id']}", headers=gp.headers)

    assert response.status_code == 200
    assert response.json()["filename"] == "Asha_Rao_Knee_pain.pdf"
    assert store.audit.actions()[-1] == ("export", "medical_record")


def test_export_missing_resources(client, gp):
    summary = client.post(f"/api/v1/export/patients/{uuid.uuid4()}/summary", headers=gp.headers)
    record = client.post(f"/api/v1/export/records/{uuid.uuid4()}", headers=gp.headers)

    assert summary.status_code == 404
    assert record.status_code == 404


def test_export_requires_session(client):
    assert client.post(f"/api/v1/export/patients/{uuid.uuid4()}/summary").status_code == 401
