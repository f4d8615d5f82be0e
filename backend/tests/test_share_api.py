import base64
import uuid


def _share(client, caller, resource_id, resource_type="patient_summary", **extra):
    return client.post(
        "/api/v1/share/",
        json={"resource_type": resource_type, "resource_id": resource_id, **extra},
        headers=caller.headers,
    )


def _redeem(client, token, password=None):
    payload = {"token": token}
    if password is not None:
        payload["password"] = password
    return client.post("/api/v1/share/access", json=payload)


def test_password_protected_summary_end_to_end(client, gp, store, create_patient):
    patient = create_patient(
        first_name="Asha",
        last_name="Rao",
        date_of_birth="1990-01-01",
        gender="female",
        email=None,
        phone=None,
        blood_type=None,
        allergies=[],
        active_conditions=[],
    )

    created = _share(client, gp, patient["id"], expires_in_hours=1, password="xyz9")
    assert created.status_code == 201
    link = created.json()
    assert link["has_password"] is True
    assert link["url"].endswith(f"/share/{link['token']}")

    assert _redeem(client, link["token"]).json() == {"requires_password": True}

    wrong = _redeem(client, link["token"], "wrong")
    assert wrong.status_code == 403
    assert wrong.json()["error"]["message"] == "Incorrect password"

    right = _redeem(client, link["token"], "xyz9")
    assert right.status_code == 200
    body = right.json()
    assert body["type"] == "pdf"
    assert body["requires_password"] is False
    assert body["filename"] == "Asha_Rao_Summary.pdf"
    assert base64.b64decode(body["base64"]).startswith(b"%PDF")

    listed = client.get(
        "/api/v1/share/",
        params={"resource_type": "patient_summary", "resource_id": patient["id"]},
        headers=gp.headers,
    ).json()
    assert listed[0]["access_count"] == 1
    assert "password_hash" not in listed[0]
    assert ("share", "share_link") in store.audit.actions()


def test_redemption_needs_no_session(client, gp, create_patient, create_record):
    patient = create_patient()
    record = create_record(patient["id"])
    link = _share(client, gp, record["id"], resource_type="medical_record").json()

    response = _redeem(client, link["token"])

    assert response.status_code == 200
    assert response.json()["filename"] == "Asha_Rao_Annual_review.pdf"


def test_nurse_can_issue_and_revoke_links(client, nurse, create_patient):
    patient = create_patient()

    created = _share(client, nurse, patient["id"])
    revoked = client.post(f"/api/v1/share/{created.json()['id']}/revoke", headers=nurse.headers)

    assert created.status_code == 201
    assert revoked.status_code == 200
    assert revoked.json()["is_revoked"] is True
    assert _redeem(client, created.json()["token"]).status_code == 403


def test_issuing_links_requires_a_session(client, create_patient):
    patient = create_patient()

    response = client.post(
        "/api/v1/share/",
        json={"resource_type": "patient_summary", "resource_id": patient["id"]},
    )

    assert response.status_code == 401


def test_revoked_link_is_forbidden(client, gp, store, create_patient):
    patient = create_patient()
    link = _share(client, gp, patient["id"]).json()

    revoked = client.post(f"/api/v1/share/{link['id']}/revoke", headers=gp.headers)
    response = _redeem(client, link["token"])

    assert revoked.status_code == 200
    assert revoked.json()["is_revoked"] is True
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "FORBIDDEN"
    assert response.json()["error"]["message"] == "This share link has been revoked"


def test_access_limit_over_http(client, gp, create_patient):
    patient = create_patient()
    link = _share(client, gp, patient["id"], max_accesses=1).json()

    first = _redeem(client, link["token"])
    second = _redeem(client, link["token"])

    assert first.status_code == 200
    assert second.status_code == 403
    assert second.json()["error"]["message"] == "This share link has reached its access limit"


def test_link_to_missing_resource_answers_not_found(client, gp):
    link = _share(client, gp, str(uuid.uuid4()), resource_type="document").json()

    response = _redeem(client, link["token"])

    assert response.status_code == 404
    assert response.json()["error"]["message"] == "Resource not found"


def test_unknown_token_is_not_found(client):
    response = _redeem(client, "f" * 64)

    assert response.status_code == 404
    assert response.json()["error"]["message"] == "Share link not found"


def test_create_validates_limits(client, gp, create_patient):
    patient = create_patient()

    too_long = _share(client, gp, patient["id"], expires_in_hours=721)
    too_many = _share(client, gp, patient["id"], max_accesses=101)
    short_password = _share(client, gp, patient["id"], password="abc")

    assert too_long.status_code == 422
    assert too_many.status_code == 422
    assert short_password.status_code == 422


def test_revoke_unknown_link_is_not_found(client, gp):
    response = client.post(f"/api/v1/share/{uuid.uuid4()}/revoke", headers=gp.headers)

    assert response.status_code == 404


def test_list_requires_session(client):
    response = client.get(
        "/api/v1/share/",
        params={"resource_type": "patient_summary", "resource_id": str(uuid.uuid4())},
    )

    assert response.status_code == 401
