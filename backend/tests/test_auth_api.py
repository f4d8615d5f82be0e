import uuid
from datetime import timedelta

import pytest

from conftest import DEFAULT_PASSWORD, seed_user
from docnotes.api import deps
from docnotes.exceptions import ForbiddenError
from docnotes.models import UserRole


def _register(client, email="kavya@example.com", password="s3cure-pass", full_name="Dr Kavya Nair"):
    return client.post(
        "/api/v1/auth/register",
        json={"email": email, "password": password, "full_name": full_name},
    )


def test_register_creates_gp_and_signs_in(client, store):
    response = _register(client, email="Kavya@Example.Com")

    assert response.status_code == 201
    body = response.json()
    assert body["user"]["email"] == "kavya@example.com"
    assert body["user"]["role"] == "gp"
    assert body["user"]["is_active"] is True
    assert len(body["token"]) == 96
    assert "hashed_password" not in body["user"]

    me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
    assert me.status_code == 200
    assert me.json()["full_name"] == "Dr Kavya Nair"
    assert ("create", "user") in store.audit.actions()


def test_register_duplicate_email_conflicts(client):
    assert _register(client).status_code == 201

    response = _register(client, email="KAVYA@example.com")

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "CONFLICT"
    assert response.json()["error"]["message"] == "Email already registered"


def test_register_rejects_short_password(client):
    response = _register(client, password="short")

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_login_with_wrong_password_is_unauthorized(client, store):
    seed_user(store, email="meera@example.com")

    response = client.post(
        "/api/v1/auth/login", json={"email": "meera@example.com", "password": "nope"}
    )

    assert response.status_code == 401
    assert response.json()["error"]["message"] == "Invalid email or password"
    assert response.headers["www-authenticate"] == "Bearer"


def test_login_unknown_email_matches_wrong_password(client):
    response = client.post(
        "/api/v1/auth/login", json={"email": "ghost@example.com", "password": "whatever"}
    )

    assert response.status_code == 401
    assert response.json()["error"]["message"] == "Invalid email or password"


def test_login_deactivated_account_forbidden(client, store):
    seed_user(store, email="gone@example.com", is_active=False)

    response = client.post(
        "/api/v1/auth/login", json={"email": "gone@example.com", "password": DEFAULT_PASSWORD}
    )

    assert response.status_code == 403


def test_logout_revokes_every_session(client, store):
    caller = seed_user(store, email="meera@example.com")
    second = client.post(
        "/api/v1/auth/login",
        json={"email": "meera@example.com", "password": DEFAULT_PASSWORD},
    ).json()["token"]

    response = client.post("/api/v1/auth/logout", headers=caller.headers)

    assert response.status_code == 200
    assert response.json() == {"success": True, "sessions_revoked": 2}
    for token in (caller.token, second):
        denied = client.get("/api/v1/patients/", headers={"Authorization": f"Bearer {token}"})
        assert denied.status_code == 401
    assert store.audit.actions()[-1] == ("logout", "session")


def test_me_is_null_for_anonymous_callers(client):
    assert client.get("/api/v1/auth/me").json() is None
    bogus = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert bogus.status_code == 200
    assert bogus.json() is None


def test_expired_session_is_rejected(client, store):
    caller = seed_user(store)
    store.auth.sessions[-1].expires_at = store.auth.sessions[-1].created_at - timedelta(seconds=1)

    response = client.get("/api/v1/patients/", headers=caller.headers)

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHORIZED"


def test_update_own_profile(client, gp):
    response = client.patch(
        "/api/v1/auth/me", json={"full_name": "Dr Meera Iyer-Shah"}, headers=gp.headers
    )

    assert response.status_code == 200
    assert response.json()["full_name"] == "Dr Meera Iyer-Shah"


def test_user_admin_requires_admin_role(client, gp, nurse):
    for caller in (gp, nurse):
        response = client.get("/api/v1/auth/users", headers=caller.headers)
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FORBIDDEN"


def test_admin_lists_and_deactivates_users(client, store, admin, nurse):
    listing = client.get("/api/v1/auth/users", headers=admin.headers)
    assert listing.status_code == 200
    assert listing.json()["total"] == 2

    response = client.patch(
        f"/api/v1/auth/users/{nurse.user.id}",
        json={"is_active": False, "role": "gp"},
        headers=admin.headers,
    )

    assert response.status_code == 200
    assert response.json()["is_active"] is False
    assert response.json()["role"] == UserRole.gp.value
    assert client.get("/api/v1/patients/", headers=nurse.headers).status_code == 401


def test_admin_update_unknown_user_is_not_found(client, admin):
    response = client.patch(
        f"/api/v1/auth/users/{uuid.uuid4()}", json={"full_name": "X"}, headers=admin.headers
    )

    assert response.status_code == 404


def test_auth_endpoints_are_rate_limited(client, monkeypatch):
    monkeypatch.setattr(deps.settings, "auth_rate_limit_max_requests", 2, raising=False)
    payload = {"email": "ghost@example.com", "password": "whatever"}

    statuses = [client.post("/api/v1/auth/login", json=payload).status_code for _ in range(3)]

    assert statuses == [401, 401, 429]
    blocked = client.post("/api/v1/auth/login", json=payload)
    assert blocked.json()["error"]["code"] == "TOO_MANY_REQUESTS"


def _context(role: str) -> deps.AuthContext:
    return deps.AuthContext(user_id=uuid.uuid4(), role=role, token="t")


@pytest.mark.anyio
async def test_gp_tier_admits_gp_and_admin():
    for role in ("gp", "admin"):
        context = _context(role)
        assert await deps.require_gp(context) is context


@pytest.mark.anyio
async def test_gp_tier_rejects_nurse():
    with pytest.raises(ForbiddenError, match="Insufficient permissions"):
        await deps.require_gp(_context("nurse"))
