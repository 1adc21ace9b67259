"""
tests/test_api_routes.py — FastAPI Route Integration Tests
============================================================
Exercises the ``/api/users`` routes through the FastAPI TestClient with the
engine and AuthManager dependencies pointed at the in-memory database.

These tests verify:
- HTTP status mapping (200 / 201 / 202 / 400 / 401 / 403 / 404 / 422)
- The ``{"error": {...}}`` error body
- Bearer-token guards on member endpoints
"""

from __future__ import annotations

import pytest
from conftest import (
    APP_KEY,
    INACTIVE_APP_KEY,
    OTHER_APP_KEY,
    PASSWORD,
    make_membership,
    make_user,
)

from friends.engine.tokens import LoginToken


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def login_token(auth):
    """Factory for a ``login`` bearer token."""
    def make(user_id: int, app_key: str = APP_KEY) -> str:
        return auth.create_token(LoginToken(app_key=app_key, user_id=user_id))
    return make


# ===========================================================================
# Health endpoint
# ===========================================================================
class TestHealthEndpoint:
    def test_health_returns_ok(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


# ===========================================================================
# Login
# ===========================================================================
class TestLogin:
    def test_password_login(self, client, db_engine):
        uid = make_user(db_engine)
        resp = client.post("/api/users/login", json={
            "login": "ada@example.org", "password": PASSWORD, "app_key": APP_KEY,
        })
        assert resp.status_code == 200
        body = resp.json()
        assert body["data"]["id"] == uid
        assert body["data"]["profile"]["first_name"] == "Ada"
        assert body["meta"]["token"]

    def test_wrong_password(self, client, db_engine):
        make_user(db_engine)
        resp = client.post("/api/users/login", json={
            "login": "ada@example.org", "password": "wrong-one", "app_key": APP_KEY,
        })
        assert resp.status_code == 401
        assert resp.json()["error"]["status_code"] == 401

    def test_unknown_user(self, client):
        resp = client.post("/api/users/login", json={
            "email": "ghost@example.org", "password": "whatever", "app_key": APP_KEY,
        })
        assert resp.status_code == 404
        assert resp.json() == {"error": {"message": "User not found", "status_code": 404}}

    def test_missing_password(self, client):
        resp = client.post("/api/users/login", json={
            "login": "ada@example.org", "app_key": APP_KEY,
        })
        assert resp.status_code == 422
        assert "password" in resp.json()["error"]["errors"]

    def test_empty_app_key(self, client):
        resp = client.post("/api/users/login", json={
            "login": "ada@example.org", "password": PASSWORD, "app_key": "",
        })
        assert resp.status_code == 422
        assert "app_key" in resp.json()["error"]["errors"]

    def test_missing_app_key_is_reshaped(self, client):
        resp = client.post("/api/users/login", json={"login": "ada@example.org"})
        assert resp.status_code == 422
        error = resp.json()["error"]
        assert error["message"] == "Invalid payload"
        assert "app_key" in error["errors"]

    def test_unknown_app_key(self, client, db_engine):
        make_user(db_engine)
        resp = client.post("/api/users/login", json={
            "login": "ada@example.org", "password": PASSWORD, "app_key": "who-knows",
        })
        assert resp.status_code == 401

    def test_card_login(self, client, db_engine):
        uid = make_user(db_engine, barcode_id="0042")
        resp = client.post("/api/users/login/card", json={"barcode": "0042", "app_key": APP_KEY})
        assert resp.status_code == 200
        assert resp.json()["data"]["id"] == uid

    def test_card_login_external_membership(self, client, db_engine):
        make_membership(db_engine)
        resp = client.post("/api/users/login/card", json={"barcode": "M-1001", "app_key": APP_KEY})
        assert resp.status_code == 202
        body = resp.json()
        assert body["data"]["hints"]["first_name"] == "G****"
        assert body["meta"]["verification_token"]


# ===========================================================================
# Verify membership → register
# ===========================================================================
class TestMembershipRegistration:
    def test_full_flow(self, client, db_engine):
        make_membership(db_engine)
        pending = client.post(
            "/api/users/login/card", json={"barcode": "M-1001", "app_key": APP_KEY}
        ).json()

        verified = client.post("/api/users/verify-membership", json={
            "app_key": APP_KEY,
            "verification_token": pending["meta"]["verification_token"],
            "first_name": "Grace",
            "last_name": "Hopper",
        })
        assert verified.status_code == 200
        assert "classname" not in verified.json()["data"]["membership"]

        registered = client.post("/api/users", json={
            "app_key": APP_KEY,
            "email": "grace@example.org",
            "password": "secret1",
            "password_confirmation": "secret1",
            "first_name": "Grace",
            "last_name": "Hopper",
            "membership_token": verified.json()["meta"]["membership_token"],
        })
        assert registered.status_code == 201
        body = registered.json()
        assert body["meta"]["membership_bound"] is True
        assert body["data"]["profile"]["current_member_number"] == "M-1001"

    def test_verify_with_token_from_other_app(self, client, db_engine):
        make_membership(db_engine)
        pending = client.post(
            "/api/users/login/card", json={"barcode": "M-1001", "app_key": OTHER_APP_KEY}
        ).json()
        resp = client.post("/api/users/verify-membership", json={
            "app_key": APP_KEY,
            "verification_token": pending["meta"]["verification_token"],
            "email": "grace@example.org",
        })
        assert resp.status_code == 401

    def test_register_oversized_birth_year(self, client):
        resp = client.post("/api/users", json={
            "app_key": APP_KEY,
            "email": "grace@example.org",
            "password": "secret1",
            "birthday_year": "9" * 20,
            "birthday_month": "12",
            "birthday_day": "09",
        })
        assert resp.status_code == 422
        assert "birthday" in resp.json()["error"]["errors"]

    def test_register_invalid_email(self, client):
        resp = client.post("/api/users", json={
            "app_key": APP_KEY, "email": "not-an-email", "password": "secret1",
        })
        assert resp.status_code == 422
        assert "email" in resp.json()["error"]["errors"]


# ===========================================================================
# Authenticated member endpoints
# ===========================================================================
class TestMemberEndpoints:
    def test_list_requires_token(self, client):
        assert client.get("/api/users").status_code == 401

    def test_invalid_token(self, client):
        resp = client.get("/api/users", headers=_auth("invalid"))
        assert resp.status_code == 401

    def test_list_users(self, client, db_engine, login_token):
        uid = make_user(db_engine)
        resp = client.get("/api/users", headers=_auth(login_token(uid)))
        assert resp.status_code == 200
        assert resp.json()["total"] == 1

    @pytest.mark.parametrize("app_key", [INACTIVE_APP_KEY, "deleted-app-0001"])
    def test_token_from_disabled_application(self, client, db_engine, login_token, app_key):
        uid = make_user(db_engine)
        headers = _auth(login_token(uid, app_key))
        assert client.get("/api/users", headers=headers).status_code == 401
        resp = client.put(f"/api/users/{uid}", json={"city": "Dallas"}, headers=headers)
        assert resp.status_code == 401

    def test_show_missing_user(self, client, db_engine, login_token):
        uid = make_user(db_engine)
        resp = client.get("/api/users/999", headers=_auth(login_token(uid)))
        assert resp.status_code == 404

    def test_update_own_profile(self, client, db_engine, login_token):
        uid = make_user(db_engine)
        resp = client.put(
            f"/api/users/{uid}", json={"city": "Dallas"}, headers=_auth(login_token(uid))
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["profile"]["city"] == "Dallas"

    def test_update_someone_else(self, client, db_engine, login_token):
        uid = make_user(db_engine)
        other = make_user(db_engine, email="other@example.org")
        resp = client.put(
            f"/api/users/{other}", json={"city": "Dallas"}, headers=_auth(login_token(uid))
        )
        assert resp.status_code == 403

    def test_update_requires_token(self, client, db_engine):
        uid = make_user(db_engine)
        assert client.put(f"/api/users/{uid}", json={"city": "Dallas"}).status_code == 401

    @pytest.mark.parametrize("relation", ["activities", "rewards", "badges"])
    def test_relations_empty(self, client, db_engine, login_token, relation):
        uid = make_user(db_engine)
        resp = client.get(f"/api/users/{uid}/{relation}", headers=_auth(login_token(uid)))
        assert resp.status_code == 200
        assert resp.json() == {"total": 0, "page": 1, "page_size": 20, "data": []}

    def test_bookmark_type_invalid(self, client, db_engine, login_token):
        uid = make_user(db_engine)
        resp = client.get(f"/api/users/{uid}/bookmarks/events", headers=_auth(login_token(uid)))
        assert resp.status_code == 400
        assert "Options are" in resp.json()["error"]["message"]


# ===========================================================================
# Profile options (public)
# ===========================================================================
class TestProfileOptions:
    def test_all(self, client):
        resp = client.get("/api/users/profile-options")
        assert resp.status_code == 200
        assert set(resp.json()) == {"gender", "race", "household_income", "household_size", "education"}

    def test_single_field(self, client):
        resp = client.get("/api/users/profile-options/gender")
        assert resp.status_code == 200
        assert "Female" in resp.json()["gender"]

    def test_unknown_field(self, client):
        resp = client.get("/api/users/profile-options/avatars")
        assert resp.status_code == 400
