"""
tests/test_api_routes.py -- Integration tests for the auth and users routes.

Covers:
  - POST /api/v1/auth/register: 201 token pair, no-store, 400 field errors
  - POST /api/v1/auth/login: 200 fresh pair, one 401 shape for both
    credential failures, 422 for a body that is not JSON
  - GET /api/v1/users/me: profile for the live token, 404 for every gate
    rejection (missing, malformed, superseded), 500 with no detail when the
    session store is down

The api_client fixture is module-scoped, so every test registers its own
username/email pair.
"""

from __future__ import annotations

import pytest

from core.errors import StoreError

REGISTER = "/api/v1/auth/register"
LOGIN = "/api/v1/auth/login"
ME = "/api/v1/users/me"


def _register(client, username: str, email: str, password: str = "s3cret!"):
    return client.post(REGISTER, json={"username": username, "email": email, "password": password})


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Register
# ---------------------------------------------------------------------------


def test_register_returns_token_pair(api_client):
    client, _ = api_client
    resp = _register(client, "alice", "alice@example.com")
    assert resp.status_code == 201
    assert resp.headers["cache-control"] == "no-store"
    data = resp.json()
    assert set(data) == {"accessToken", "accessTokenExpiresIn", "refreshToken", "refreshTokenExpiresIn", "tokenType"}
    assert data["tokenType"] == "Bearer"
    assert data["accessTokenExpiresIn"] == 900
    assert data["refreshTokenExpiresIn"] == 604800


def test_register_then_profile(api_client):
    client, _ = api_client
    token = _register(client, "carol", "carol@example.com").json()["accessToken"]
    resp = client.get(ME, headers=_bearer(token))
    assert resp.status_code == 200
    data = resp.json()
    assert data["username"] == "carol"
    assert data["email"] == "carol@example.com"
    assert "password" not in data
    assert {"id", "createdAt", "updatedAt"} <= set(data)


def test_register_short_username_is_400(api_client):
    client, _ = api_client
    resp = _register(client, "abc", "shortname@example.com")
    assert resp.status_code == 400
    error = resp.json()["error"]
    assert error["code"] == "validation_error"
    assert error["field"] == "username"
    assert error["message"] == "Username must be at least 4 characters"


def test_register_duplicate_is_400(api_client):
    client, _ = api_client
    assert _register(client, "dave1", "dave@example.com").status_code == 201
    resp = _register(client, "dave2", "dave@example.com")
    assert resp.status_code == 400
    assert resp.json()["error"]["field"] == "email"
    assert resp.json()["error"]["message"] == "Email is already exist"


def test_register_missing_fields_is_field_error(api_client):
    client, _ = api_client
    resp = client.post(REGISTER, json={})
    assert resp.status_code == 400
    assert resp.json()["error"]["field"] == "username"


@pytest.mark.parametrize(
    "username, email, password",
    [
        ("multi1", "multi1@example.com", "é" * 20),
        ("multi2", "multi2@example.com", "€" * 20),
        ("multi3", "multi3@example.com", "\U0001F511" * 19),
    ],
)
def test_register_and_login_with_multibyte_password(api_client, username, email, password):
    client, _ = api_client
    assert _register(client, username, email, password).status_code == 201
    resp = client.post(LOGIN, json={"email": email, "password": password})
    assert resp.status_code == 200


def test_register_invalid_json_is_422(api_client):
    client, _ = api_client
    resp = client.post(REGISTER, content=b"{not json", headers={"Content-Type": "application/json"})
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "invalid_request_body"


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


def test_login_returns_fresh_pair(api_client):
    client, _ = api_client
    first = _register(client, "erin", "erin@example.com").json()
    resp = client.post(LOGIN, json={"email": "erin@example.com", "password": "s3cret!"})
    assert resp.status_code == 200
    assert resp.headers["cache-control"] == "no-store"
    assert resp.json()["accessToken"] != first["accessToken"]


def test_login_failures_are_indistinguishable(api_client):
    client, _ = api_client
    _register(client, "frank", "frank@example.com")
    wrong_password = client.post(LOGIN, json={"email": "frank@example.com", "password": "wrong!"})
    unknown_email = client.post(LOGIN, json={"email": "nobody@example.com", "password": "s3cret!"})
    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json()
    assert wrong_password.json()["error"]["code"] == "bad_credentials"
    assert "field" not in wrong_password.json()["error"]


def test_login_shape_error_is_400(api_client):
    client, _ = api_client
    resp = client.post(LOGIN, json={"email": "short@x.io", "password": "s3cret!"})
    assert resp.status_code == 400
    assert resp.json()["error"]["field"] == "email"


def test_login_supersedes_previous_token(api_client):
    client, _ = api_client
    old = _register(client, "grace", "grace@example.com").json()["accessToken"]
    new = client.post(LOGIN, json={"email": "grace@example.com", "password": "s3cret!"}).json()["accessToken"]

    resp = client.get(ME, headers=_bearer(old))
    assert resp.status_code == 404
    assert resp.json()["error"]["message"] == "Authorization token is expired"
    assert client.get(ME, headers=_bearer(new)).status_code == 200


# ---------------------------------------------------------------------------
# Request Gate
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "headers, message",
    [
        ({}, "No authentication token is provided"),
        ({"Authorization": "Token abc"}, "Authentication token format is not match"),
        ({"Authorization": "Bearer garbage"}, "Authentication token is malformed"),
    ],
)
def test_gate_rejections_are_404(api_client, headers, message):
    client, _ = api_client
    resp = client.get(ME, headers=headers)
    assert resp.status_code == 404
    error = resp.json()["error"]
    assert error["code"] == "unauthorized"
    assert error["field"] == "accessToken"
    assert error["message"] == message


def test_expired_session_slot_is_404(api_client):
    client, redis_double = api_client
    token = _register(client, "heidi", "heidi@example.com").json()["accessToken"]
    user_id = client.get(ME, headers=_bearer(token)).json()["id"]
    redis_double._data.pop(f"auth:accessToken:{user_id}")

    resp = client.get(ME, headers=_bearer(token))
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "not_found"


def test_session_store_outage_is_500(api_client, monkeypatch):
    client, _ = api_client
    token = _register(client, "ivan1", "ivan@example.com").json()["accessToken"]

    def unavailable(user_id):
        raise StoreError("read auth:accessToken: timed out")

    monkeypatch.setattr(client.app.state.session_store, "current_access_token", unavailable)
    resp = client.get(ME, headers=_bearer(token))
    assert resp.status_code == 500
    error = resp.json()["error"]
    assert error["code"] == "internal_error"
    assert "detail" not in error
    assert "timed out" not in resp.text
