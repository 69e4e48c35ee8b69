from __future__ import annotations

import time

import pytest
from jose import jwt
from sqlalchemy import select

from dirigia.core.security import DEV_USER_ID
from dirigia.models.tables import Profile

SECRET = "test-jwt-secret"


def _token(sub="6f1c0d2e-user", audience="authenticated", secret=SECRET, expires_in=3600, **claims):
    payload = {"sub": sub, "aud": audience, "exp": int(time.time()) + expires_in, **claims}
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture(autouse=True)
def jwt_secret(monkeypatch):
    from dirigia.core import config as cfg

    monkeypatch.setattr(cfg.settings, "SUPABASE_JWT_SECRET", SECRET)


def test_missing_token_is_unauthorised(client):
    resp = client.get("/profile/me")
    assert resp.status_code == 401
    assert resp.json() == {"error": "Missing bearer token", "kind": "auth", "code": "unauthorized"}


def test_first_request_creates_free_profile(client, query):
    token = _token(email="nova@example.com", user_metadata={"full_name": "Nova Motorista"})
    resp = client.get("/profile/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["id"] == "6f1c0d2e-user"
    assert body["plan"] == "free"
    assert body["name"] == "Nova Motorista"

    # Second request reuses the row
    client.get("/profile/me", headers={"Authorization": f"Bearer {token}"})
    assert len(query(select(Profile.id))) == 1


@pytest.mark.parametrize(
    "token",
    [
        _token(secret="other-secret"),
        _token(audience="anon"),
        _token(expires_in=-60),
        "not-a-jwt",
    ],
)
def test_invalid_tokens_are_rejected(client, token):
    resp = client.get("/profile/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401
    assert resp.json()["kind"] == "auth"


def test_dev_bypass_uses_fixed_profile(client, monkeypatch):
    from dirigia.core import config as cfg

    monkeypatch.setattr(cfg.settings, "DEV_AUTH_BYPASS", True)
    body = client.get("/profile/me").json()
    assert body["id"] == DEV_USER_ID


def test_unknown_route_uses_error_body(client):
    resp = client.get("/no-such-route")
    assert resp.status_code == 404
    assert resp.json()["kind"] == "not_found"


def test_unconfigured_secret_is_an_auth_failure(client, monkeypatch):
    from dirigia.core import config as cfg

    monkeypatch.setattr(cfg.settings, "SUPABASE_JWT_SECRET", None)
    resp = client.get("/profile/me", headers={"Authorization": f"Bearer {_token()}"})
    assert resp.status_code == 500
    assert resp.json()["code"] == "auth_not_configured"
