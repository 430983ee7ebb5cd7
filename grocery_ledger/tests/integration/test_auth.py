"""
Integration tests for bearer token authentication on protected routes.

Tokens are verified only; issuing them is the auth provider's job.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt

from .conftest import seed_user, token_for


def _get_expenses(client, header_value=None):
    headers = {"Authorization": header_value} if header_value is not None else {}
    return client.get("/api/v1/expenses", headers=headers)


def test_missing_header(app, client):
    resp = _get_expenses(client)

    assert resp.status_code == 401
    assert resp.get_json()["error"]["code"] == "TOKEN_MISSING"


def test_wrong_scheme(app, client):
    resp = _get_expenses(client, f"Token {token_for('alice')}")

    assert resp.status_code == 401
    assert resp.get_json()["error"]["code"] == "TOKEN_INVALID"


def test_expired_token(app, client):
    token = token_for("alice", expires_in=timedelta(minutes=-5))

    resp = _get_expenses(client, f"Bearer {token}")

    assert resp.status_code == 401
    assert resp.get_json()["error"]["code"] == "TOKEN_EXPIRED"


def test_token_signed_with_another_secret(app, client):
    token = jwt.encode(
        {"sub": "alice", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
        "some-other-secret-that-is-also-long-enough",
        algorithm="HS256",
    )

    resp = _get_expenses(client, f"Bearer {token}")

    assert resp.status_code == 401
    assert resp.get_json()["error"]["code"] == "TOKEN_INVALID"


def test_token_without_subject(app, client):
    token = jwt.encode(
        {"exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
        app.config["JWT_SECRET_KEY"],
        algorithm="HS256",
    )

    resp = _get_expenses(client, f"Bearer {token}")

    assert resp.status_code == 401
    assert resp.get_json()["error"]["code"] == "TOKEN_INVALID"


def test_valid_token(app, client):
    seed_user(app, "alice")

    resp = _get_expenses(client, f"Bearer {token_for('alice')}")

    assert resp.status_code == 200
    assert resp.get_json() == {"data": [], "warnings": []}


def test_unknown_route_keeps_404(app, client):
    resp = client.get("/api/v1/nothing-here")

    assert resp.status_code == 404
