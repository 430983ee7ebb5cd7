"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - Every test gets its own app built with create_app("testing") over an
    in-memory SQLite database, so no cleanup between tests is needed.
  - Users belong to the auth provider, so they are seeded straight into
    the table. Groups are seeded too, since the API has no invite flow for
    the pending memberships many tests need. Everything else goes through
    the API.
  - Access tokens are minted with the testing JWT secret, the same way the
    external auth provider signs them.

Helper functions (not fixtures) are provided for common operations:
  - seed_user(app, user_id)               → user id
  - seed_group(app, members, pending=())  → group id
  - token_for(user_id)                    → signed access token
  - auth_headers(user_id)                 → {"Authorization": "Bearer <token>"}
  - make_expense(client, user_id, ...)    → HTTP response

These are plain functions (not pytest fixtures) so they can be called with
arbitrary arguments in any test.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from grocery_ledger.app import create_app
from grocery_ledger.app.extensions import db as _db
from grocery_ledger.app.models.group import Group, GroupMembership, MembershipRole, MembershipStatus
from grocery_ledger.app.models.user import User
from grocery_ledger.config import TestingConfig


# ═══════════════════════════════════════════════════════════════════════════
# App and client fixtures
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def app():
    """A fresh app and schema per test. Tables are dropped at teardown."""
    flask_app = create_app("testing")

    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def seed_user(app, user_id: str) -> str:
    with app.app_context():
        _db.session.add(User(id=user_id, email=f"{user_id}@test.com", display_name=user_id.title()))
        _db.session.commit()
    return user_id


def seed_group(app, members, pending=(), group_id: str = "group-1") -> str:
    """
    Creates users (if needed), a group owned by the first member, and one
    membership per user. `pending` users get a PENDING membership.
    """
    with app.app_context():
        for user_id in [*members, *pending]:
            if _db.session.get(User, user_id) is None:
                _db.session.add(User(id=user_id, email=f"{user_id}@test.com"))
        _db.session.flush()

        _db.session.add(Group(id=group_id, name="Flatmates", created_by=members[0]))
        _db.session.flush()

        for index, user_id in enumerate(members):
            _db.session.add(GroupMembership(
                group_id=group_id,
                user_id=user_id,
                role=MembershipRole.ADMIN if index == 0 else MembershipRole.MEMBER,
                status=MembershipStatus.ACCEPTED,
            ))
        for user_id in pending:
            _db.session.add(GroupMembership(
                group_id=group_id,
                user_id=user_id,
                status=MembershipStatus.PENDING,
            ))
        _db.session.commit()
    return group_id


def token_for(user_id: str, expires_in: timedelta = timedelta(minutes=15)) -> str:
    return jwt.encode(
        {"sub": user_id, "exp": datetime.now(timezone.utc) + expires_in},
        TestingConfig.JWT_SECRET_KEY,
        algorithm="HS256",
    )


def auth_headers(user_id: str) -> dict:
    """Returns the Authorization header dict for use in test requests."""
    return {"Authorization": f"Bearer {token_for(user_id)}"}


def make_expense(
    client,
    user_id: str,
    total_minor: int,
    participant_ids: list[str],
    group_id: str | None = None,
    split_mode: str = "equal",
    weights: dict | None = None,
    **extra,
):
    """
    Creates an expense paid by user_id and returns the HTTP response.
    For split_mode='equal', do not pass weights.
    """
    payload: dict = {
        "total_minor": total_minor,
        "participant_ids": participant_ids,
        "split_mode": split_mode,
    }
    if group_id is not None:
        payload["group_id"] = group_id
    if weights is not None:
        payload["weights"] = weights
    payload.update(extra)

    return client.post("/api/v1/expenses", json=payload, headers=auth_headers(user_id))


def share_id_for(expense: dict, user_id: str) -> str:
    return next(s["id"] for s in expense["shares"] if s["user_id"] == user_id)
