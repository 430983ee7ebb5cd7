"""
Integration tests for the group endpoints.

Covers:
  - POST /api/v1/groups
  - GET  /api/v1/groups

A group created through the API is immediately usable for group-scoped
expenses, balances and settlement plans.
"""

from __future__ import annotations

from grocery_ledger.app.extensions import db
from grocery_ledger.app.models.group import GroupMembership, MembershipRole, MembershipStatus

from .conftest import auth_headers, make_expense, seed_group, seed_user


def _create_group(client, user_id, **payload):
    return client.post("/api/v1/groups", json=payload, headers=auth_headers(user_id))


class TestCreateGroup:

    def test_creator_becomes_accepted_admin(self, app, client):
        seed_user(app, "alice")

        resp = _create_group(client, "alice", name="  Flatmates  ", description="Weekly shop")

        assert resp.status_code == 201
        group = resp.get_json()["data"]
        assert group["name"] == "Flatmates"
        assert group["description"] == "Weekly shop"
        assert group["created_by"] == "alice"
        with app.app_context():
            membership = db.session.query(GroupMembership).filter_by(group_id=group["id"]).one()
            assert membership.user_id == "alice"
            assert membership.role == MembershipRole.ADMIN
            assert membership.status == MembershipStatus.ACCEPTED

    def test_new_group_takes_expenses_and_balances(self, app, client):
        seed_user(app, "alice")
        group_id = _create_group(client, "alice", name="Solo").get_json()["data"]["id"]

        expense = make_expense(client, "alice", 500, ["alice"], group_id=group_id)
        balances = client.get(f"/api/v1/groups/{group_id}/balances", headers=auth_headers("alice"))

        assert expense.status_code == 201
        assert balances.status_code == 200
        assert balances.get_json()["data"]["balances"] == []

    def test_blank_name(self, app, client):
        seed_user(app, "alice")

        resp = _create_group(client, "alice", name="   ")

        assert resp.status_code == 400
        assert resp.get_json()["error"]["field"] == "name"

    def test_missing_name(self, app, client):
        seed_user(app, "alice")

        resp = _create_group(client, "alice", description="no name")

        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "MISSING_FIELD"

    def test_unknown_caller(self, app, client):
        resp = _create_group(client, "ghost", name="Flatmates")

        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "USER_NOT_FOUND"


class TestListGroups:

    def test_lists_accepted_memberships_only(self, app, client):
        seed_group(app, ["alice", "bob"], group_id="shared")
        seed_group(app, ["carol"], pending=["alice"], group_id="invited")
        own = _create_group(client, "alice", name="Mine").get_json()["data"]["id"]

        resp = client.get("/api/v1/groups", headers=auth_headers("alice"))

        assert resp.status_code == 200
        assert {g["id"] for g in resp.get_json()["data"]} == {"shared", own}
