"""
Integration tests for friend requests and friendships.

Covers:
  - GET    /api/v1/friends
  - GET    /api/v1/friend-requests
  - POST   /api/v1/friend-requests
  - POST   /api/v1/friend-requests/<request_id>/respond
  - POST   /api/v1/friends/<friend_id>/block
  - DELETE /api/v1/friends/<friend_id>
"""

from __future__ import annotations

from grocery_ledger.app.extensions import db
from grocery_ledger.app.models.friend import Friend, FriendStatus
from grocery_ledger.app.models.notification import Notification

from .conftest import auth_headers, seed_user


def _send(client, from_user, to_user, message=None):
    payload = {"friend_id": to_user}
    if message is not None:
        payload["message"] = message
    return client.post("/api/v1/friend-requests", json=payload, headers=auth_headers(from_user))


def _respond(client, user_id, request_id, action):
    return client.post(
        f"/api/v1/friend-requests/{request_id}/respond",
        json={"action": action},
        headers=auth_headers(user_id),
    )


def _friend_rows(app):
    with app.app_context():
        return sorted(
            (row.user_id, row.friend_id, row.status)
            for row in db.session.query(Friend).all()
        )


class TestFriendRequestLifecycle:

    def test_send_and_accept(self, app, client):
        seed_user(app, "alice")
        seed_user(app, "bob")

        sent = _send(client, "alice", "bob", "Split groceries?")
        assert sent.status_code == 201
        request = sent.get_json()["data"]
        assert request["status"] == "pending"
        assert request["message"] == "Split groceries?"

        accepted = _respond(client, "bob", request["id"], "accept")

        assert accepted.status_code == 200
        assert accepted.get_json()["data"]["status"] == "accepted"
        assert _friend_rows(app) == [
            ("alice", "bob", FriendStatus.ACCEPTED),
            ("bob", "alice", FriendStatus.ACCEPTED),
        ]
        with app.app_context():
            types = sorted(n.type for n in db.session.query(Notification).all())
            assert types == ["friend_request", "friend_request_accepted"]

    def test_accepting_twice_conflicts(self, app, client):
        seed_user(app, "alice")
        seed_user(app, "bob")
        request_id = _send(client, "alice", "bob").get_json()["data"]["id"]
        _respond(client, "bob", request_id, "accept")

        resp = _respond(client, "bob", request_id, "accept")

        assert resp.status_code == 409
        assert resp.get_json()["error"]["code"] == "INVALID_TRANSITION"
        assert len(_friend_rows(app)) == 2

    def test_sender_cannot_accept_own_request(self, app, client):
        seed_user(app, "alice")
        seed_user(app, "bob")
        request_id = _send(client, "alice", "bob").get_json()["data"]["id"]

        resp = _respond(client, "alice", request_id, "accept")

        assert resp.status_code == 403
        assert resp.get_json()["error"]["code"] == "NOT_REQUEST_ADDRESSEE"

    def test_reject_then_send_again(self, app, client):
        seed_user(app, "alice")
        seed_user(app, "bob")
        request_id = _send(client, "alice", "bob").get_json()["data"]["id"]

        assert _respond(client, "bob", request_id, "reject").get_json()["data"]["status"] == "rejected"
        assert _friend_rows(app) == []

        again = _send(client, "alice", "bob")
        assert again.status_code == 201
        assert again.get_json()["data"]["id"] != request_id

    def test_sender_cancels(self, app, client):
        seed_user(app, "alice")
        seed_user(app, "bob")
        request_id = _send(client, "alice", "bob").get_json()["data"]["id"]

        resp = _respond(client, "alice", request_id, "cancel")

        assert resp.status_code == 200
        assert resp.get_json()["data"]["status"] == "cancelled"

    def test_unknown_action(self, app, client):
        seed_user(app, "alice")
        seed_user(app, "bob")
        request_id = _send(client, "alice", "bob").get_json()["data"]["id"]

        resp = _respond(client, "bob", request_id, "ignore")

        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "INVALID_ACTION"

    def test_missing_request(self, app, client):
        seed_user(app, "bob")

        resp = _respond(client, "bob", "no-such-request", "accept")

        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "FRIEND_REQUEST_NOT_FOUND"


class TestSendGuards:

    def test_duplicate_pending_request_in_reverse_direction(self, app, client):
        seed_user(app, "alice")
        seed_user(app, "bob")
        _send(client, "alice", "bob")

        resp = _send(client, "bob", "alice")

        assert resp.status_code == 409
        assert resp.get_json()["error"]["code"] == "DUPLICATE_FRIEND_REQUEST"

    def test_request_to_self(self, app, client):
        seed_user(app, "alice")

        resp = _send(client, "alice", "alice")

        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "SELF_FRIEND_REQUEST"

    def test_request_to_unknown_user(self, app, client):
        seed_user(app, "alice")

        resp = _send(client, "alice", "ghost")

        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "USER_NOT_FOUND"

    def test_request_when_already_friends(self, app, client):
        seed_user(app, "alice")
        seed_user(app, "bob")
        request_id = _send(client, "alice", "bob").get_json()["data"]["id"]
        _respond(client, "bob", request_id, "accept")

        resp = _send(client, "bob", "alice")

        assert resp.status_code == 409
        assert resp.get_json()["error"]["code"] == "ALREADY_FRIENDS"

    def test_blank_friend_id(self, app, client):
        seed_user(app, "alice")

        resp = _send(client, "alice", "   ")

        assert resp.status_code == 400
        assert resp.get_json()["error"]["field"] == "friend_id"


class TestRemoveFriend:

    def test_remove_deletes_both_rows(self, app, client):
        seed_user(app, "alice")
        seed_user(app, "bob")
        request_id = _send(client, "alice", "bob").get_json()["data"]["id"]
        _respond(client, "bob", request_id, "accept")

        resp = client.delete("/api/v1/friends/alice", headers=auth_headers("bob"))

        assert resp.status_code == 200
        assert resp.get_json()["data"] == {"removed": True, "friend_id": "alice"}
        assert _friend_rows(app) == []

    def test_remove_stranger(self, app, client):
        seed_user(app, "alice")
        seed_user(app, "bob")

        resp = client.delete("/api/v1/friends/bob", headers=auth_headers("alice"))

        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "FRIEND_NOT_FOUND"


class TestListing:

    def test_friend_requests_show_both_directions(self, app, client):
        for user_id in ("alice", "bob", "carol"):
            seed_user(app, user_id)
        sent = _send(client, "alice", "bob").get_json()["data"]["id"]
        received = _send(client, "carol", "alice").get_json()["data"]["id"]

        resp = client.get("/api/v1/friend-requests", headers=auth_headers("alice"))

        assert resp.status_code == 200
        rows = resp.get_json()["data"]
        assert {r["id"] for r in rows} == {sent, received}
        assert all(r["status"] == "pending" for r in rows)

    def test_bob_finds_request_to_answer(self, app, client):
        seed_user(app, "alice")
        seed_user(app, "bob")
        _send(client, "alice", "bob")

        inbox = client.get("/api/v1/friend-requests", headers=auth_headers("bob")).get_json()["data"]
        resp = _respond(client, "bob", inbox[0]["id"], "accept")

        assert resp.status_code == 200

    def test_friends_lists_accepted_only(self, app, client):
        for user_id in ("alice", "bob", "carol"):
            seed_user(app, user_id)
        request_id = _send(client, "alice", "bob").get_json()["data"]["id"]
        _respond(client, "bob", request_id, "accept")
        _send(client, "alice", "carol")

        resp = client.get("/api/v1/friends", headers=auth_headers("alice"))

        assert resp.status_code == 200
        assert [(f["friend_id"], f["status"]) for f in resp.get_json()["data"]] == [("bob", "accepted")]


class TestBlock:

    def test_block_ends_friendship(self, app, client):
        seed_user(app, "alice")
        seed_user(app, "bob")
        request_id = _send(client, "alice", "bob").get_json()["data"]["id"]
        _respond(client, "bob", request_id, "accept")

        resp = client.post("/api/v1/friends/bob/block", headers=auth_headers("alice"))

        assert resp.status_code == 200
        assert resp.get_json()["data"]["status"] == "blocked"
        assert _friend_rows(app) == [("alice", "bob", FriendStatus.BLOCKED)]
        assert client.get("/api/v1/friends", headers=auth_headers("bob")).get_json()["data"] == []

    def test_blocked_user_is_refused(self, app, client):
        seed_user(app, "alice")
        seed_user(app, "bob")
        client.post("/api/v1/friends/bob/block", headers=auth_headers("alice"))

        request_resp = _send(client, "bob", "alice")
        expense_resp = client.post(
            "/api/v1/expenses",
            json={"total_minor": 200, "participant_ids": ["alice", "bob"]},
            headers=auth_headers("bob"),
        )

        assert request_resp.status_code == 403
        assert request_resp.get_json()["error"]["code"] == "FRIEND_BLOCKED"
        assert expense_resp.status_code == 403
        assert expense_resp.get_json()["error"]["code"] == "FRIEND_BLOCKED"

    def test_delete_lifts_block(self, app, client):
        seed_user(app, "alice")
        seed_user(app, "bob")
        client.post("/api/v1/friends/bob/block", headers=auth_headers("alice"))

        resp = client.delete("/api/v1/friends/bob", headers=auth_headers("alice"))

        assert resp.status_code == 200
        assert _friend_rows(app) == []
        assert _send(client, "bob", "alice").status_code == 201

    def test_block_self(self, app, client):
        seed_user(app, "alice")

        resp = client.post("/api/v1/friends/alice/block", headers=auth_headers("alice"))

        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "SELF_BLOCK"
