"""
routes/friends.py — Friend request and friendship route handlers.

Layer rules:
  - Parse, validate, call ONE service method, commit, return envelope.

Endpoints (url_prefix=/api/v1):
  GET    /friends                       → 200  the caller's accepted friends
  GET    /friend-requests               → 200  requests the caller sent or received
  POST   /friend-requests               → 201  send a request
  POST   /friend-requests/:id/respond   → 200  {"action": "accept" | "reject" | "cancel"}
  POST   /friends/:friend_id/block      → 200  block a user, ending any friendship
  DELETE /friends/:friend_id            → 200  remove a friendship or lift a block
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from grocery_ledger.app.dependencies import get_ledger_service
from grocery_ledger.app.extensions import db
from grocery_ledger.app.middleware.auth_middleware import require_auth
from grocery_ledger.app.schemas.friend_schema import (
    CreateFriendRequestSchema,
    FriendRequestActionSchema,
)
from grocery_ledger.app.schemas.response_schema import (
    friend_request_schema,
    friend_requests_schema,
    friend_schema,
    friends_schema,
)

friends_bp = Blueprint("friends", __name__)


@friends_bp.route("/friends", methods=["GET"])
@require_auth
def list_friends():
    friends = get_ledger_service().list_friends(g.user_id)
    return jsonify({"data": friends_schema.dump(friends), "warnings": []}), 200


@friends_bp.route("/friend-requests", methods=["GET"])
@require_auth
def list_friend_requests():
    requests = get_ledger_service().list_friend_requests(g.user_id)
    return jsonify({"data": friend_requests_schema.dump(requests), "warnings": []}), 200


@friends_bp.route("/friend-requests", methods=["POST"])
@require_auth
def send_friend_request():
    data = CreateFriendRequestSchema().load(request.get_json(force=True, silent=True) or {})
    friend_request = get_ledger_service().send_friend_request(
        from_user_id=g.user_id,
        to_user_id=data["friend_id"],
        message=data["message"],
    )
    db.session.commit()
    return jsonify({"data": friend_request_schema.dump(friend_request), "warnings": []}), 201


@friends_bp.route("/friend-requests/<request_id>/respond", methods=["POST"])
@require_auth
def respond_to_friend_request(request_id: str):
    """
    Accept or reject (addressee) or cancel (sender).
    Responding to an already-answered request is a 409 INVALID_TRANSITION.
    """
    data = FriendRequestActionSchema().load(request.get_json(force=True, silent=True) or {})
    friend_request = get_ledger_service().respond_to_friend_request(
        g.user_id, request_id, data["action"],
    )
    db.session.commit()
    return jsonify({"data": friend_request_schema.dump(friend_request), "warnings": []}), 200


@friends_bp.route("/friends/<friend_id>/block", methods=["POST"])
@require_auth
def block_user(friend_id: str):
    row = get_ledger_service().block_user(g.user_id, friend_id)
    db.session.commit()
    return jsonify({"data": friend_schema.dump(row), "warnings": []}), 200


@friends_bp.route("/friends/<friend_id>", methods=["DELETE"])
@require_auth
def remove_friend(friend_id: str):
    get_ledger_service().remove_friend(g.user_id, friend_id)
    db.session.commit()
    return jsonify({
        "data": {
            "removed": True,
            "friend_id": friend_id,
        },
        "warnings": [],
    }), 200
