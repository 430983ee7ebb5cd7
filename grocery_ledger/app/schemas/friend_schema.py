"""
schemas/friend_schema.py — Marshmallow schemas for friend request endpoints.

IMPORTANT: Inherits from marshmallow.Schema directly, never ma.Schema.
"""

from __future__ import annotations

from marshmallow import Schema, fields, pre_load, validate

from grocery_ledger.app.errors import ErrorCode
from grocery_ledger.app.services.status_tracker import FRIEND_REQUEST_ACTIONS


class CreateFriendRequestSchema(Schema):
    """POST /friend-requests"""

    friend_id = fields.Str(
        required=True,
        validate=validate.Length(min=1, max=36, error="friend_id must not be blank."),
    )

    message = fields.Str(
        load_default=None,
        allow_none=True,
        validate=validate.Length(max=500, error="Message must be at most 500 characters."),
    )

    @pre_load
    def strip_friend_id(self, data, **kwargs):
        if isinstance(data, dict) and isinstance(data.get("friend_id"), str):
            data = {**data, "friend_id": data["friend_id"].strip()}
        return data


class FriendRequestActionSchema(Schema):
    """POST /friend-requests/:id/respond"""

    action = fields.Str(
        required=True,
        validate=validate.OneOf(sorted(FRIEND_REQUEST_ACTIONS), error=ErrorCode.INVALID_ACTION),
    )
