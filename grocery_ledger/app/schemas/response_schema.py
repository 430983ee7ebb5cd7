"""
schemas/response_schema.py — Output shapes for ledger resources.

These are dumped inside a request, so they use ma.Schema (see extensions.py).
Amounts stay integers in minor units. Percentages and quantities are
Decimal and go out as strings.
"""

from __future__ import annotations

from marshmallow import fields

from grocery_ledger.app.extensions import ma
from grocery_ledger.app.models.expense import SplitMode
from grocery_ledger.app.models.friend import FriendRequestStatus, FriendStatus
from grocery_ledger.app.models.share import ShareStatus


class ExpenseItemResponseSchema(ma.Schema):
    id                = fields.Str()
    grocery_item_id   = fields.Str(allow_none=True)
    position          = fields.Int()
    description       = fields.Str(allow_none=True)
    quantity          = fields.Decimal(as_string=True)
    unit_price_minor  = fields.Int()
    total_price_minor = fields.Int()


class ExpenseShareResponseSchema(ma.Schema):
    id           = fields.Str()
    expense_id   = fields.Str()
    user_id      = fields.Str()
    amount_minor = fields.Int()
    percentage   = fields.Decimal(as_string=True, allow_none=True)
    status       = fields.Enum(ShareStatus, by_value=True)
    paid_at      = fields.DateTime(allow_none=True)
    updated_at   = fields.DateTime(allow_none=True)


class ExpenseResponseSchema(ma.Schema):
    id            = fields.Str()
    created_by    = fields.Str()
    group_id      = fields.Str(allow_none=True)
    total_minor   = fields.Int()
    split_mode    = fields.Enum(SplitMode, by_value=True)
    purchase_date = fields.Date()
    store_name    = fields.Str(allow_none=True)
    notes         = fields.Str(allow_none=True)
    created_at    = fields.DateTime()
    items         = fields.List(fields.Nested(ExpenseItemResponseSchema))
    shares        = fields.List(fields.Nested(ExpenseShareResponseSchema))


class FriendRequestResponseSchema(ma.Schema):
    id           = fields.Str()
    from_user_id = fields.Str()
    to_user_id   = fields.Str()
    message      = fields.Str(allow_none=True)
    status       = fields.Enum(FriendRequestStatus, by_value=True)
    created_at   = fields.DateTime()
    updated_at   = fields.DateTime(allow_none=True)


class FriendResponseSchema(ma.Schema):
    """One directed Friend row, seen from user_id."""

    friend_id  = fields.Str()
    status     = fields.Enum(FriendStatus, by_value=True)
    created_at = fields.DateTime()


class GroupResponseSchema(ma.Schema):
    id          = fields.Str()
    name        = fields.Str()
    description = fields.Str(allow_none=True)
    created_by  = fields.Str()
    created_at  = fields.DateTime()


expense_schema = ExpenseResponseSchema()
expenses_schema = ExpenseResponseSchema(many=True)
share_schema = ExpenseShareResponseSchema()
friend_request_schema = FriendRequestResponseSchema()
friend_requests_schema = FriendRequestResponseSchema(many=True)
friend_schema = FriendResponseSchema()
friends_schema = FriendResponseSchema(many=True)
group_schema = GroupResponseSchema()
groups_schema = GroupResponseSchema(many=True)
