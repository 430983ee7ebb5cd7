"""
schemas/share_schema.py — Marshmallow schema for PATCH /expense-shares/:id.

Only the target status is validated here. Whether the transition is legal
is decided by services/status_tracker.py against the stored status.
"""

from __future__ import annotations

from marshmallow import Schema, fields

from grocery_ledger.app.errors import ErrorCode
from grocery_ledger.app.models.share import ShareStatus


class UpdateShareStatusSchema(Schema):

    status = fields.Enum(
        ShareStatus,
        required=True,
        by_value=True,
        error_messages={"unknown": ErrorCode.INVALID_STATUS},
    )
