"""
schemas/group_schema.py — Marshmallow schema for group creation.

IMPORTANT: Inherits from marshmallow.Schema directly, never ma.Schema.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, post_load, validate


def _validate_non_empty_after_trim(value: str) -> None:
    if not value.strip():
        raise ValidationError("Group name must not be blank.")


class CreateGroupSchema(Schema):
    """POST /groups"""

    name = fields.Str(
        required=True,
        validate=[
            validate.Length(min=1, max=100, error="Group name must be between 1 and 100 characters."),
            _validate_non_empty_after_trim,
        ],
    )

    description = fields.Str(
        load_default=None,
        allow_none=True,
        validate=validate.Length(max=500, error="Description must be at most 500 characters."),
    )

    @post_load
    def strip_name(self, data, **kwargs):
        data["name"] = data["name"].strip()
        return data
