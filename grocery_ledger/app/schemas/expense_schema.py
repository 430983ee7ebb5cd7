"""
schemas/expense_schema.py — Marshmallow schemas for expense endpoints.

Validation responsibility:
  - This file:
      - Field types, lengths, enum values
      - total_minor / unit_price_minor are JSON integers (minor units).
        Floats such as 12.5 are rejected, never rounded.
      - DUPLICATE_PARTICIPANT        (400) — request shape rule
      - WEIGHTS_SENT_FOR_EQUAL_MODE  (400) — request shape rule
      - WEIGHTS_REQUIRED             (400) — percentage mode without weights
  - services/share_calculator.py:
      - weights cover exactly the participants and sum to 100
      - weight precision (≤ 2 dp)
  - services/ledger_service.py:
      - ITEM_TOTAL_MISMATCH, group membership, blocked participants

IMPORTANT: Inherits from marshmallow.Schema directly, never ma.Schema.
           See extensions.py for the full explanation.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate, validates_schema

from grocery_ledger.app.errors import ErrorCode
from grocery_ledger.app.models.expense import SplitMode


def _validate_non_empty_after_trim(value: str) -> None:
    # validate.Length(min=1) alone lets "   " through.
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


class ExpenseItemInputSchema(Schema):
    """One receipt line. total_price_minor is computed server-side."""

    description = fields.Str(
        load_default=None,
        allow_none=True,
        validate=validate.Length(max=255),
    )

    quantity = fields.Decimal(
        load_default=None,
        allow_nan=False,
        validate=validate.Range(min=0, min_inclusive=False, error="Quantity must be greater than zero."),
    )

    unit_price_minor = fields.Int(
        required=True,
        strict=True,
        validate=validate.Range(min=0, error=ErrorCode.INVALID_AMOUNT),
    )

    grocery_item_id = fields.Str(load_default=None, allow_none=True)


class CreateExpenseSchema(Schema):
    """
    POST /expenses

    Split mode behaviour:
      - split_mode='equal'      → client must NOT send weights.
      - split_mode='percentage' → client MUST send weights, one per participant.

    The authenticated user is always the payer; there is no payer field.
    """

    total_minor = fields.Int(
        required=True,
        strict=True,
        validate=validate.Range(min=1, error=ErrorCode.NON_POSITIVE_TOTAL),
    )

    participant_ids = fields.List(
        fields.Str(validate=[validate.Length(min=1, max=36), _validate_non_empty_after_trim]),
        required=True,
        validate=validate.Length(min=1, error=ErrorCode.INVALID_PARTICIPANT_SET),
    )

    split_mode = fields.Enum(
        SplitMode,
        load_default=SplitMode.EQUAL,
        by_value=True,
        error_messages={"unknown": ErrorCode.INVALID_SPLIT_MODE},
    )

    # {user_id: percentage}. Exactness is checked by the share calculator.
    weights = fields.Dict(
        keys=fields.Str(),
        values=fields.Decimal(allow_nan=False),
        load_default=None,
        allow_none=True,
    )

    group_id = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=36))

    items = fields.List(
        fields.Nested(ExpenseItemInputSchema),
        load_default=None,
        allow_none=True,
    )

    purchase_date = fields.Date(load_default=None, allow_none=True)

    store_name = fields.Str(
        load_default=None,
        allow_none=True,
        validate=validate.Length(max=255),
    )

    notes = fields.Str(load_default=None, allow_none=True)

    @validates_schema
    def validate_split_coherence(self, data: dict, **kwargs) -> None:
        """
        1. DUPLICATE_PARTICIPANT: the same id listed twice.
        2. WEIGHTS_SENT_FOR_EQUAL_MODE: weights with split_mode='equal'.
        3. WEIGHTS_REQUIRED: no weights with split_mode='percentage'.
        """
        participant_ids = data.get("participant_ids") or []
        if len(set(participant_ids)) != len(participant_ids):
            raise ValidationError(ErrorCode.DUPLICATE_PARTICIPANT, field_name="participant_ids")

        split_mode = data.get("split_mode", SplitMode.EQUAL)
        weights = data.get("weights")

        if split_mode == SplitMode.EQUAL and weights:
            raise ValidationError(ErrorCode.WEIGHTS_SENT_FOR_EQUAL_MODE, field_name="weights")

        if split_mode == SplitMode.PERCENTAGE and not weights:
            raise ValidationError(ErrorCode.WEIGHTS_REQUIRED, field_name="weights")
