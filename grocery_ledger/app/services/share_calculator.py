"""
services/share_calculator.py — Turns an expense total into per-participant shares.

Pure functions. No Flask, no session, no I/O.

All amounts are integers in minor currency units. Decimal is used only for
percentage weights and item quantities; results are always whole minor
units and always sum to the total exactly.

Equal mode (largest remainder):
  Participants are ordered by ascending id. Everyone gets total // N and
  the first total % N participants get one extra minor unit.
      compute_shares(100, ["a", "b", "c"], EQUAL) → a=34, b=33, c=33

Percentage mode:
  Every participant carries a weight; weights sum to exactly 100 and have
  at most two decimal places. Each share is round-half-even(total × w / 100);
  the last participant (ascending id) takes whatever is left so the sum is
  exact.
      compute_shares(1000, ["a", "b", "c"], PERCENTAGE,
                     {"a": 50, "b": 30, "c": 20}) → a=500, b=300, c=200

Payer policy:
  The payer is a beneficiary only when their id is in participant_ids. This
  module never adds or removes anyone; it splits among exactly who it is
  given.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN
from typing import Iterable, Mapping

from grocery_ledger.app.errors import (
    ErrorCode,
    InvalidParticipantSet,
    NonPositiveTotal,
    ValidationError,
    WeightsDoNotSumTo100,
)
from grocery_ledger.app.models.expense import SplitMode

HUNDRED = Decimal("100")
_WEIGHT_EXPONENT = Decimal("0.01")
_WHOLE_UNIT = Decimal("1")


@dataclass(frozen=True)
class ComputedShare:
    user_id: str
    amount_minor: int
    percentage: Decimal | None = None


# ── Input validation ───────────────────────────────────────────────────────

def _validate_total(total_minor) -> int:
    # bool is an int subclass; True is not a valid amount.
    if isinstance(total_minor, bool) or not isinstance(total_minor, int):
        raise NonPositiveTotal("total_minor must be an integer number of minor currency units.")
    if total_minor <= 0:
        raise NonPositiveTotal(f"total_minor must be positive, got {total_minor}.")
    return total_minor


def _validate_participants(participant_ids: Iterable[str]) -> list[str]:
    """Returns the participant ids in ascending order."""
    ids = list(participant_ids)
    if not ids:
        raise InvalidParticipantSet("At least one participant is required.")

    for user_id in ids:
        if not isinstance(user_id, str) or not user_id.strip():
            raise InvalidParticipantSet(f"Invalid participant id: {user_id!r}.")

    if len(set(ids)) != len(ids):
        duplicates = sorted({uid for uid in ids if ids.count(uid) > 1})
        raise InvalidParticipantSet(
            f"Participant ids must be unique; duplicated: {', '.join(duplicates)}."
        )

    return sorted(ids)


def _to_weight(user_id: str, raw) -> Decimal:
    if isinstance(raw, bool) or isinstance(raw, float):
        # Binary floats cannot represent most percentages exactly.
        raise ValidationError(
            ErrorCode.INVALID_WEIGHT,
            f"Weight for {user_id} must be an integer or decimal, not {type(raw).__name__}.",
            field="weights",
        )
    try:
        weight = raw if isinstance(raw, Decimal) else Decimal(str(raw))
    except InvalidOperation:
        raise ValidationError(
            ErrorCode.INVALID_WEIGHT,
            f"Weight for {user_id} is not a number: {raw!r}.",
            field="weights",
        )

    if not weight.is_finite() or weight < 0:
        raise ValidationError(
            ErrorCode.INVALID_WEIGHT,
            f"Weight for {user_id} must be a non-negative number.",
            field="weights",
        )
    if weight != weight.quantize(_WEIGHT_EXPONENT):
        raise ValidationError(
            ErrorCode.INVALID_WEIGHT,
            f"Weight for {user_id} has more than 2 decimal places.",
            field="weights",
        )
    return weight


def _validate_weights(ordered_ids: list[str], weights: Mapping[str, object] | None) -> dict[str, Decimal]:
    if not weights:
        raise ValidationError(
            ErrorCode.WEIGHTS_REQUIRED,
            "Percentage split requires a weight for every participant.",
            field="weights",
        )

    expected = set(ordered_ids)
    given = set(weights)
    if given != expected:
        missing = sorted(expected - given)
        unknown = sorted(given - expected)
        details = []
        if missing:
            details.append(f"missing weights for {', '.join(missing)}")
        if unknown:
            details.append(f"weights for non-participants {', '.join(unknown)}")
        raise InvalidParticipantSet(
            "Weights must cover exactly the participants: " + "; ".join(details) + ".",
            field="weights",
        )

    parsed = {uid: _to_weight(uid, weights[uid]) for uid in ordered_ids}
    weight_sum = sum(parsed.values(), Decimal("0"))
    if weight_sum != HUNDRED:
        raise WeightsDoNotSumTo100(f"Weights must sum to exactly 100, got {weight_sum}.")
    return parsed


# ── Public API ─────────────────────────────────────────────────────────────

def compute_shares(
        total_minor: int,
        participant_ids: Iterable[str],
        mode: SplitMode | str,
        weights: Mapping[str, object] | None = None,
) -> list[ComputedShare]:
    """
    Splits total_minor among participant_ids.

    Returns one ComputedShare per participant, ordered by ascending user id.
    sum(share.amount_minor) == total_minor always holds for the result.

    Raises:
        NonPositiveTotal        total is not a positive integer.
        InvalidParticipantSet   empty or duplicate ids, or weights that do
                                not cover exactly the participants.
        WeightsDoNotSumTo100    percentage weights off 100.
        ValidationError         unknown mode, malformed weight, or weights
                                passed for an equal split.
    """
    total = _validate_total(total_minor)
    ordered = _validate_participants(participant_ids)

    try:
        mode = SplitMode(mode)
    except ValueError:
        raise ValidationError(
            ErrorCode.INVALID_SPLIT_MODE,
            f"split_mode must be one of: {', '.join(m.value for m in SplitMode)}.",
            field="split_mode",
        )

    if mode == SplitMode.EQUAL:
        if weights:
            raise ValidationError(
                ErrorCode.WEIGHTS_SENT_FOR_EQUAL_MODE,
                "Do not send weights when split_mode is 'equal'.",
                field="weights",
            )
        return _equal_shares(total, ordered)

    return _percentage_shares(total, ordered, _validate_weights(ordered, weights))


def _equal_shares(total: int, ordered_ids: list[str]) -> list[ComputedShare]:
    base, remainder = divmod(total, len(ordered_ids))
    return [
        ComputedShare(user_id=uid, amount_minor=base + 1 if index < remainder else base)
        for index, uid in enumerate(ordered_ids)
    ]


def _percentage_shares(
        total: int,
        ordered_ids: list[str],
        weights: dict[str, Decimal],
) -> list[ComputedShare]:
    shares: list[ComputedShare] = []
    allocated = 0

    for uid in ordered_ids[:-1]:
        amount = int(
            (Decimal(total) * weights[uid] / HUNDRED).quantize(_WHOLE_UNIT, rounding=ROUND_HALF_EVEN)
        )
        allocated += amount
        shares.append(ComputedShare(user_id=uid, amount_minor=amount, percentage=weights[uid]))

    last = ordered_ids[-1]
    residual = total - allocated
    if residual < 0:
        # Only reachable with a near-zero last weight on a tiny total.
        raise ValidationError(
            ErrorCode.INVALID_WEIGHT,
            f"Weights cannot be applied to a total of {total} minor units without "
            f"giving {last} a negative share.",
            field="weights",
        )
    shares.append(ComputedShare(user_id=last, amount_minor=residual, percentage=weights[last]))
    return shares


def line_total_minor(quantity, unit_price_minor: int) -> int:
    """
    quantity × unit_price_minor rounded half-even to a whole minor unit.

        line_total_minor(Decimal("1.5"), 199) → 298   (298.5 rounds to even)
    """
    if isinstance(unit_price_minor, bool) or not isinstance(unit_price_minor, int) or unit_price_minor < 0:
        raise ValidationError(
            ErrorCode.INVALID_AMOUNT,
            "unit_price_minor must be a non-negative integer.",
            field="items",
        )
    qty = quantity if isinstance(quantity, Decimal) else Decimal(str(quantity))
    if not qty.is_finite() or qty <= 0:
        raise ValidationError(
            ErrorCode.INVALID_FIELD,
            "Item quantity must be greater than zero.",
            field="items",
        )
    return int((qty * unit_price_minor).quantize(_WHOLE_UNIT, rounding=ROUND_HALF_EVEN))
