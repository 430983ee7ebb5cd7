"""
services/balance_service.py — Folds share lines into net balances per user pair.

This file is the single source of truth for how balances are computed.
Any change to how balances work must be made here; settlement planning and
every balance endpoint follow from it.

Layer rules:
  - No Flask imports, no session. Input is a list of ShareLine values
    already loaded by the repository; output is plain dicts.
  - Fully unit-testable without a database.

Balance shape:
  {(debtor_id, creditor_id): amount_minor}, amount always > 0. Each
  unordered pair appears at most once; pairs that net to zero are omitted.

Which lines count:
  pending, accepted   the participant still owes the creator
  paid                settled; contributes nothing
  rejected, cancelled never owed; contributes nothing
  A participant's share of their own expense contributes nothing.

Conservation:
  sum(net_positions(balances).values()) == 0 for any input, because every
  entry is recorded once as a debit and once as a credit.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Mapping

from grocery_ledger.app.errors import LedgerIntegrityError
from grocery_ledger.app.models.share import ShareStatus
from grocery_ledger.app.ports import ShareLine

Balances = dict[tuple[str, str], int]

OUTSTANDING_STATUSES: frozenset[ShareStatus] = frozenset({
    ShareStatus.PENDING,
    ShareStatus.ACCEPTED,
})


def contributes_debt(line: ShareLine) -> bool:
    return line.status in OUTSTANDING_STATUSES and line.participant_id != line.creator_id


# ── Core algorithms ────────────────────────────────────────────────────────

def compute_balances(lines: Iterable[ShareLine]) -> Balances:
    """
    Nets every outstanding share into one signed accumulator per unordered pair.

    The accumulator is keyed (low_id, high_id); positive means low owes high.
    The sign of the final value picks the debtor.

        A creates 900 split A/B/C, B has paid:
        compute_balances(lines) == {("C", "A"): 300}
    """
    accumulators: dict[tuple[str, str], int] = defaultdict(int)

    for line in lines:
        if not contributes_debt(line):
            continue
        debtor, creditor = line.participant_id, line.creator_id
        if debtor < creditor:
            accumulators[(debtor, creditor)] += line.amount_minor
        else:
            accumulators[(creditor, debtor)] -= line.amount_minor

    balances: Balances = {}
    for (low, high), amount in accumulators.items():
        if amount > 0:
            balances[(low, high)] = amount
        elif amount < 0:
            balances[(high, low)] = -amount
    return balances


def net_positions(balances: Mapping[tuple[str, str], int]) -> dict[str, int]:
    """
    Projects the pair graph onto one number per user.

    Positive = the user is owed money overall, negative = the user owes.
    Users whose position nets to zero are kept with 0 so callers can see
    who took part.
    """
    nets: dict[str, int] = defaultdict(int)
    for (debtor, creditor), amount in balances.items():
        nets[debtor] -= amount
        nets[creditor] += amount
    return dict(nets)


def balance_between(balances: Mapping[tuple[str, str], int], user_a: str, user_b: str) -> int:
    """Signed view of one pair: positive means user_a owes user_b."""
    return balances.get((user_a, user_b), 0) - balances.get((user_b, user_a), 0)


def sorted_balance_rows(balances: Mapping[tuple[str, str], int]) -> list[dict]:
    """Response shape, ordered by (debtor_id, creditor_id)."""
    return [
        {"debtor_id": debtor, "creditor_id": creditor, "amount": amount}
        for (debtor, creditor), amount in sorted(balances.items())
    ]


# ── Integrity ──────────────────────────────────────────────────────────────

def verify_share_totals(
        lines: Iterable[ShareLine],
        expense_totals: Mapping[str, int],
        tolerance_minor: int = 1,
) -> None:
    """
    Checks that each expense's shares still add up to its total.

    For an expense with no cancelled share, the sum of its share amounts
    must equal the total within tolerance_minor. Cancelling a share removes
    it from the sum, so for those expenses the remaining shares must not
    exceed the total.

    Raises LedgerIntegrityError on the first expense out of range. Never
    corrects anything.
    """
    sums: dict[str, int] = defaultdict(int)
    has_cancelled: set[str] = set()

    for line in lines:
        if line.status == ShareStatus.CANCELLED:
            has_cancelled.add(line.expense_id)
            continue
        sums[line.expense_id] += line.amount_minor

    for expense_id, total in sorted(expense_totals.items()):
        share_sum = sums.get(expense_id, 0)
        if expense_id in has_cancelled:
            if share_sum > total + tolerance_minor:
                raise LedgerIntegrityError(
                    f"Expense {expense_id}: non-cancelled shares sum to {share_sum}, "
                    f"above the total {total}."
                )
        elif abs(share_sum - total) > tolerance_minor:
            raise LedgerIntegrityError(
                f"Expense {expense_id}: shares sum to {share_sum}, "
                f"expected {total} (tolerance {tolerance_minor})."
            )
