"""
services/settlement_service.py — Reduces a balance graph to a short list of payments.

Pure functions; no Flask, no session.

Greedy debt netting:
  1. Project pair balances onto one net per user (balance_service.net_positions).
  2. The nets must sum to exactly zero. Amounts are integers, so anything
     else means stored data is inconsistent: raise LedgerIntegrityError.
  3. Repeatedly match the debtor with the largest deficit against the
     creditor with the largest surplus (ties broken by ascending user id),
     transfer min(deficit, surplus), and drop whoever reaches zero.

Every step zeroes at least one party and the final step zeroes two, so N
users with a non-zero net need at most N − 1 transfers. Applying the plan
drives every net to exactly zero.

The plan is a recommendation. Nothing here moves money or changes share
status.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping

from grocery_ledger.app.errors import LedgerIntegrityError
from grocery_ledger.app.services.balance_service import net_positions

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlannedTransfer:
    payer_id: str
    payee_id: str
    amount_minor: int

    def to_dict(self) -> dict:
        return {
            "payer_id": self.payer_id,
            "payee_id": self.payee_id,
            "amount":   self.amount_minor,
        }


def _largest(parties: dict[str, int]) -> str:
    # Largest magnitude first; equal magnitudes resolve to the lowest id.
    return min(parties, key=lambda uid: (-parties[uid], uid))


def plan_from_nets(nets: Mapping[str, int]) -> list[PlannedTransfer]:
    """
    Greedy plan over per-user nets (positive = owed money).

    Raises LedgerIntegrityError if the nets do not sum to zero.
    """
    total = sum(nets.values())
    if total != 0:
        raise LedgerIntegrityError(
            f"Net balances sum to {total} instead of 0 across {len(nets)} user(s)."
        )

    creditors = {uid: amount for uid, amount in nets.items() if amount > 0}
    debtors = {uid: -amount for uid, amount in nets.items() if amount < 0}

    transfers: list[PlannedTransfer] = []
    while debtors and creditors:
        debtor = _largest(debtors)
        creditor = _largest(creditors)
        amount = min(debtors[debtor], creditors[creditor])

        transfers.append(PlannedTransfer(payer_id=debtor, payee_id=creditor, amount_minor=amount))

        debtors[debtor] -= amount
        creditors[creditor] -= amount
        if debtors[debtor] == 0:
            del debtors[debtor]
        if creditors[creditor] == 0:
            del creditors[creditor]

    return transfers


def plan_settlements(balances: Mapping[tuple[str, str], int]) -> list[PlannedTransfer]:
    """
    Minimal ordered payment list for a {(debtor, creditor): amount} graph.

        plan_settlements({("C", "A"): 300}) == [PlannedTransfer("C", "A", 300)]

    An empty list means everyone in scope is already square.
    """
    transfers = plan_from_nets(net_positions(balances))
    logger.debug(
        "Planned %d transfer(s) for %d balance edge(s).",
        len(transfers), len(balances),
    )
    return transfers
