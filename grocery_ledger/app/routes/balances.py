"""
routes/balances.py — Balance and settlement plan route handlers.

Layer rules:
  - Call ONE service method, return envelope. Read-only: nothing to commit.

Endpoints (url_prefix=/api/v1):
  GET /groups/:id/balances             → 200  pairwise balances in a group
  GET /groups/:id/settlements          → 200  minimal payment plan for a group
  GET /friends/:friend_id/balance      → 200  balance with one friend
  GET /friends/:friend_id/settlements  → 200  payment plan with one friend

Balances are returned as [{debtor_id, creditor_id, amount}] sorted by
(debtor_id, creditor_id); plans as ordered [{payer_id, payee_id, amount}].
Every amount is an integer in minor currency units.
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify

from grocery_ledger.app.dependencies import get_ledger_service
from grocery_ledger.app.middleware.auth_middleware import require_auth
from grocery_ledger.app.services.balance_service import (
    balance_between,
    net_positions,
    sorted_balance_rows,
)

balances_bp = Blueprint("balances", __name__)


@balances_bp.route("/groups/<group_id>/balances", methods=["GET"])
@require_auth
def get_group_balances(group_id: str):
    balances = get_ledger_service().get_group_balances(g.user_id, group_id)
    return jsonify({
        "data": {
            "group_id": group_id,
            "balances": sorted_balance_rows(balances),
            "net_positions": dict(sorted(net_positions(balances).items())),
        },
        "warnings": [],
    }), 200


@balances_bp.route("/groups/<group_id>/settlements", methods=["GET"])
@require_auth
def get_group_settlements(group_id: str):
    plan = get_ledger_service().get_settlement_plan(g.user_id, group_id=group_id)
    return jsonify({
        "data": {
            "group_id": group_id,
            "transfers": [transfer.to_dict() for transfer in plan],
        },
        "warnings": [],
    }), 200


@balances_bp.route("/friends/<friend_id>/balance", methods=["GET"])
@require_auth
def get_friend_balance(friend_id: str):
    """`net` is positive when the caller owes the friend."""
    balances = get_ledger_service().get_friend_balance(g.user_id, friend_id)
    return jsonify({
        "data": {
            "friend_id": friend_id,
            "balances": sorted_balance_rows(balances),
            "net": balance_between(balances, g.user_id, friend_id),
        },
        "warnings": [],
    }), 200


@balances_bp.route("/friends/<friend_id>/settlements", methods=["GET"])
@require_auth
def get_friend_settlements(friend_id: str):
    plan = get_ledger_service().get_settlement_plan(g.user_id, friend_id=friend_id)
    return jsonify({
        "data": {
            "friend_id": friend_id,
            "transfers": [transfer.to_dict() for transfer in plan],
        },
        "warnings": [],
    }), 200
