"""
routes/expenses.py — Expense route handlers.

Layer rules:
  - Parse, validate, call ONE service method, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.

Endpoints (url_prefix=/api/v1):
  POST   /expenses        → 201  create expense (caller is the payer)
  GET    /expenses        → 200  expenses the caller created or shares in
  GET    /expenses/:id    → 200  expense with items and shares
  DELETE /expenses/:id    → 200  hard delete, creator only
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from grocery_ledger.app.dependencies import get_ledger_service
from grocery_ledger.app.extensions import db
from grocery_ledger.app.middleware.auth_middleware import require_auth
from grocery_ledger.app.schemas.expense_schema import CreateExpenseSchema
from grocery_ledger.app.schemas.response_schema import expense_schema, expenses_schema

expenses_bp = Blueprint("expenses", __name__)


@expenses_bp.route("/expenses", methods=["POST"])
@require_auth
def create_expense():
    """POST /expenses — Record an expense and fan it out into shares."""
    data = CreateExpenseSchema().load(request.get_json(force=True, silent=True) or {})
    expense = get_ledger_service().create_expense(
        payer_id=g.user_id,
        total_minor=data["total_minor"],
        participant_ids=data["participant_ids"],
        mode=data["split_mode"],
        weights=data["weights"],
        group_id=data["group_id"],
        items=data["items"],
        purchase_date=data["purchase_date"],
        store_name=data["store_name"],
        notes=data["notes"],
    )
    db.session.commit()
    return jsonify({"data": expense_schema.dump(expense), "warnings": []}), 201


@expenses_bp.route("/expenses", methods=["GET"])
@require_auth
def list_expenses():
    expenses = get_ledger_service().list_expenses(g.user_id)
    return jsonify({"data": expenses_schema.dump(expenses), "warnings": []}), 200


@expenses_bp.route("/expenses/<expense_id>", methods=["GET"])
@require_auth
def get_expense(expense_id: str):
    expense = get_ledger_service().get_expense(g.user_id, expense_id)
    return jsonify({"data": expense_schema.dump(expense), "warnings": []}), 200


@expenses_bp.route("/expenses/<expense_id>", methods=["DELETE"])
@require_auth
def delete_expense(expense_id: str):
    """
    DELETE /expenses/:id — Removes the expense, its items and its shares.
    Balances recomputed afterwards no longer include it.
    """
    get_ledger_service().delete_expense(g.user_id, expense_id)
    db.session.commit()
    return jsonify({
        "data": {
            "deleted": True,
            "expense_id": expense_id,
        },
        "warnings": [],
    }), 200
