"""
routes/shares.py — Share status route handler.

Endpoint (url_prefix=/api/v1):
  PATCH /expense-shares/:id   → 200  {"status": "accepted" | "rejected" | "paid" | "cancelled"}

409 STATUS_CONFLICT means the share changed between read and write;
the client should refetch the expense and decide again.
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from grocery_ledger.app.dependencies import get_ledger_service
from grocery_ledger.app.extensions import db
from grocery_ledger.app.middleware.auth_middleware import require_auth
from grocery_ledger.app.schemas.response_schema import share_schema
from grocery_ledger.app.schemas.share_schema import UpdateShareStatusSchema

shares_bp = Blueprint("shares", __name__)


@shares_bp.route("/expense-shares/<share_id>", methods=["PATCH"])
@require_auth
def update_share_status(share_id: str):
    data = UpdateShareStatusSchema().load(request.get_json(force=True, silent=True) or {})
    share = get_ledger_service().update_share_status(g.user_id, share_id, data["status"])
    db.session.commit()
    return jsonify({"data": share_schema.dump(share), "warnings": []}), 200
