"""
routes/groups.py — Group route handlers.

Layer rules:
  - Parse, validate, call ONE service method, commit, return envelope.

Endpoints (url_prefix=/api/v1):
  POST /groups    → 201  create a group; the caller becomes its admin
  GET  /groups    → 200  groups the caller is an accepted member of

Balances and settlement plans for a group live in routes/balances.py.
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from grocery_ledger.app.dependencies import get_ledger_service
from grocery_ledger.app.extensions import db
from grocery_ledger.app.middleware.auth_middleware import require_auth
from grocery_ledger.app.schemas.group_schema import CreateGroupSchema
from grocery_ledger.app.schemas.response_schema import group_schema, groups_schema

groups_bp = Blueprint("groups", __name__)


@groups_bp.route("/groups", methods=["POST"])
@require_auth
def create_group():
    data = CreateGroupSchema().load(request.get_json(force=True, silent=True) or {})
    group = get_ledger_service().create_group(
        g.user_id,
        name=data["name"],
        description=data["description"],
    )
    db.session.commit()
    return jsonify({"data": group_schema.dump(group), "warnings": []}), 201


@groups_bp.route("/groups", methods=["GET"])
@require_auth
def list_groups():
    groups = get_ledger_service().list_groups(g.user_id)
    return jsonify({"data": groups_schema.dump(groups), "warnings": []}), 200
