"""
app/__init__.py — Flask application factory.

Pattern: create_app(config_name) creates and returns a configured Flask app.
         Nothing is initialised at import time, so tests can build as many
         isolated app instances as they need.

Responsibilities:
  1. Load configuration from config_by_name[config_name]
  2. Configure logging from LOG_LEVEL
  3. Initialise extensions (SQLAlchemy, Marshmallow) via init_app()
  4. Register all route blueprints under /api/v1
  5. Register global error handlers (AppError → JSON, Exception → 500)
  6. Register a JSON provider that serialises Decimal as string
     (percentages and quantities; money is always an integer)
  7. Register the `flask init-db` command
"""

from __future__ import annotations

import logging
import traceback
from decimal import Decimal

import click
from flask import Flask, jsonify
from flask.json.provider import DefaultJSONProvider
from marshmallow import ValidationError as SchemaValidationError
from werkzeug.exceptions import HTTPException

from grocery_ledger.config import config_by_name, validate_production_config


# ── Custom JSON provider ───────────────────────────────────────────────────

class DecimalJSONProvider(DefaultJSONProvider):
    """
    Serialises Decimal as str so jsonify() never turns Decimal("33.33")
    into a binary float.
    """

    def default(self, o):
        if isinstance(o, Decimal):
            return str(o)
        return super().default(o)


# ── Application factory ────────────────────────────────────────────────────

def create_app(config_name: str = "development") -> Flask:
    """
    Creates and returns a configured Flask application instance.

    Args:
        config_name: One of "development", "testing", "production".
                     Resolved via config_by_name in config.py.
    """
    app = Flask(__name__)
    app.json_provider_class = DecimalJSONProvider
    app.json = DecimalJSONProvider(app)

    # ── Configuration ──────────────────────────────────────────────────────
    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)

    if config_name == "production":
        validate_production_config(app)  # raises ValueError if misconfigured

    _configure_logging(app)

    # ── Extensions ─────────────────────────────────────────────────────────
    # Import here (not at module top) to avoid circular imports.
    from grocery_ledger.app.extensions import db, ma
    db.init_app(app)
    ma.init_app(app)

    # ── Model registration ─────────────────────────────────────────────────
    # Populates db.metadata so create_all() sees every table.
    with app.app_context():
        import grocery_ledger.app.models  # noqa: F401

    _register_blueprints(app)
    _register_error_handlers(app)
    _register_commands(app)

    return app


def _configure_logging(app: Flask) -> None:
    """
    Sets the level for the app logger and every grocery_ledger.* logger.

    Handlers are left to the process (gunicorn, flask run, pytest caplog).
    """
    level = logging.getLevelName(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(level=level)
    logging.getLogger("grocery_ledger").setLevel(level)
    app.logger.setLevel(level)


def _register_blueprints(app: Flask) -> None:
    """
    Registers all route blueprints under the /api/v1 prefix.

    Each blueprint owns full resource paths (/expenses, /friends/<id>/...),
    so the prefix is the same for all of them.
    """
    from grocery_ledger.app.routes.balances import balances_bp
    from grocery_ledger.app.routes.expenses import expenses_bp
    from grocery_ledger.app.routes.friends import friends_bp
    from grocery_ledger.app.routes.groups import groups_bp
    from grocery_ledger.app.routes.shares import shares_bp

    app.register_blueprint(expenses_bp, url_prefix="/api/v1")
    app.register_blueprint(shares_bp,   url_prefix="/api/v1")
    app.register_blueprint(friends_bp,  url_prefix="/api/v1")
    app.register_blueprint(groups_bp,   url_prefix="/api/v1")
    app.register_blueprint(balances_bp, url_prefix="/api/v1")


def _register_error_handlers(app: Flask) -> None:
    """
    Registers global error handlers.

    Handlers:
      AppError              → structured JSON error envelope with its HTTP status.
                              Opaque errors (integrity, dependency) are logged
                              at ERROR with their reference before responding.
      SchemaValidationError → marshmallow errors as MISSING_FIELD /
                              INVALID_FIELD (or a registered code) with 400
      Exception             → generic INTERNAL_ERROR (500); traceback logged

    Stack traces and internal messages never leave the server.
    """
    from grocery_ledger.app.errors import AppError, ErrorCode
    from grocery_ledger.app.extensions import db

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        """Routes never catch AppError; they let it propagate here."""
        if error.opaque:
            db.session.rollback()
            app.logger.error(
                "%s [reference=%s]: %s",
                error.code,
                error.reference,
                error.message,
            )
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(SchemaValidationError)
    def handle_validation_error(error: SchemaValidationError):
        """
        Returns the FIRST schema error only.

        If the message is itself a registered ErrorCode it becomes the code
        and a readable default message is substituted.
        """
        messages = error.messages

        field = None
        raw_message = "Invalid input."
        code = ErrorCode.INVALID_FIELD

        if isinstance(messages, dict):
            for field_name, field_errors in messages.items():
                field = field_name if field_name != "_schema" else None
                raw_message = _first_message(field_errors)
                break
        elif isinstance(messages, list) and messages:
            raw_message = str(messages[0])

        known_codes = {v for k, v in vars(ErrorCode).items() if not k.startswith("_")}
        if raw_message in known_codes:
            code = raw_message
            message = _code_to_message(code)
        else:
            if raw_message.startswith("Missing data for required field"):
                code = ErrorCode.MISSING_FIELD
            message = raw_message

        body = {"error": {"code": code, "message": message}}
        if field is not None:
            body["error"]["field"] = field
        return jsonify(body), 400

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        if isinstance(error, HTTPException):
            # Unknown routes, wrong methods: keep werkzeug's own status.
            return error
        app.logger.error(
            "Unhandled exception: %s\n%s",
            str(error),
            traceback.format_exc(),
        )
        db.session.rollback()
        return jsonify({
            "error": {
                "code": ErrorCode.INTERNAL_ERROR,
                "message": "An unexpected error occurred. Please try again later.",
            }
        }), 500


def _first_message(field_errors) -> str:
    """Digs the first string out of marshmallow's nested messages structure."""
    while True:
        if isinstance(field_errors, list):
            if not field_errors:
                return "Invalid value."
            field_errors = field_errors[0]
        elif isinstance(field_errors, dict):
            if not field_errors:
                return "Invalid value."
            field_errors = next(iter(field_errors.values()))
        else:
            return str(field_errors)


def _register_commands(app: Flask) -> None:

    @app.cli.command("init-db")
    @click.option("--drop", is_flag=True, help="Drop all tables before creating them.")
    def init_db(drop: bool) -> None:
        """Create every table that does not exist yet."""
        from grocery_ledger.app.extensions import db

        if drop:
            db.drop_all()
            click.echo("Dropped all tables.")
        db.create_all()
        click.echo("Database tables created.")


def _code_to_message(code: str) -> str:
    """Human-readable default message for a code raised as a schema message."""
    _messages = {
        "INVALID_SPLIT_MODE": "split_mode must be 'equal' or 'percentage'.",
        "INVALID_STATUS": "status must be one of: pending, accepted, rejected, paid, cancelled.",
        "INVALID_ACTION": "action must be one of: accept, cancel, reject.",
        "INVALID_AMOUNT": "Amounts must be non-negative integers in minor currency units.",
        "INVALID_PARTICIPANT_SET": "At least one participant is required.",
        "NON_POSITIVE_TOTAL": "total_minor must be a positive integer in minor currency units.",
        "DUPLICATE_PARTICIPANT": "The same user id appears more than once in participant_ids.",
        "WEIGHTS_SENT_FOR_EQUAL_MODE": "Do not send weights when split_mode is 'equal'.",
        "WEIGHTS_REQUIRED": "Percentage split requires a weight for every participant.",
    }
    return _messages.get(code, "Invalid input.")
