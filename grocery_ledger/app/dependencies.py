"""Wires the ledger service to the request's database session."""

from __future__ import annotations

from flask import current_app

from grocery_ledger.app.extensions import db
from grocery_ledger.app.repositories.notifications import DatabaseNotifier
from grocery_ledger.app.repositories.retry import RetryPolicy
from grocery_ledger.app.repositories.sqlalchemy_repository import SqlAlchemyLedgerRepository
from grocery_ledger.app.services.ledger_service import ExpenseLedgerService


def get_ledger_service() -> ExpenseLedgerService:
    """
    Builds an ExpenseLedgerService bound to db.session.

    Cheap to call once per request. Everything it stages lands in the
    session the route commits.
    """
    config = current_app.config
    repository = SqlAlchemyLedgerRepository(
        db.session,
        retry_policy=RetryPolicy.from_config(config),
    )
    return ExpenseLedgerService(
        repository,
        DatabaseNotifier(db.session),
        share_tolerance_minor=config.get("SHARE_SUM_TOLERANCE_MINOR", 1),
        item_tolerance_minor=config.get("ITEM_TOTAL_TOLERANCE_MINOR", 1),
    )
