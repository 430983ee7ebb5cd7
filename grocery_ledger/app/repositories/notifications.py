"""
repositories/notifications.py — NotificationPort that records Notification rows.

The row is written inside a SAVEPOINT on the request's session and
committed with the ledger change that caused it. A row the store rejects
rolls back only that savepoint and surfaces as DependencyError, which the
ledger service logs and drops; the surrounding ledger change is untouched.

Delivery (push, email) is somebody else's job; this adapter only leaves
the record behind for it.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from grocery_ledger.app.errors import DependencyError
from grocery_ledger.app.models.base import new_id, utcnow
from grocery_ledger.app.models.notification import Notification
from grocery_ledger.app.ports import NotificationPort


class DatabaseNotifier(NotificationPort):

    def __init__(self, session: Session) -> None:
        self._session = session

    def enqueue_notification(
            self,
            user_id: str,
            title: str,
            message: str,
            type: str,
            data: dict[str, Any] | None = None,
    ) -> None:
        row = Notification(
            id=new_id(),
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            is_read=False,
            data=data,
            created_at=utcnow(),
        )
        try:
            # Leaving the block releases the savepoint, which flushes the row.
            with self._session.begin_nested():
                self._session.add(row)
        except SQLAlchemyError as exc:
            raise DependencyError(
                f"Notification {type!r} for user {user_id} could not be stored: {exc}"
            ) from exc
