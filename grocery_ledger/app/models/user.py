"""
models/user.py — User table definition.

The external auth provider is the system of record for identities. This
table is a mirror holding the profile fields the ledger needs for display;
`id` is the provider's user id.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from grocery_ledger.app.extensions import db
from grocery_ledger.app.models.base import utcnow


class User(db.Model):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<User id={self.id} email={self.email!r}>"
