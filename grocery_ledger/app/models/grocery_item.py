"""
models/grocery_item.py — GroceryItem catalog table.

Not central to the ledger; ExpenseItem may reference a catalog entry.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from grocery_ledger.app.extensions import db
from grocery_ledger.app.models.base import new_id, utcnow


class GroceryItem(db.Model):
    __tablename__ = "grocery_items"

    __table_args__ = (
        CheckConstraint(
            "default_price_minor IS NULL OR default_price_minor >= 0",
            name="ck_grocery_items_price_non_negative",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    unit: Mapped[str] = mapped_column(String(32), nullable=False, default="piece")

    default_price_minor: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<GroceryItem id={self.id} name={self.name!r}>"
