"""
models/expense.py — Expense and ExpenseItem table definitions.

No business logic. No imports from services or routes.

Key design points:
  - Every monetary column is an integer count of minor currency units
    (BigInteger, `*_minor`). Never Float, never Numeric with a scale.
  - `created_by` is the creator and the payer. There is exactly one.
  - Items and shares are owned by their expense: deleting the expense
    cascades to both through the ORM relationship.
  - An expense is immutable after creation apart from its shares' status;
    there is no updated_at column on purpose.
"""

from __future__ import annotations

import enum
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from grocery_ledger.app.extensions import db
from grocery_ledger.app.models.base import enum_values, new_id, utcnow


# Defined here so schemas and services can import it without repeating
# string literals.
class SplitMode(str, enum.Enum):
    EQUAL      = "equal"
    PERCENTAGE = "percentage"


class Expense(db.Model):
    __tablename__ = "expenses"

    __table_args__ = (
        CheckConstraint("total_minor > 0", name="ck_expenses_total_positive"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    created_by: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # NULL for expenses shared directly between friends.
    group_id: Mapped[str | None] = mapped_column(
        ForeignKey("groups.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )

    total_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)

    split_mode: Mapped[SplitMode] = mapped_column(
        Enum(
            SplitMode,
            name="split_mode",
            native_enum=False,
            length=16,
            values_callable=enum_values,
        ),
        nullable=False,
        default=SplitMode.EQUAL,
    )

    purchase_date: Mapped[date] = mapped_column(Date, nullable=False)

    store_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    # ── Relationships ──────────────────────────────────────────────────────

    items: Mapped[list["ExpenseItem"]] = relationship(
        "ExpenseItem",
        back_populates="expense",
        cascade="all, delete-orphan",
        order_by="ExpenseItem.position",
    )

    shares: Mapped[list["ExpenseShare"]] = relationship(  # noqa: F821
        "ExpenseShare",
        back_populates="expense",
        cascade="all, delete-orphan",
        order_by="ExpenseShare.user_id",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Expense id={self.id} "
            f"created_by={self.created_by} "
            f"total_minor={self.total_minor} "
            f"group_id={self.group_id}>"
        )


class ExpenseItem(db.Model):
    __tablename__ = "expense_items"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_expense_items_quantity_positive"),
        CheckConstraint("unit_price_minor >= 0", name="ck_expense_items_price_non_negative"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    expense_id: Mapped[str] = mapped_column(
        ForeignKey("expenses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    grocery_item_id: Mapped[str | None] = mapped_column(
        ForeignKey("grocery_items.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Order of the line on the receipt.
    position: Mapped[int] = mapped_column(nullable=False, default=0)

    description: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Fractional quantities (e.g. 1.250 kg) are allowed; prices are not.
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)

    unit_price_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # quantity × unit_price_minor, rounded half-even to a whole minor unit.
    total_price_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)

    expense: Mapped["Expense"] = relationship(
        "Expense",
        back_populates="items",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<ExpenseItem id={self.id} "
            f"expense_id={self.expense_id} "
            f"total_price_minor={self.total_price_minor}>"
        )
