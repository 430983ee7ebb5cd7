"""
models/share.py — ExpenseShare table definition.

One row per (expense, participant). No business logic.

Key design points:
  - `amount_minor` is what the participant owes the expense creator, in
    integer minor currency units. It never changes after creation.
  - `percentage` is only set for percentage-mode expenses.
  - `status` is the only mutable column. Transitions are validated by
    services/status_tracker.py and written with a compare-and-set UPDATE
    by the repository (see update_share_status).
  - UNIQUE(expense_id, user_id): a participant appears once per expense.
"""

from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from grocery_ledger.app.extensions import db
from grocery_ledger.app.models.base import enum_values, new_id, utcnow


class ShareStatus(str, enum.Enum):
    PENDING   = "pending"
    ACCEPTED  = "accepted"
    REJECTED  = "rejected"
    PAID      = "paid"
    CANCELLED = "cancelled"


class ExpenseShare(db.Model):
    __tablename__ = "expense_shares"

    __table_args__ = (
        UniqueConstraint("expense_id", "user_id", name="uq_expense_shares_expense_user"),
        CheckConstraint("amount_minor >= 0", name="ck_expense_shares_amount_non_negative"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    expense_id: Mapped[str] = mapped_column(
        ForeignKey("expenses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    amount_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)

    percentage: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)

    status: Mapped[ShareStatus] = mapped_column(
        Enum(
            ShareStatus,
            name="share_status",
            native_enum=False,
            length=16,
            values_callable=enum_values,
        ),
        nullable=False,
        default=ShareStatus.PENDING,
    )

    paid_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    expense: Mapped["Expense"] = relationship(  # noqa: F821
        "Expense",
        back_populates="shares",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<ExpenseShare id={self.id} "
            f"expense_id={self.expense_id} "
            f"user_id={self.user_id} "
            f"amount_minor={self.amount_minor} "
            f"status={self.status}>"
        )
