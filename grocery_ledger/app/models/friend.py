"""
models/friend.py — Friend and FriendRequest table definitions.

No business logic. Transition rules live in services/status_tracker.py.

Key design points:
  - A friendship is materialised as two directed Friend rows
    (user_id → friend_id and its mirror) so either side can list friends
    with a single indexed lookup. Both rows carry the same status once
    accepted; they are written together by the ledger service.
  - FriendRequest.pair_key is "<lower id>:<higher id>". A partial unique
    index on pair_key WHERE status = 'pending' guarantees at most one active
    request per unordered pair, backing the check done in the service.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String, Text, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from grocery_ledger.app.extensions import db
from grocery_ledger.app.models.base import enum_values, new_id, utcnow


class FriendStatus(str, enum.Enum):
    PENDING  = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    BLOCKED  = "blocked"


class FriendRequestStatus(str, enum.Enum):
    PENDING   = "pending"
    ACCEPTED  = "accepted"
    REJECTED  = "rejected"
    CANCELLED = "cancelled"


def pair_key(user_a: str, user_b: str) -> str:
    """Order-independent key for an unordered user pair."""
    low, high = sorted((user_a, user_b))
    return f"{low}:{high}"


class Friend(db.Model):
    __tablename__ = "friends"

    __table_args__ = (
        UniqueConstraint("user_id", "friend_id", name="uq_friends_user_friend"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    friend_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    status: Mapped[FriendStatus] = mapped_column(
        Enum(
            FriendStatus,
            name="friend_status",
            native_enum=False,
            length=16,
            values_callable=enum_values,
        ),
        nullable=False,
        default=FriendStatus.PENDING,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Friend user_id={self.user_id} "
            f"friend_id={self.friend_id} "
            f"status={self.status}>"
        )


class FriendRequest(db.Model):
    __tablename__ = "friend_requests"

    __table_args__ = (
        Index(
            "uq_friend_requests_active_pair",
            "pair_key",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    from_user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    to_user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    pair_key: Mapped[str] = mapped_column(String(80), nullable=False)

    message: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[FriendRequestStatus] = mapped_column(
        Enum(
            FriendRequestStatus,
            name="friend_request_status",
            native_enum=False,
            length=16,
            values_callable=enum_values,
        ),
        nullable=False,
        default=FriendRequestStatus.PENDING,
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

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<FriendRequest id={self.id} "
            f"from={self.from_user_id} "
            f"to={self.to_user_id} "
            f"status={self.status}>"
        )
