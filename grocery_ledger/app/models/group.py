"""
models/group.py — Group and GroupMembership table definitions.

No business logic. An expense may be scoped to a group only when the payer
holds an ACCEPTED membership; that gate is enforced in ledger_service.py.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from grocery_ledger.app.extensions import db
from grocery_ledger.app.models.base import enum_values, new_id, utcnow


class MembershipRole(str, enum.Enum):
    ADMIN  = "admin"
    MEMBER = "member"


class MembershipStatus(str, enum.Enum):
    PENDING  = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Group(db.Model):
    __tablename__ = "groups"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_by: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    memberships: Mapped[list["GroupMembership"]] = relationship(
        "GroupMembership",
        back_populates="group",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Group id={self.id} name={self.name!r}>"


class GroupMembership(db.Model):
    __tablename__ = "group_members"

    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_group_members_group_user"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    group_id: Mapped[str] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    role: Mapped[MembershipRole] = mapped_column(
        Enum(
            MembershipRole,
            name="membership_role",
            native_enum=False,
            length=16,
            values_callable=enum_values,
        ),
        nullable=False,
        default=MembershipRole.MEMBER,
    )

    status: Mapped[MembershipStatus] = mapped_column(
        Enum(
            MembershipStatus,
            name="membership_status",
            native_enum=False,
            length=16,
            values_callable=enum_values,
        ),
        nullable=False,
        default=MembershipStatus.PENDING,
    )

    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    group: Mapped["Group"] = relationship(
        "Group",
        back_populates="memberships",
    )

    @property
    def is_accepted(self) -> bool:
        return self.status == MembershipStatus.ACCEPTED

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<GroupMembership group_id={self.group_id} "
            f"user_id={self.user_id} "
            f"status={self.status}>"
        )
