"""
repositories/sqlalchemy_repository.py — LedgerRepository over a SQLAlchemy session.

Layer rules:
  - No Flask imports. Receives a Session (db.session in production) and a
    RetryPolicy at construction time.
  - Writes flush but never commit. The route commits once per request, so
    everything staged during a request lands in one transaction.
  - Every SQLAlchemy failure leaves this module as DependencyError (or
    ConflictError for compare-and-set misses and duplicate active friend
    requests). Raw driver exceptions never reach the service.

Atomic bundle:
  create_expense_bundle attaches items and shares to the expense through
  its relationships and flushes once. If the flush fails the session is
  rolled back, so either all rows of the bundle become visible at commit or
  none do.

Compare-and-set:
  Status transitions are written as
      UPDATE … SET status = :new WHERE id = :id AND status = :expected
  and a zero rowcount means a concurrent writer got there first.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from grocery_ledger.app.errors import ConflictError, DependencyError, ErrorCode
from grocery_ledger.app.models.base import new_id, utcnow
from grocery_ledger.app.models.expense import Expense
from grocery_ledger.app.models.friend import (
    Friend,
    FriendRequest,
    FriendRequestStatus,
    pair_key,
)
from grocery_ledger.app.models.group import (
    Group,
    GroupMembership,
    MembershipRole,
    MembershipStatus,
)
from grocery_ledger.app.models.share import ExpenseShare, ShareStatus
from grocery_ledger.app.models.user import User
from grocery_ledger.app.ports import (
    FriendPairScope,
    GroupScope,
    LedgerRepository,
    Scope,
    ShareLine,
)
from grocery_ledger.app.repositories.retry import RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)


class SqlAlchemyLedgerRepository(LedgerRepository):

    def __init__(self, session: Session, retry_policy: RetryPolicy | None = None) -> None:
        self._session = session
        self._retry_policy = retry_policy or RetryPolicy()

    # ── Plumbing ───────────────────────────────────────────────────────────

    def _read(self, label: str, fn, *args):
        return call_with_retry(
            self._retry_policy,
            fn,
            *args,
            label=label,
            on_retry=self._session.rollback,
        )

    def _scalars(self, stmt) -> list:
        return list(self._session.execute(stmt).scalars().all())

    def _scalar(self, stmt):
        return self._session.execute(stmt).scalars().first()

    @contextmanager
    def _writing(self, label: str) -> Iterator[None]:
        try:
            yield
            self._session.flush()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise DependencyError(f"Repository write {label} failed: {exc}") from exc

    def _compare_and_set(self, model, row_id: str, expected, new, values: dict, label: str):
        stmt = (
            update(model)
            .where(model.id == row_id, model.status == expected)
            .values(status=new, **values)
            .execution_options(synchronize_session=False)
        )
        with self._writing(label):
            result = self._session.execute(stmt)
            if result.rowcount == 0:
                raise ConflictError(
                    ErrorCode.STATUS_CONFLICT,
                    f"Status changed concurrently; expected '{expected.value}'. "
                    "Refetch and retry.",
                )
            # Not retried: a retry would roll back the update above.
            row = self._session.get(model, row_id)
            self._session.refresh(row)
        return row

    # ── Users ──────────────────────────────────────────────────────────────

    def get_user(self, user_id: str):
        return self._read("get_user", self._session.get, User, user_id)

    # ── Expenses ───────────────────────────────────────────────────────────

    def get_expense(self, expense_id: str):
        return self._read("get_expense", self._session.get, Expense, expense_id)

    def create_expense_bundle(self, expense, items: list, shares: list):
        with self._writing("create_expense_bundle"):
            expense.items = list(items)
            expense.shares = list(shares)
            self._session.add(expense)
        logger.debug(
            "Staged expense %s with %d item(s) and %d share(s).",
            expense.id, len(items), len(shares),
        )
        return expense

    def delete_expense(self, expense) -> None:
        with self._writing("delete_expense"):
            self._session.delete(expense)

    def list_expenses_for_user(self, user_id: str) -> list:
        shared_with = select(ExpenseShare.expense_id).where(ExpenseShare.user_id == user_id)
        stmt = (
            select(Expense)
            .where(or_(Expense.created_by == user_id, Expense.id.in_(shared_with)))
            .order_by(Expense.created_at.desc(), Expense.id)
        )
        return self._read("list_expenses_for_user", self._scalars, stmt)

    # ── Shares ─────────────────────────────────────────────────────────────

    def get_share(self, share_id: str):
        return self._read("get_share", self._session.get, ExpenseShare, share_id)

    def update_share_status(self, share_id: str, expected_status, new_status):
        now = utcnow()
        values = {"updated_at": now}
        if new_status == ShareStatus.PAID:
            values["paid_at"] = now
        return self._compare_and_set(
            ExpenseShare, share_id, expected_status, new_status, values,
            label="update_share_status",
        )

    def _scope_filter(self, scope: Scope):
        if isinstance(scope, GroupScope):
            return Expense.group_id == scope.group_id
        if isinstance(scope, FriendPairScope):
            members = scope.members
            return and_(
                Expense.group_id.is_(None),
                Expense.created_by.in_(members),
                ExpenseShare.user_id.in_(members),
            )
        raise TypeError(f"Unsupported scope: {scope!r}")

    def list_shares_for_scope(self, scope: Scope) -> list[ShareLine]:
        stmt = (
            select(
                ExpenseShare.id,
                ExpenseShare.expense_id,
                Expense.created_by,
                ExpenseShare.user_id,
                ExpenseShare.amount_minor,
                ExpenseShare.status,
            )
            .join(Expense, ExpenseShare.expense_id == Expense.id)
            .where(self._scope_filter(scope))
            .order_by(Expense.created_at, ExpenseShare.id)
        )

        def fetch() -> list[ShareLine]:
            return [
                ShareLine(
                    share_id=row[0],
                    expense_id=row[1],
                    creator_id=row[2],
                    participant_id=row[3],
                    amount_minor=int(row[4]),
                    status=ShareStatus(row[5]),
                )
                for row in self._session.execute(stmt).all()
            ]

        return self._read("list_shares_for_scope", fetch)

    def get_expense_totals_for_scope(self, scope: Scope) -> dict[str, int]:
        stmt = (
            select(Expense.id, Expense.total_minor)
            .join(ExpenseShare, ExpenseShare.expense_id == Expense.id)
            .where(self._scope_filter(scope))
            .distinct()
        )

        def fetch() -> dict[str, int]:
            return {row[0]: int(row[1]) for row in self._session.execute(stmt).all()}

        return self._read("get_expense_totals_for_scope", fetch)

    # ── Groups ─────────────────────────────────────────────────────────────

    def get_group(self, group_id: str):
        return self._read("get_group", self._session.get, Group, group_id)

    def get_membership(self, group_id: str, user_id: str):
        stmt = select(GroupMembership).where(
            GroupMembership.group_id == group_id,
            GroupMembership.user_id == user_id,
        )
        return self._read("get_membership", self._scalar, stmt)

    def create_group(self, name: str, created_by: str, description: str | None = None):
        now = utcnow()
        group = Group(
            id=new_id(),
            name=name,
            description=description,
            created_by=created_by,
            created_at=now,
        )
        group.memberships = [
            GroupMembership(
                id=new_id(),
                user_id=created_by,
                role=MembershipRole.ADMIN,
                status=MembershipStatus.ACCEPTED,
                joined_at=now,
            )
        ]
        with self._writing("create_group"):
            self._session.add(group)
        return group

    def list_groups_for_user(self, user_id: str) -> list:
        stmt = (
            select(Group)
            .join(GroupMembership, GroupMembership.group_id == Group.id)
            .where(
                GroupMembership.user_id == user_id,
                GroupMembership.status == MembershipStatus.ACCEPTED,
            )
            .order_by(Group.created_at.desc(), Group.id)
        )
        return self._read("list_groups_for_user", self._scalars, stmt)

    # ── Friends ────────────────────────────────────────────────────────────

    def get_friend_request(self, request_id: str):
        return self._read("get_friend_request", self._session.get, FriendRequest, request_id)

    def find_active_friend_request(self, user_a: str, user_b: str):
        stmt = select(FriendRequest).where(
            FriendRequest.pair_key == pair_key(user_a, user_b),
            FriendRequest.status == FriendRequestStatus.PENDING,
        )
        return self._read("find_active_friend_request", self._scalar, stmt)

    def list_friend_requests_for_user(self, user_id: str) -> list:
        stmt = (
            select(FriendRequest)
            .where(or_(FriendRequest.from_user_id == user_id, FriendRequest.to_user_id == user_id))
            .order_by(FriendRequest.created_at.desc(), FriendRequest.id)
        )
        return self._read("list_friend_requests_for_user", self._scalars, stmt)

    def create_friend_request(self, from_user_id: str, to_user_id: str, message: str | None = None):
        request = FriendRequest(
            id=new_id(),
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            pair_key=pair_key(from_user_id, to_user_id),
            message=message,
            status=FriendRequestStatus.PENDING,
            created_at=utcnow(),
        )
        try:
            with self._writing("create_friend_request"):
                self._session.add(request)
        except DependencyError as exc:
            # The partial unique index on pair_key rejects a second active request.
            if isinstance(exc.__cause__, IntegrityError):
                raise ConflictError(
                    ErrorCode.DUPLICATE_FRIEND_REQUEST,
                    "A pending friend request already exists between these users.",
                ) from exc.__cause__
            raise
        return request

    def update_friend_request_status(self, request_id: str, expected_status, new_status):
        return self._compare_and_set(
            FriendRequest, request_id, expected_status, new_status,
            {"updated_at": utcnow()},
            label="update_friend_request_status",
        )

    def get_friend_row(self, user_id: str, friend_id: str):
        stmt = select(Friend).where(Friend.user_id == user_id, Friend.friend_id == friend_id)
        return self._read("get_friend_row", self._scalar, stmt)

    def list_friend_rows(self, user_id: str, status) -> list:
        stmt = (
            select(Friend)
            .where(Friend.user_id == user_id, Friend.status == status)
            .order_by(Friend.created_at.desc(), Friend.friend_id)
        )
        return self._read("list_friend_rows", self._scalars, stmt)

    def upsert_friend_row(self, user_id: str, friend_id: str, status):
        stmt = select(Friend).where(Friend.user_id == user_id, Friend.friend_id == friend_id)
        with self._writing("upsert_friend_row"):
            row = self._scalar(stmt)
            if row is None:
                row = Friend(id=new_id(), user_id=user_id, friend_id=friend_id, status=status)
                self._session.add(row)
            else:
                row.status = status
        return row

    def delete_friend_rows(self, user_a: str, user_b: str) -> int:
        stmt = delete(Friend).where(
            or_(
                and_(Friend.user_id == user_a, Friend.friend_id == user_b),
                and_(Friend.user_id == user_b, Friend.friend_id == user_a),
            )
        ).execution_options(synchronize_session=False)
        with self._writing("delete_friend_rows"):
            result = self._session.execute(stmt)
        return result.rowcount or 0
