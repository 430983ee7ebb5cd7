"""
tests/unit/conftest.py — In-memory LedgerRepository and service fixtures.

FakeLedgerRepository implements every LedgerRepository method over plain
dicts so ExpenseLedgerService can be exercised without a database. It
keeps the same contract as the SQLAlchemy adapter:
  - update_*_status are compare-and-set and raise STATUS_CONFLICT on mismatch
  - create_friend_request refuses a second pending request for a pair
  - list_shares_for_scope returns ShareLine values, never ORM objects

Helper functions (not fixtures):
  - add_user(repo, user_id)
  - add_group(repo, group_id, members, pending=())
  - befriend(repo, a, b, status=ACCEPTED)
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from grocery_ledger.app.errors import ConflictError, ErrorCode
from grocery_ledger.app.models.base import new_id, utcnow
from grocery_ledger.app.models.friend import FriendRequestStatus, FriendStatus
from grocery_ledger.app.models.group import MembershipRole, MembershipStatus
from grocery_ledger.app.models.share import ShareStatus
from grocery_ledger.app.ports import (
    FriendPairScope,
    GroupScope,
    LedgerRepository,
    NotificationPort,
    ShareLine,
)
from grocery_ledger.app.services.ledger_service import ExpenseLedgerService


class FakeLedgerRepository(LedgerRepository):

    def __init__(self) -> None:
        self.users: dict[str, SimpleNamespace] = {}
        self.groups: dict[str, SimpleNamespace] = {}
        self.memberships: dict[tuple[str, str], SimpleNamespace] = {}
        self.expenses: dict = {}
        self.shares: dict = {}
        self.friend_requests: dict[str, SimpleNamespace] = {}
        self.friend_rows: dict[tuple[str, str], SimpleNamespace] = {}

    # Users

    def get_user(self, user_id):
        return self.users.get(user_id)

    # Expenses

    def get_expense(self, expense_id):
        return self.expenses.get(expense_id)

    def create_expense_bundle(self, expense, items, shares):
        expense.items = list(items)
        expense.shares = list(shares)
        self.expenses[expense.id] = expense
        for share in shares:
            self.shares[share.id] = share
        return expense

    def delete_expense(self, expense):
        for share in expense.shares:
            self.shares.pop(share.id, None)
        self.expenses.pop(expense.id, None)

    def list_expenses_for_user(self, user_id):
        rows = [
            e for e in self.expenses.values()
            if e.created_by == user_id or any(s.user_id == user_id for s in e.shares)
        ]
        return sorted(rows, key=lambda e: e.created_at, reverse=True)

    # Shares

    def get_share(self, share_id):
        share = self.shares.get(share_id)
        if share is None:
            return None
        # A detached snapshot, like a row read in an earlier transaction.
        return SimpleNamespace(
            id=share.id,
            expense_id=share.expense_id,
            user_id=share.user_id,
            amount_minor=share.amount_minor,
            status=share.status,
        )

    def update_share_status(self, share_id, expected_status, new_status):
        share = self.shares.get(share_id)
        if share is None or share.status != expected_status:
            raise ConflictError(ErrorCode.STATUS_CONFLICT, "Share was modified concurrently.")
        share.status = new_status
        share.updated_at = utcnow()
        if new_status == ShareStatus.PAID:
            share.paid_at = share.updated_at
        return share

    def _expenses_in_scope(self, scope):
        if isinstance(scope, GroupScope):
            return [e for e in self.expenses.values() if e.group_id == scope.group_id]
        members = scope.members
        return [
            e for e in self.expenses.values()
            if e.group_id is None and e.created_by in members
        ]

    def list_shares_for_scope(self, scope):
        lines = []
        for expense in self._expenses_in_scope(scope):
            for share in expense.shares:
                if isinstance(scope, FriendPairScope) and share.user_id not in scope.members:
                    continue
                lines.append(ShareLine(
                    share_id=share.id,
                    expense_id=expense.id,
                    creator_id=expense.created_by,
                    participant_id=share.user_id,
                    amount_minor=share.amount_minor,
                    status=ShareStatus(share.status),
                ))
        return lines

    def get_expense_totals_for_scope(self, scope):
        return {e.id: e.total_minor for e in self._expenses_in_scope(scope)}

    # Groups

    def get_group(self, group_id):
        return self.groups.get(group_id)

    def get_membership(self, group_id, user_id):
        return self.memberships.get((group_id, user_id))

    def create_group(self, name, created_by, description=None):
        group = SimpleNamespace(
            id=new_id(),
            name=name,
            description=description,
            created_by=created_by,
            created_at=utcnow(),
        )
        self.groups[group.id] = group
        self.memberships[(group.id, created_by)] = SimpleNamespace(
            group_id=group.id,
            user_id=created_by,
            role=MembershipRole.ADMIN,
            status=MembershipStatus.ACCEPTED,
        )
        return group

    def list_groups_for_user(self, user_id):
        rows = [
            self.groups[group_id]
            for (group_id, member_id), membership in self.memberships.items()
            if member_id == user_id and membership.status == MembershipStatus.ACCEPTED
        ]
        return sorted(rows, key=lambda g: g.created_at, reverse=True)

    # Friends

    def get_friend_request(self, request_id):
        return self.friend_requests.get(request_id)

    def find_active_friend_request(self, user_a, user_b):
        pair = {user_a, user_b}
        for request in self.friend_requests.values():
            if {request.from_user_id, request.to_user_id} == pair and request.status == FriendRequestStatus.PENDING:
                return request
        return None

    def list_friend_requests_for_user(self, user_id):
        rows = [
            r for r in self.friend_requests.values()
            if user_id in (r.from_user_id, r.to_user_id)
        ]
        return sorted(rows, key=lambda r: r.created_at, reverse=True)

    def create_friend_request(self, from_user_id, to_user_id, message=None):
        if self.find_active_friend_request(from_user_id, to_user_id) is not None:
            raise ConflictError(ErrorCode.DUPLICATE_FRIEND_REQUEST, "Duplicate request.")
        request = SimpleNamespace(
            id=new_id(),
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            message=message,
            status=FriendRequestStatus.PENDING,
            created_at=utcnow(),
        )
        self.friend_requests[request.id] = request
        return request

    def update_friend_request_status(self, request_id, expected_status, new_status):
        request = self.friend_requests.get(request_id)
        if request is None or request.status != expected_status:
            raise ConflictError(ErrorCode.STATUS_CONFLICT, "Request was modified concurrently.")
        request.status = new_status
        return request

    def get_friend_row(self, user_id, friend_id):
        return self.friend_rows.get((user_id, friend_id))

    def list_friend_rows(self, user_id, status):
        rows = [
            row for (owner, _), row in self.friend_rows.items()
            if owner == user_id and row.status == status
        ]
        return sorted(rows, key=lambda row: row.created_at, reverse=True)

    def upsert_friend_row(self, user_id, friend_id, status):
        row = self.friend_rows.get((user_id, friend_id))
        if row is None:
            row = SimpleNamespace(user_id=user_id, friend_id=friend_id, status=status, created_at=utcnow())
            self.friend_rows[(user_id, friend_id)] = row
        row.status = status
        return row

    def delete_friend_rows(self, user_a, user_b):
        removed = 0
        for key in ((user_a, user_b), (user_b, user_a)):
            if self.friend_rows.pop(key, None) is not None:
                removed += 1
        return removed


# ── Helper functions ───────────────────────────────────────────────────────

def add_user(repo: FakeLedgerRepository, user_id: str) -> SimpleNamespace:
    user = SimpleNamespace(id=user_id, name=user_id.title())
    repo.users[user_id] = user
    return user


def add_group(repo: FakeLedgerRepository, group_id: str, members, pending=()) -> SimpleNamespace:
    group = SimpleNamespace(id=group_id, name=f"Group {group_id}", created_at=utcnow())
    repo.groups[group_id] = group
    for user_id in members:
        add_user(repo, user_id)
        repo.memberships[(group_id, user_id)] = SimpleNamespace(
            group_id=group_id, user_id=user_id, status=MembershipStatus.ACCEPTED,
        )
    for user_id in pending:
        add_user(repo, user_id)
        repo.memberships[(group_id, user_id)] = SimpleNamespace(
            group_id=group_id, user_id=user_id, status=MembershipStatus.PENDING,
        )
    return group


def befriend(repo: FakeLedgerRepository, user_a: str, user_b: str, status=FriendStatus.ACCEPTED) -> None:
    repo.upsert_friend_row(user_a, user_b, status)
    repo.upsert_friend_row(user_b, user_a, status)


# ── Fixtures ───────────────────────────────────────────────────────────────

@pytest.fixture
def repo():
    return FakeLedgerRepository()


@pytest.fixture
def notifier():
    return MagicMock(spec=NotificationPort)


@pytest.fixture
def service(repo, notifier):
    return ExpenseLedgerService(repo, notifier)
