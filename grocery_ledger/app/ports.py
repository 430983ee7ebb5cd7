"""
ports.py — Narrow interfaces the ledger core consumes.

The ledger service never talks to SQLAlchemy or a notification transport
directly. It receives a LedgerRepository and a NotificationPort at
construction time; production wiring lives in app/dependencies.py and unit
tests pass in-memory fakes.

Layer rules:
  - No Flask imports.
  - Value types here are plain frozen dataclasses so the pure services
    (balance_service, settlement_service) never see ORM objects.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Any, Union

from grocery_ledger.app.models.share import ShareStatus


# ── Scopes ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class GroupScope:
    group_id: str


@dataclass(frozen=True)
class FriendPairScope:
    """An unordered user pair. Build it with FriendPairScope.of(a, b)."""

    user_a: str
    user_b: str

    @classmethod
    def of(cls, first: str, second: str) -> "FriendPairScope":
        low, high = sorted((first, second))
        return cls(user_a=low, user_b=high)

    @property
    def members(self) -> tuple[str, str]:
        return self.user_a, self.user_b


Scope = Union[GroupScope, FriendPairScope]


@dataclass(frozen=True)
class ShareLine:
    """One ExpenseShare joined with its expense's creator."""

    share_id: str
    expense_id: str
    creator_id: str
    participant_id: str
    amount_minor: int
    status: ShareStatus


# ── Repository port ────────────────────────────────────────────────────────

class LedgerRepository(abc.ABC):
    """
    Key-based access to ledger records.

    Write methods stage changes in the current unit of work; committing is
    the caller's job (the route layer). Every method raises DependencyError
    when the backing store fails or times out.
    """

    # Users

    @abc.abstractmethod
    def get_user(self, user_id: str):
        """Returns the User or None."""

    # Expenses

    @abc.abstractmethod
    def get_expense(self, expense_id: str):
        """Returns the Expense (with items and shares) or None."""

    @abc.abstractmethod
    def create_expense_bundle(self, expense, items: list, shares: list):
        """Persists expense, items and shares together. All or nothing."""

    @abc.abstractmethod
    def delete_expense(self, expense) -> None:
        """Deletes the expense and, by cascade, its items and shares."""

    @abc.abstractmethod
    def list_expenses_for_user(self, user_id: str) -> list:
        """Expenses created by or shared with user_id, newest first."""

    # Shares

    @abc.abstractmethod
    def get_share(self, share_id: str):
        """Returns the ExpenseShare or None."""

    @abc.abstractmethod
    def update_share_status(
            self,
            share_id: str,
            expected_status: ShareStatus,
            new_status: ShareStatus,
    ):
        """
        Compare-and-set. Writes new_status only if the stored status still
        equals expected_status, otherwise raises ConflictError
        (STATUS_CONFLICT). Returns the refreshed share.
        """

    @abc.abstractmethod
    def list_shares_for_scope(self, scope: Scope) -> list[ShareLine]:
        """All share lines of expenses in scope, regardless of status."""

    @abc.abstractmethod
    def get_expense_totals_for_scope(self, scope: Scope) -> dict[str, int]:
        """{expense_id: total_minor} for every expense in scope."""

    # Groups

    @abc.abstractmethod
    def get_group(self, group_id: str):
        """Returns the Group or None."""

    @abc.abstractmethod
    def get_membership(self, group_id: str, user_id: str):
        """Returns the GroupMembership or None."""

    @abc.abstractmethod
    def create_group(self, name: str, created_by: str, description: str | None = None):
        """Stages the group and an ACCEPTED admin membership for created_by."""

    @abc.abstractmethod
    def list_groups_for_user(self, user_id: str) -> list:
        """Groups where user_id holds an ACCEPTED membership, newest first."""

    # Friends

    @abc.abstractmethod
    def get_friend_request(self, request_id: str):
        """Returns the FriendRequest or None."""

    @abc.abstractmethod
    def find_active_friend_request(self, user_a: str, user_b: str):
        """The pending request between the unordered pair, if any."""

    @abc.abstractmethod
    def list_friend_requests_for_user(self, user_id: str) -> list:
        """Requests sent or received by user_id, any status, newest first."""

    @abc.abstractmethod
    def create_friend_request(
            self,
            from_user_id: str,
            to_user_id: str,
            message: str | None = None,
    ):
        """
        Stages a new pending request. Raises ConflictError
        (DUPLICATE_FRIEND_REQUEST) if the store already holds an active one
        for the pair.
        """

    @abc.abstractmethod
    def update_friend_request_status(self, request_id: str, expected_status, new_status):
        """Compare-and-set, same contract as update_share_status."""

    @abc.abstractmethod
    def get_friend_row(self, user_id: str, friend_id: str):
        """The directed Friend row user_id → friend_id, or None."""

    @abc.abstractmethod
    def list_friend_rows(self, user_id: str, status) -> list:
        """Directed rows out of user_id with the given status, newest first."""

    @abc.abstractmethod
    def upsert_friend_row(self, user_id: str, friend_id: str, status):
        """Creates or updates the directed row. Idempotent."""

    @abc.abstractmethod
    def delete_friend_rows(self, user_a: str, user_b: str) -> int:
        """Deletes both directed rows of the pair. Returns rows removed."""


# ── Notification port ──────────────────────────────────────────────────────

class NotificationPort(abc.ABC):

    @abc.abstractmethod
    def enqueue_notification(
            self,
            user_id: str,
            title: str,
            message: str,
            type: str,
            data: dict[str, Any] | None = None,
    ) -> None:
        """Fire-and-forget. Callers log and ignore failures."""
