"""
services/ledger_service.py — ExpenseLedgerService, the orchestration layer.

Ties the pure pieces (share_calculator, status_tracker, balance_service,
settlement_service) to the repository and notification ports.

Authorization rules:
  - Create:   payer must hold an ACCEPTED membership when group_id is set,
              and so must every participant.
  - Get:      expense creator or a participant holding a share.
  - Delete:   expense creator only. Items and shares go with it.
  - Shares:   only the share's owner moves its status.
  - Requests: addressee accepts/rejects, sender cancels.
  - Blocks:   only the blocker's own row; removing it lifts the block.
  - Group balances and plans: ACCEPTED members of the group.

Layer rules:
  - No Flask imports. No current_app, request, g, or HTTP knowledge.
  - Receives plain strings, ints and dicts; returns ORM objects or plain
    values; raises AppError subclasses.
  - Commits are the route's responsibility. The repository only flushes.

Queries never read cached aggregates. Every balance and settlement call
recomputes from the current share snapshot.

Notifications are best effort: a failing NotificationPort is logged at
WARNING and never fails the ledger operation that triggered it.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping

from grocery_ledger.app.errors import (
    AuthorizationError,
    ConflictError,
    ErrorCode,
    NotFoundError,
    ValidationError,
)
from grocery_ledger.app.models.base import new_id, utcnow
from grocery_ledger.app.models.expense import Expense, ExpenseItem, SplitMode
from grocery_ledger.app.models.friend import FriendRequestStatus, FriendStatus
from grocery_ledger.app.models.group import MembershipStatus
from grocery_ledger.app.models.share import ExpenseShare, ShareStatus
from grocery_ledger.app.ports import (
    FriendPairScope,
    GroupScope,
    LedgerRepository,
    NotificationPort,
)
from grocery_ledger.app.services import balance_service, settlement_service
from grocery_ledger.app.services.balance_service import Balances
from grocery_ledger.app.services.settlement_service import PlannedTransfer
from grocery_ledger.app.services.share_calculator import compute_shares, line_total_minor
from grocery_ledger.app.services.status_tracker import (
    check_share_transition,
    next_friend_request_status,
)

logger = logging.getLogger(__name__)


class ExpenseLedgerService:

    def __init__(
            self,
            repository: LedgerRepository,
            notifier: NotificationPort,
            *,
            share_tolerance_minor: int = 1,
            item_tolerance_minor: int = 1,
    ) -> None:
        self.repository = repository
        self.notifier = notifier
        self.share_tolerance_minor = share_tolerance_minor
        self.item_tolerance_minor = item_tolerance_minor

    # ── Private helpers ────────────────────────────────────────────────────

    def _notify(self, user_id: str, title: str, message: str, type: str, data: dict | None = None) -> None:
        try:
            self.notifier.enqueue_notification(user_id, title, message, type, data)
        except Exception:
            logger.warning(
                "Notification %r for user %s could not be enqueued.",
                type, user_id,
                exc_info=True,
            )

    def _get_expense_or_404(self, expense_id: str):
        expense = self.repository.get_expense(expense_id)
        if expense is None:
            raise NotFoundError(
                ErrorCode.EXPENSE_NOT_FOUND,
                f"Expense {expense_id} does not exist.",
            )
        return expense

    def _get_group_or_404(self, group_id: str):
        group = self.repository.get_group(group_id)
        if group is None:
            raise NotFoundError(
                ErrorCode.GROUP_NOT_FOUND,
                f"Group {group_id} does not exist.",
            )
        return group

    def _is_accepted_member(self, group_id: str, user_id: str) -> bool:
        membership = self.repository.get_membership(group_id, user_id)
        return membership is not None and membership.status == MembershipStatus.ACCEPTED

    def _require_group_member(self, group_id: str, user_id: str) -> None:
        """Raises NOT_GROUP_MEMBER (403) unless user_id is an ACCEPTED member."""
        self._get_group_or_404(group_id)
        if not self._is_accepted_member(group_id, user_id):
            raise AuthorizationError(
                ErrorCode.NOT_GROUP_MEMBER,
                f"You are not a member of group {group_id}.",
            )

    def _build_items(self, expense_id: str, items: Iterable[Mapping[str, Any]]) -> list[ExpenseItem]:
        rows: list[ExpenseItem] = []
        for position, item in enumerate(items):
            raw_quantity = item.get("quantity")
            try:
                quantity = Decimal(str(raw_quantity if raw_quantity is not None else 1))
            except InvalidOperation:
                raise ValidationError(
                    ErrorCode.INVALID_FIELD,
                    f"Item {position} has a non-numeric quantity.",
                    field="items",
                )
            unit_price = item.get("unit_price_minor")
            rows.append(ExpenseItem(
                id=new_id(),
                expense_id=expense_id,
                grocery_item_id=item.get("grocery_item_id"),
                position=position,
                description=item.get("description"),
                quantity=quantity,
                unit_price_minor=unit_price,
                total_price_minor=line_total_minor(quantity, unit_price),
            ))
        return rows

    def _validate_item_total(self, items: list[ExpenseItem], total_minor: int) -> None:
        item_sum = sum(item.total_price_minor for item in items)
        if abs(item_sum - total_minor) > self.item_tolerance_minor:
            raise ValidationError(
                ErrorCode.ITEM_TOTAL_MISMATCH,
                f"Line items add up to {item_sum} but the expense total is {total_minor}.",
                field="items",
            )

    def _validate_group_participants(self, group_id: str, payer_id: str, participant_ids: list[str]) -> None:
        self._get_group_or_404(group_id)
        if not self._is_accepted_member(group_id, payer_id):
            raise AuthorizationError(
                ErrorCode.PAYER_NOT_MEMBER,
                f"You must be an accepted member of group {group_id} to add expenses to it.",
            )
        for user_id in participant_ids:
            if user_id != payer_id and not self._is_accepted_member(group_id, user_id):
                raise ValidationError(
                    ErrorCode.PARTICIPANT_NOT_MEMBER,
                    f"User {user_id} is not an accepted member of group {group_id}.",
                    field="participant_ids",
                )

    def _validate_direct_participants(self, payer_id: str, participant_ids: list[str]) -> None:
        for user_id in participant_ids:
            if user_id == payer_id:
                continue
            if self.repository.get_user(user_id) is None:
                raise ValidationError(
                    ErrorCode.INVALID_PARTICIPANT_SET,
                    f"User {user_id} does not exist.",
                    field="participant_ids",
                )
            row = self.repository.get_friend_row(user_id, payer_id)
            if row is not None and row.status == FriendStatus.BLOCKED:
                raise AuthorizationError(
                    ErrorCode.FRIEND_BLOCKED,
                    f"User {user_id} does not accept expenses from you.",
                )

    # ── Expenses ───────────────────────────────────────────────────────────

    def create_expense(
            self,
            payer_id: str,
            total_minor: int,
            participant_ids: list[str],
            mode: SplitMode | str = SplitMode.EQUAL,
            weights: Mapping[str, Any] | None = None,
            group_id: str | None = None,
            items: list[Mapping[str, Any]] | None = None,
            purchase_date: date | None = None,
            store_name: str | None = None,
            notes: str | None = None,
    ) -> Expense:
        """
        Records an expense paid by payer_id and fans it out into shares.

        The payer is a beneficiary only if listed in participant_ids; their
        own share is stored but never counts as debt.

        Raises:
            ValidationError       bad total, participants, weights or items
            NotFoundError         group_id does not exist
            AuthorizationError    payer not an accepted group member, or a
                                  participant has blocked the payer
            DependencyError       the bundle could not be persisted
        """
        computed = compute_shares(total_minor, participant_ids, mode, weights)
        participants = [share.user_id for share in computed]

        expense_id = new_id()
        item_rows = self._build_items(expense_id, items or [])
        if item_rows:
            self._validate_item_total(item_rows, total_minor)

        if group_id is not None:
            self._validate_group_participants(group_id, payer_id, participants)
        else:
            self._validate_direct_participants(payer_id, participants)

        now = utcnow()
        expense = Expense(
            id=expense_id,
            created_by=payer_id,
            group_id=group_id,
            total_minor=total_minor,
            split_mode=SplitMode(mode),
            purchase_date=purchase_date or datetime.now(timezone.utc).date(),
            store_name=store_name,
            notes=notes,
            created_at=now,
        )
        share_rows = [
            ExpenseShare(
                id=new_id(),
                expense_id=expense_id,
                user_id=share.user_id,
                amount_minor=share.amount_minor,
                percentage=share.percentage,
                status=ShareStatus.PENDING,
                created_at=now,
            )
            for share in computed
        ]

        self.repository.create_expense_bundle(expense, item_rows, share_rows)

        logger.info(
            "Expense %s created by %s: total_minor=%d, %d share(s), group=%s.",
            expense_id, payer_id, total_minor, len(share_rows), group_id,
        )

        for share in share_rows:
            if share.user_id == payer_id:
                continue
            self._notify(
                share.user_id,
                "New shared expense",
                f"You owe {share.amount_minor} for an expense"
                + (f" at {store_name}." if store_name else "."),
                "expense_share",
                {"expense_id": expense_id, "share_id": share.id, "amount_minor": share.amount_minor},
            )

        return expense

    def get_expense(self, user_id: str, expense_id: str) -> Expense:
        expense = self._get_expense_or_404(expense_id)
        if expense.created_by != user_id and all(s.user_id != user_id for s in expense.shares):
            raise AuthorizationError(
                ErrorCode.FORBIDDEN,
                "You are not part of this expense.",
            )
        return expense

    def list_expenses(self, user_id: str) -> list[Expense]:
        return self.repository.list_expenses_for_user(user_id)

    def delete_expense(self, user_id: str, expense_id: str) -> None:
        expense = self._get_expense_or_404(expense_id)
        if expense.created_by != user_id:
            raise AuthorizationError(
                ErrorCode.NOT_EXPENSE_CREATOR,
                "Only the person who recorded an expense may delete it.",
            )
        self.repository.delete_expense(expense)
        logger.info("Expense %s deleted by %s.", expense_id, user_id)

    # ── Shares ─────────────────────────────────────────────────────────────

    def update_share_status(self, user_id: str, share_id: str, new_status) -> ExpenseShare:
        """
        Moves a share along its transition table with compare-and-set.

        Raises NotFoundError, AuthorizationError (not the owner),
        InvalidTransition (no such edge) or ConflictError (STATUS_CONFLICT
        when another writer changed the share after it was read).
        """
        share = self.repository.get_share(share_id)
        if share is None:
            raise NotFoundError(
                ErrorCode.SHARE_NOT_FOUND,
                f"Share {share_id} does not exist.",
            )

        target = check_share_transition(share, user_id, new_status)
        previous = ShareStatus(share.status)
        expense = self._get_expense_or_404(share.expense_id)

        updated = self.repository.update_share_status(share_id, previous, target)

        logger.info(
            "Share %s on expense %s: %s -> %s by %s.",
            share_id, expense.id, previous.value, target.value, user_id,
        )

        if target in (ShareStatus.PAID, ShareStatus.REJECTED) and expense.created_by != user_id:
            verb = "paid" if target == ShareStatus.PAID else "rejected"
            self._notify(
                expense.created_by,
                f"Share {verb}",
                f"A participant {verb} their share of {updated.amount_minor}.",
                f"share_{verb}",
                {"expense_id": expense.id, "share_id": share_id, "user_id": user_id},
            )

        return updated

    # ── Groups ─────────────────────────────────────────────────────────────

    def create_group(self, user_id: str, name: str, description: str | None = None):
        """The creator becomes the group's first member, ACCEPTED, as admin."""
        if self.repository.get_user(user_id) is None:
            raise NotFoundError(
                ErrorCode.USER_NOT_FOUND,
                f"User {user_id} does not exist.",
            )
        group = self.repository.create_group(name, user_id, description)
        logger.info("Group %s created by %s.", group.id, user_id)
        return group

    def list_groups(self, user_id: str) -> list:
        return self.repository.list_groups_for_user(user_id)

    # ── Friends ────────────────────────────────────────────────────────────

    def list_friends(self, user_id: str) -> list:
        return self.repository.list_friend_rows(user_id, FriendStatus.ACCEPTED)

    def list_friend_requests(self, user_id: str) -> list:
        return self.repository.list_friend_requests_for_user(user_id)

    def send_friend_request(self, from_user_id: str, to_user_id: str, message: str | None = None):
        if from_user_id == to_user_id:
            raise ValidationError(
                ErrorCode.SELF_FRIEND_REQUEST,
                "You cannot send a friend request to yourself.",
                field="friend_id",
            )
        if self.repository.get_user(to_user_id) is None:
            raise NotFoundError(
                ErrorCode.USER_NOT_FOUND,
                f"User {to_user_id} does not exist.",
            )

        existing = self.repository.get_friend_row(from_user_id, to_user_id)
        if existing is not None and existing.status == FriendStatus.ACCEPTED:
            raise ConflictError(
                ErrorCode.ALREADY_FRIENDS,
                "You are already friends with this user.",
            )
        reverse = self.repository.get_friend_row(to_user_id, from_user_id)
        if reverse is not None and reverse.status == FriendStatus.BLOCKED:
            raise AuthorizationError(
                ErrorCode.FRIEND_BLOCKED,
                "This user is not accepting friend requests from you.",
            )

        if self.repository.find_active_friend_request(from_user_id, to_user_id) is not None:
            raise ConflictError(
                ErrorCode.DUPLICATE_FRIEND_REQUEST,
                "A pending friend request already exists between you and this user.",
            )

        request = self.repository.create_friend_request(from_user_id, to_user_id, message)
        logger.info("Friend request %s sent from %s to %s.", request.id, from_user_id, to_user_id)

        self._notify(
            to_user_id,
            "New friend request",
            message or "Someone wants to split expenses with you.",
            "friend_request",
            {"request_id": request.id, "from_user_id": from_user_id},
        )
        return request

    def respond_to_friend_request(self, user_id: str, request_id: str, action: str):
        """
        accept | reject (addressee) or cancel (sender) a pending request.

        Accepting upserts both mirrored Friend rows as ACCEPTED. A second
        accept on the same request fails with InvalidTransition and writes
        nothing.
        """
        request = self.repository.get_friend_request(request_id)
        if request is None:
            raise NotFoundError(
                ErrorCode.FRIEND_REQUEST_NOT_FOUND,
                f"Friend request {request_id} does not exist.",
            )

        target = next_friend_request_status(request, user_id, action)
        previous = FriendRequestStatus(request.status)

        updated = self.repository.update_friend_request_status(request_id, previous, target)

        logger.info(
            "Friend request %s: %s -> %s by %s.",
            request_id, previous.value, target.value, user_id,
        )

        if target == FriendRequestStatus.ACCEPTED:
            self.repository.upsert_friend_row(updated.from_user_id, updated.to_user_id, FriendStatus.ACCEPTED)
            self.repository.upsert_friend_row(updated.to_user_id, updated.from_user_id, FriendStatus.ACCEPTED)
            self._notify(
                updated.from_user_id,
                "Friend request accepted",
                "Your friend request was accepted.",
                "friend_request_accepted",
                {"request_id": request_id, "friend_id": updated.to_user_id},
            )
        elif target == FriendRequestStatus.REJECTED:
            self._notify(
                updated.from_user_id,
                "Friend request declined",
                "Your friend request was declined.",
                "friend_request_rejected",
                {"request_id": request_id},
            )

        return updated

    def remove_friend(self, user_id: str, friend_id: str) -> None:
        """Ends a friendship, or lifts a block user_id placed on friend_id."""
        row = self.repository.get_friend_row(user_id, friend_id)
        if row is None or row.status not in (FriendStatus.ACCEPTED, FriendStatus.BLOCKED):
            raise NotFoundError(
                ErrorCode.FRIEND_NOT_FOUND,
                f"User {friend_id} is not in your friends list.",
            )
        removed = self.repository.delete_friend_rows(user_id, friend_id)
        logger.info("Friendship %s <-> %s removed (%d row(s)).", user_id, friend_id, removed)

    def block_user(self, user_id: str, target_id: str):
        """
        Drops any friendship with target_id and leaves a single BLOCKED row
        user_id → target_id. While it exists target_id can neither send
        user_id a friend request nor put user_id on a direct expense.
        """
        if user_id == target_id:
            raise ValidationError(
                ErrorCode.SELF_BLOCK,
                "You cannot block yourself.",
                field="friend_id",
            )
        if self.repository.get_user(target_id) is None:
            raise NotFoundError(
                ErrorCode.USER_NOT_FOUND,
                f"User {target_id} does not exist.",
            )

        self.repository.delete_friend_rows(user_id, target_id)
        row = self.repository.upsert_friend_row(user_id, target_id, FriendStatus.BLOCKED)
        logger.info("User %s blocked %s.", user_id, target_id)
        return row

    # ── Balances & settlements ─────────────────────────────────────────────

    def get_group_balances(self, user_id: str, group_id: str) -> Balances:
        """
        {(debtor_id, creditor_id): amount_minor} across the group's expenses.

        Verifies every expense's shares still add up to its total first;
        a mismatch is a LedgerIntegrityError, never silently corrected.
        """
        self._require_group_member(group_id, user_id)

        scope = GroupScope(group_id)
        lines = self.repository.list_shares_for_scope(scope)
        totals = self.repository.get_expense_totals_for_scope(scope)
        balance_service.verify_share_totals(lines, totals, self.share_tolerance_minor)

        return balance_service.compute_balances(lines)

    def get_friend_balance(self, user_id: str, friend_id: str) -> Balances:
        """
        Balance between user_id and friend_id over their non-group expenses:
        those created by one of the pair with a share held by the other.
        """
        if friend_id == user_id:
            raise ValidationError(
                ErrorCode.INVALID_SCOPE,
                "A friend balance needs two different users.",
                field="friend_id",
            )
        lines = self.repository.list_shares_for_scope(FriendPairScope.of(user_id, friend_id))
        return balance_service.compute_balances(lines)

    def get_settlement_plan(
            self,
            user_id: str,
            group_id: str | None = None,
            friend_id: str | None = None,
    ) -> list[PlannedTransfer]:
        if (group_id is None) == (friend_id is None):
            raise ValidationError(
                ErrorCode.INVALID_SCOPE,
                "Provide exactly one of group_id or friend_id.",
            )

        if group_id is not None:
            balances = self.get_group_balances(user_id, group_id)
        else:
            balances = self.get_friend_balance(user_id, friend_id)

        return settlement_service.plan_settlements(balances)
