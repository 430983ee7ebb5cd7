"""
services/status_tracker.py — Transition tables for FriendRequest and ExpenseShare.

Pure functions over the current record and the acting user. Nothing here
writes; the ledger service turns an approved transition into a
compare-and-set through the repository.

FriendRequest
    pending ──accept──▶ accepted
            ──reject──▶ rejected
            ──cancel──▶ cancelled
  accept / reject: addressee (to_user_id) only
  cancel:          requester (from_user_id) only

ExpenseShare
    pending  ──▶ accepted | rejected | paid | cancelled
    accepted ──▶ paid
  Only the share's owner (share.user_id) may move it.

States with no outgoing edges are terminal. Any attempt to leave one,
including a same-status "transition", raises InvalidTransition.
"""

from __future__ import annotations

from grocery_ledger.app.errors import (
    AuthorizationError,
    ErrorCode,
    InvalidTransition,
    ValidationError,
)
from grocery_ledger.app.models.friend import FriendRequestStatus
from grocery_ledger.app.models.share import ShareStatus


FRIEND_REQUEST_TRANSITIONS: dict[FriendRequestStatus, frozenset[FriendRequestStatus]] = {
    FriendRequestStatus.PENDING: frozenset({
        FriendRequestStatus.ACCEPTED,
        FriendRequestStatus.REJECTED,
        FriendRequestStatus.CANCELLED,
    }),
    FriendRequestStatus.ACCEPTED:  frozenset(),
    FriendRequestStatus.REJECTED:  frozenset(),
    FriendRequestStatus.CANCELLED: frozenset(),
}

SHARE_TRANSITIONS: dict[ShareStatus, frozenset[ShareStatus]] = {
    ShareStatus.PENDING: frozenset({
        ShareStatus.ACCEPTED,
        ShareStatus.REJECTED,
        ShareStatus.PAID,
        ShareStatus.CANCELLED,
    }),
    ShareStatus.ACCEPTED:  frozenset({ShareStatus.PAID}),
    ShareStatus.REJECTED:  frozenset(),
    ShareStatus.PAID:      frozenset(),
    ShareStatus.CANCELLED: frozenset(),
}

# action → (resulting status, which side of the request may perform it)
FRIEND_REQUEST_ACTIONS: dict[str, tuple[FriendRequestStatus, str]] = {
    "accept": (FriendRequestStatus.ACCEPTED,  "to_user_id"),
    "reject": (FriendRequestStatus.REJECTED,  "to_user_id"),
    "cancel": (FriendRequestStatus.CANCELLED, "from_user_id"),
}


def is_terminal(status: FriendRequestStatus | ShareStatus) -> bool:
    if isinstance(status, FriendRequestStatus):
        return not FRIEND_REQUEST_TRANSITIONS[status]
    return not SHARE_TRANSITIONS[ShareStatus(status)]


def next_friend_request_status(request, actor_id: str, action: str) -> FriendRequestStatus:
    """
    Validates `action` on `request` by `actor_id` and returns the target status.

    Raises:
        ValidationError     unknown action (INVALID_ACTION)
        AuthorizationError  wrong side of the request for this action
        InvalidTransition   request already in a terminal state
    """
    try:
        target, allowed_side = FRIEND_REQUEST_ACTIONS[action]
    except (KeyError, TypeError):
        raise ValidationError(
            ErrorCode.INVALID_ACTION,
            f"action must be one of: {', '.join(FRIEND_REQUEST_ACTIONS)}.",
            field="action",
        )

    if getattr(request, allowed_side) != actor_id:
        if allowed_side == "to_user_id":
            raise AuthorizationError(
                ErrorCode.NOT_REQUEST_ADDRESSEE,
                f"Only the recipient of a friend request may {action} it.",
            )
        raise AuthorizationError(
            ErrorCode.NOT_REQUEST_SENDER,
            "Only the sender of a friend request may cancel it.",
        )

    current = FriendRequestStatus(request.status)
    if target not in FRIEND_REQUEST_TRANSITIONS[current]:
        raise InvalidTransition(
            f"Friend request is already {current.value}; cannot {action} it."
        )
    return target


def parse_share_status(value) -> ShareStatus:
    try:
        return ShareStatus(value)
    except ValueError:
        raise ValidationError(
            ErrorCode.INVALID_STATUS,
            f"status must be one of: {', '.join(s.value for s in ShareStatus)}.",
            field="status",
        )


def check_share_transition(share, actor_id: str, new_status) -> ShareStatus:
    """
    Validates moving `share` to `new_status` on behalf of `actor_id`.

    Returns the parsed target status. Raises ValidationError for an unknown
    status, AuthorizationError when the actor does not own the share, and
    InvalidTransition when the table has no such edge.
    """
    target = parse_share_status(new_status)

    if share.user_id != actor_id:
        raise AuthorizationError(
            ErrorCode.NOT_SHARE_OWNER,
            "Only the participant who owes a share may change its status.",
        )

    current = ShareStatus(share.status)
    if target not in SHARE_TRANSITIONS[current]:
        raise InvalidTransition(
            f"Share cannot move from '{current.value}' to '{target.value}'."
        )
    return target
