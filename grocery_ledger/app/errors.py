"""
errors.py — AppError hierarchy and error code registry.

Every failure raised by the ledger core uses one of the classes below with a
code defined in ErrorCode. Do not raise strings or generic exceptions from
service, repository or route code.

Taxonomy:
  ValidationError       (400) — malformed or missing input. No retry.
  AuthorizationError    (403) — actor lacks rights over the resource. No retry.
  NotFoundError         (404) — referenced entity does not exist.
  ConflictError         (409) — optimistic-concurrency mismatch or duplicate
                                active record. Caller may refetch and retry.
  LedgerIntegrityError  (500) — invariant violated by stored data. Opaque.
  DependencyError       (503) — repository / port failure or timeout. Opaque.

Opaque errors never expose their internal message to clients. They carry a
`reference` that is logged next to the full message so operators can find it.
"""

from __future__ import annotations

import uuid


class AppError(Exception):

    #: Opaque errors hide `message` from clients and expose `reference` instead.
    opaque: bool = False

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field  # which input field caused the error

    def to_dict(self) -> dict:
        payload = {
            "code":    self.code,
            "message": self.message,
        }
        if self.field is not None:
            payload["field"] = self.field
        return {"error": payload}

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


class ValidationError(AppError):

    def __init__(self, code: str, message: str, field: str | None = None) -> None:
        super().__init__(code, message, 400, field=field)


class InvalidParticipantSet(ValidationError):

    def __init__(self, message: str, field: str | None = "participant_ids") -> None:
        super().__init__(ErrorCode.INVALID_PARTICIPANT_SET, message, field=field)


class WeightsDoNotSumTo100(ValidationError):

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.WEIGHTS_DO_NOT_SUM_TO_100, message, field="weights")


class NonPositiveTotal(ValidationError):

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.NON_POSITIVE_TOTAL, message, field="total_minor")


class AuthorizationError(AppError):

    def __init__(self, code: str, message: str, field: str | None = None) -> None:
        super().__init__(code, message, 403, field=field)


class NotFoundError(AppError):

    def __init__(self, code: str, message: str) -> None:
        super().__init__(code, message, 404)


class ConflictError(AppError):

    def __init__(self, code: str, message: str) -> None:
        super().__init__(code, message, 409)


class InvalidTransition(ConflictError):

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.INVALID_TRANSITION, message)


class _OpaqueError(AppError):

    opaque = True
    public_message = "An internal error occurred."

    def __init__(self, code: str, message: str, http_status: int) -> None:
        super().__init__(code, message, http_status)
        self.reference = uuid.uuid4().hex[:12]

    def to_dict(self) -> dict:
        return {
            "error": {
                "code":      self.code,
                "message":   self.public_message,
                "reference": self.reference,
            }
        }


class LedgerIntegrityError(_OpaqueError):

    public_message = (
        "The ledger could not be computed because stored data is inconsistent. "
        "Quote the reference when contacting support."
    )

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.LEDGER_INTEGRITY, message, 500)


class DependencyError(_OpaqueError):

    public_message = (
        "A backing service is temporarily unavailable. Please try again later."
    )

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.DEPENDENCY_UNAVAILABLE, message, 503)


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by category. HTTP status is indicated in the section header.
# These are the string values sent in API responses; do not rename them.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    MISSING_FIELD              = "MISSING_FIELD"
    INVALID_FIELD              = "INVALID_FIELD"
    INVALID_AMOUNT             = "INVALID_AMOUNT"
    INVALID_SPLIT_MODE         = "INVALID_SPLIT_MODE"
    INVALID_STATUS             = "INVALID_STATUS"
    INVALID_ACTION             = "INVALID_ACTION"
    INVALID_WEIGHT             = "INVALID_WEIGHT"
    INVALID_SCOPE              = "INVALID_SCOPE"
    INVALID_PARTICIPANT_SET    = "INVALID_PARTICIPANT_SET"
    DUPLICATE_PARTICIPANT      = "DUPLICATE_PARTICIPANT"
    WEIGHTS_DO_NOT_SUM_TO_100  = "WEIGHTS_DO_NOT_SUM_TO_100"
    WEIGHTS_REQUIRED           = "WEIGHTS_REQUIRED"
    WEIGHTS_SENT_FOR_EQUAL_MODE = "WEIGHTS_SENT_FOR_EQUAL_MODE"
    NON_POSITIVE_TOTAL         = "NON_POSITIVE_TOTAL"
    ITEM_TOTAL_MISMATCH        = "ITEM_TOTAL_MISMATCH"
    PARTICIPANT_NOT_MEMBER     = "PARTICIPANT_NOT_MEMBER"
    SELF_FRIEND_REQUEST        = "SELF_FRIEND_REQUEST"
    SELF_BLOCK                 = "SELF_BLOCK"

    # ── Authorization Errors (403) ─────────────────────────────────────────
    FORBIDDEN                  = "FORBIDDEN"
    PAYER_NOT_MEMBER           = "PAYER_NOT_MEMBER"
    NOT_GROUP_MEMBER           = "NOT_GROUP_MEMBER"
    NOT_EXPENSE_CREATOR        = "NOT_EXPENSE_CREATOR"
    NOT_SHARE_OWNER            = "NOT_SHARE_OWNER"
    NOT_REQUEST_ADDRESSEE      = "NOT_REQUEST_ADDRESSEE"
    NOT_REQUEST_SENDER         = "NOT_REQUEST_SENDER"
    FRIEND_BLOCKED             = "FRIEND_BLOCKED"

    # ── Authentication Errors (401) ────────────────────────────────────────
    TOKEN_MISSING              = "TOKEN_MISSING"
    TOKEN_INVALID              = "TOKEN_INVALID"
    TOKEN_EXPIRED              = "TOKEN_EXPIRED"

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    EXPENSE_NOT_FOUND          = "EXPENSE_NOT_FOUND"
    SHARE_NOT_FOUND            = "SHARE_NOT_FOUND"
    GROUP_NOT_FOUND            = "GROUP_NOT_FOUND"
    FRIEND_REQUEST_NOT_FOUND   = "FRIEND_REQUEST_NOT_FOUND"
    FRIEND_NOT_FOUND           = "FRIEND_NOT_FOUND"
    USER_NOT_FOUND             = "USER_NOT_FOUND"

    # ── Conflict Errors (409) ──────────────────────────────────────────────
    STATUS_CONFLICT            = "STATUS_CONFLICT"
    INVALID_TRANSITION         = "INVALID_TRANSITION"
    DUPLICATE_FRIEND_REQUEST   = "DUPLICATE_FRIEND_REQUEST"
    ALREADY_FRIENDS            = "ALREADY_FRIENDS"

    # ── Opaque System Errors (500 / 503) ───────────────────────────────────
    LEDGER_INTEGRITY           = "LEDGER_INTEGRITY"
    DEPENDENCY_UNAVAILABLE     = "DEPENDENCY_UNAVAILABLE"
    INTERNAL_ERROR             = "INTERNAL_ERROR"
