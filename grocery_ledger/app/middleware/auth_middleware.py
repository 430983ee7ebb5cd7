"""
middleware/auth_middleware.py — Bearer token authentication decorator.

Access tokens are issued by the external auth provider. This service only
verifies them with the shared signing secret; it never issues, refreshes or
revokes tokens.

The @require_auth decorator:
  1. Reads the Authorization header (expected: "Bearer <token>")
  2. Decodes and verifies the JWT signature (JWT_ALGORITHM, default HS256)
  3. Checks expiry, and the audience when JWT_AUDIENCE is configured
  4. Attaches the provider's user id (the `sub` claim, a string) to flask.g
  5. Raises the appropriate 401 AppError if any step fails

Strict responsibility boundary:
  - Middleware = authentication (401). It does NOT decide who may touch
    an expense, share or group; that is ledger_service.py (403).
  - Services receive user_id as a plain string argument, with no knowledge
    of JWT or HTTP headers.
"""

from __future__ import annotations

import functools
from typing import Callable

import jwt
from flask import current_app, g, request

from grocery_ledger.app.errors import AppError, ErrorCode


def require_auth(f: Callable) -> Callable:
    """
    Route decorator that enforces bearer token authentication.

    Usage:
        @expenses_bp.route("/expenses", methods=["GET"])
        @require_auth
        def list_expenses():
            user_id = g.user_id  # always a non-empty str when this runs
            ...
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        _authenticate_request()
        return f(*args, **kwargs)

    return decorated


def _authenticate_request() -> None:
    """
    Performs the full authentication sequence and sets flask.g.user_id.

    Separated from the decorator wrapper so tests can call it directly inside
    a test request context.
    """
    auth_header = request.headers.get("Authorization", "")

    # ── Step 1: Require Authorization header ──────────────────────────────
    if not auth_header:
        raise AppError(
            ErrorCode.TOKEN_MISSING,
            "Authentication required. Provide a Bearer token in the Authorization header.",
            401,
        )

    # ── Step 2: Parse "Bearer <token>" format ─────────────────────────────
    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "Authorization header must be in the format: Bearer <token>.",
            401,
        )

    raw_token = parts[1]

    # ── Step 3: Decode and verify the JWT ─────────────────────────────────
    audience = current_app.config.get("JWT_AUDIENCE")
    try:
        payload = jwt.decode(
            raw_token,
            current_app.config["JWT_SECRET_KEY"],
            algorithms=[current_app.config.get("JWT_ALGORITHM", "HS256")],
            audience=audience,
            options={"verify_aud": audience is not None},
        )
    except jwt.ExpiredSignatureError:
        raise AppError(
            ErrorCode.TOKEN_EXPIRED,
            "The access token has expired. Sign in again to obtain a new one.",
            401,
        )
    except jwt.InvalidTokenError:
        # Bad signature, malformed token, wrong audience, etc.
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "The access token is invalid or has been tampered with.",
            401,
        )

    # ── Step 4: Extract and validate the sub (user id) claim ──────────────
    sub = payload.get("sub")
    if not isinstance(sub, str) or not sub.strip():
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "The access token is missing a valid 'sub' claim.",
            401,
        )

    # ── Step 5: Attach user_id to flask.g ─────────────────────────────────
    g.user_id = sub
