"""
repositories/retry.py — Bounded retry for idempotent repository reads.

Reads that fail with a transient database error (dropped connection, pool
or statement timeout) are retried a small fixed number of times with
exponential backoff. Anything still failing after the last attempt, and any
other SQLAlchemy error, surfaces as DependencyError.

Writes are never routed through here. A failed write rolls back the unit of
work and surfaces immediately; the caller decides whether to resubmit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from grocery_ledger.app.errors import DependencyError

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    OperationalError,
    PoolTimeoutError,
    TimeoutError,
    ConnectionError,
)


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int = 3
    multiplier: float = 0.2
    max_wait: float = 2.0

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "RetryPolicy":
        return cls(
            attempts=max(1, int(config.get("REPOSITORY_READ_ATTEMPTS", cls.attempts))),
            multiplier=float(config.get("REPOSITORY_RETRY_MULTIPLIER_SECONDS", cls.multiplier)),
            max_wait=float(config.get("REPOSITORY_RETRY_MAX_WAIT_SECONDS", cls.max_wait)),
        )


def call_with_retry(
        policy: RetryPolicy,
        fn: Callable[..., Any],
        *args: Any,
        label: str | None = None,
        on_retry: Callable[[], None] | None = None,
        **kwargs: Any,
) -> Any:
    """
    Calls fn(*args, **kwargs) under the policy.

    on_retry runs before every new attempt; the SQLAlchemy adapter uses it
    to roll back the session so the next attempt starts on a clean
    connection.
    """
    name = label or getattr(fn, "__name__", "call")

    def before_sleep(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        logger.warning(
            "Repository read %s failed (attempt %d/%d): %s. Retrying.",
            name,
            state.attempt_number,
            policy.attempts,
            exc,
        )
        if on_retry is not None:
            on_retry()

    retrying = Retrying(
        stop=stop_after_attempt(policy.attempts),
        wait=wait_exponential(multiplier=policy.multiplier, max=policy.max_wait),
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        before_sleep=before_sleep,
        reraise=True,
    )

    try:
        return retrying(fn, *args, **kwargs)
    except TRANSIENT_ERRORS as exc:
        raise DependencyError(
            f"Repository read {name} failed after {policy.attempts} attempt(s): {exc}"
        ) from exc
    except SQLAlchemyError as exc:
        raise DependencyError(f"Repository read {name} failed: {exc}") from exc
