"""
models/base.py — Column helpers shared by every model module.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone


def new_id() -> str:
    """Primary keys are UUID strings, matching the ids issued by the auth provider."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Ensure SQLAlchemy stores enum values (e.g. 'pending'), not names ('PENDING')."""
    return [member.value for member in enum_cls]
