# appointly/core/clock.py
from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get_clock():
    """FastAPI dependency; tests override it with a frozen clock."""
    return utcnow
