# conduct_log/core/timeutil.py
"""
Timestamps are persisted as sortable ISO-8601 UTC strings with millisecond
precision, e.g. ``2025-01-10T00:00:00.000Z``. Every stored value goes through
``to_iso`` so that lexical order equals chronological order.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    """Naive datetimes are taken to be UTC already."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_iso(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    return as_utc(dt).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def now_iso() -> str:
    return to_iso(utcnow())
