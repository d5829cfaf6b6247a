# fleetcheck/core/timeutils.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    """Naive UTC 'now' (the whole service stores UTC without tzinfo)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC already."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_dt(value: Any) -> Optional[datetime]:
    """
    Tolerant parser for stored timestamps:
      - datetime -> naive UTC
      - ISO string (with 'Z' or offset) -> naive UTC
      - anything else / unparseable -> None
    """
    if isinstance(value, datetime):
        return to_naive_utc(value)
    if isinstance(value, str) and value.strip():
        try:
            return to_naive_utc(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))
        except ValueError:
            return None
    return None


def iso_z(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return to_naive_utc(value).isoformat() + "Z"
