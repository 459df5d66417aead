# Overview: UTC helpers; every stored timestamp is naive UTC.

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def start_of_utc_day(dt: datetime) -> datetime:
    return datetime.combine(dt.date(), time.min)


def utc_day_bounds(dt: datetime) -> tuple[datetime, datetime]:
    """Half-open [start, end) bounds of the UTC calendar day containing dt."""
    start = start_of_utc_day(dt)
    return start, start + timedelta(days=1)


def parse_iso_datetime(value: Optional[str], *, end_of_day: bool = False) -> Optional[datetime]:
    """
    Parse an ISO-8601 string into a naive UTC datetime.

    - None / "" -> None
    - naive input is taken as UTC; "Z" and "+HH:MM" offsets are converted
    - a bare date ("2026-01-31") means midnight, or the last microsecond of
      that day when end_of_day=True (inclusive upper bounds)

    Raises ValueError on anything else.
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    if len(s) == 10:
        day = date.fromisoformat(s)
        return datetime.combine(day, time.max if end_of_day else time.min)

    if s.endswith(("Z", "z")):
        s = s[:-1] + "+00:00"
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Render as "2026-01-31T09:15:00Z" (second precision); naive input is UTC."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"
