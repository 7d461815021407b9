"""Time helpers.

All timestamps are stored as UTC. SQLite hands naive datetimes back, so every
comparison goes through ``ensure_utc`` first.
"""

from datetime import date, datetime, timezone
from typing import Optional, Union


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[Union[datetime, date]]) -> Optional[datetime]:
    """Coerce a date / naive datetime / aware datetime to an aware UTC datetime."""
    if value is None:
        return None
    if not isinstance(value, datetime):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def days_between(start, now) -> int:
    """Whole days elapsed from ``start`` to ``now`` (floor, may be negative)."""
    delta = ensure_utc(now) - ensure_utc(start)
    return delta.days


def isoformat(value) -> Optional[str]:
    value = ensure_utc(value)
    return value.isoformat() if value else None


def parse_datetime(value) -> datetime:
    """Parse an ISO date or datetime string into an aware UTC datetime."""
    if isinstance(value, (datetime, date)):
        return ensure_utc(value)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return ensure_utc(datetime.fromisoformat(text))
    except ValueError:
        return ensure_utc(date.fromisoformat(text[:10]))
