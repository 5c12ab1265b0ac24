"""UTC helpers shared by services that accept an injectable `now`."""

from datetime import datetime, timezone
from typing import Any, Optional


def normalize_now(now: Optional[Any] = None) -> datetime:
    """Current time, or `now` converted to UTC; naive values are taken as UTC."""
    if now is None:
        return datetime.now(timezone.utc)
    if getattr(now, "tzinfo", None) is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from the store (SQLite drops tzinfo)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
