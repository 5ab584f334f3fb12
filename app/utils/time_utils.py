from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone=True columns
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def within_window(now: datetime, starts_at: Optional[datetime], expires_at: Optional[datetime]) -> bool:
    starts_at, expires_at = as_utc(starts_at), as_utc(expires_at)
    if starts_at and now < starts_at:
        return False
    if expires_at and now > expires_at:
        return False
    return True
