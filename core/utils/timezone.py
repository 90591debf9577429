"""
Timezone utilities

Stored timestamps are UTC; "today" for a pharmacy is a local calendar date.
"""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from core.constants import Defaults

LOCAL_TZ = ZoneInfo(Defaults.LOCAL_TIMEZONE)


def now_utc() -> datetime:
    """Current UTC time (tz-aware)

    Shorthand for datetime.now(timezone.utc). Used as the default clock
    for entered_at.
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Normalise a datetime to UTC

    Naive datetimes are treated as UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_local(dt: datetime) -> datetime:
    """Convert a datetime to the pharmacy's local timezone

    Example:
        >>> to_local(datetime(2024, 7, 1, 23, 30, tzinfo=timezone.utc)).day
        2  # 00:30 BST the next day
    """
    return ensure_utc(dt).astimezone(LOCAL_TZ)


def local_today(clock: datetime | None = None) -> date:
    """Local calendar date for "now" (or for the given instant)"""
    return to_local(clock or now_utc()).date()
