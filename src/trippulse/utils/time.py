from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo


DEFAULT_TZ = ZoneInfo("America/New_York")

WEEKDAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


def parse_datetime(value: str, default_tz: ZoneInfo = DEFAULT_TZ) -> datetime:
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=default_tz)
    return dt


def to_local(dt: datetime, tz: ZoneInfo = DEFAULT_TZ) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz)
    return dt.astimezone(tz)


def sunday_based_weekday(dt: datetime) -> int:
    """Weekday index with 0=Sunday .. 6=Saturday."""

    return (dt.weekday() + 1) % 7


def weekday_name(day_of_week: int) -> str:
    return WEEKDAY_NAMES[int(day_of_week) % 7]
