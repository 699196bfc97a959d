from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Iterator, Optional
from zoneinfo import ZoneInfo

WEEKDAY_LABELS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
MINUTES_PER_DAY = 24 * 60


def week_anchor(day: date) -> date:
    """Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


def date_key(day: date) -> str:
    return day.isoformat()


def parse_date_key(key: str) -> date:
    return date.fromisoformat(key)


def daterange(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> time:
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"minutes out of range: {minutes}")
    return time(minutes // 60, minutes % 60)


def format_hhmm(value: time) -> str:
    return value.strftime("%H:%M")


def overlaps(a_start: int, a_duration: int, b_start: int, b_duration: int) -> bool:
    return a_start < b_start + b_duration and b_start < a_start + a_duration


def local_now(tz_name: Optional[str] = None) -> datetime:
    """Wall-clock time in the scheduling timezone, as a naive datetime."""
    if not tz_name:
        return datetime.now()
    return datetime.now(ZoneInfo(tz_name)).replace(tzinfo=None)
