from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from flask import current_app


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


# =============================================================================
# STORE-LOCAL CLOCK
# =============================================================================

def store_timezone() -> ZoneInfo:
    return ZoneInfo(current_app.config.get("STORE_TIMEZONE", "UTC"))


def store_now() -> datetime:
    """Wall-clock time at the store (naive, store-local)."""
    return datetime.now(store_timezone()).replace(tzinfo=None)


def day_of_week_sunday_first(day: date) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return (day.weekday() + 1) % 7


# =============================================================================
# TIME-OF-DAY PARSING
# =============================================================================

_CLOCK_12H_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*([AaPp][Mm])\s*$")
_CLOCK_24H_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::\d{2})?\s*$")


def parse_clock_time(value: str) -> tuple[int, int]:
    """
    Parse a time of day written either as "5:00 PM" or "17:00".

    Returns (hour, minute) on a 24-hour clock. Raises ValueError on
    anything else.
    """
    if value is None:
        raise ValueError("Time is required")

    match = _CLOCK_12H_RE.match(value)
    if match:
        hour, minute, meridiem = int(match.group(1)), int(match.group(2)), match.group(3).upper()
        if not 1 <= hour <= 12 or minute > 59:
            raise ValueError(f"Invalid time: {value}")
        if meridiem == "PM" and hour != 12:
            hour += 12
        elif meridiem == "AM" and hour == 12:
            hour = 0
        return hour, minute

    match = _CLOCK_24H_RE.match(value)
    if match:
        hour, minute = int(match.group(1)), int(match.group(2))
        if hour > 23 or minute > 59:
            raise ValueError(f"Invalid time: {value}")
        return hour, minute

    raise ValueError(f"Invalid time: {value}")


def combine_local(day: date, clock: str) -> datetime:
    """Store-local naive datetime for a calendar date plus a time-of-day string."""
    hour, minute = parse_clock_time(clock)
    return datetime.combine(day, time(hour=hour, minute=minute))


def parse_date(value: str) -> date:
    return date.fromisoformat(value.strip())


def date_range(start: date, days: int) -> list[date]:
    return [start + timedelta(days=offset) for offset in range(days)]


def to_store_local(dt: datetime) -> datetime:
    """UTC-naive datetime -> store-local naive datetime."""
    return dt.replace(tzinfo=timezone.utc).astimezone(store_timezone()).replace(tzinfo=None)
