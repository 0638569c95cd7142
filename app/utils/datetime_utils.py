"""
DateTime utility functions for consistent date handling
All timestamps are stored as timezone-aware UTC ISO-8601 strings
"""

from datetime import datetime, timezone
from typing import Union


def utc_now() -> datetime:
    """Get current UTC timestamp"""
    return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    """
    Format datetime as a fixed-width ISO string so that stored values compare
    lexicographically in the same order as chronologically
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def utc_now_iso() -> str:
    return to_iso(utc_now())


def parse_datetime(value: Union[str, datetime]) -> datetime:
    """
    Parse datetime string to datetime object
    Handles ISO format with 'Z' suffix and naive values (assumed UTC)
    """
    if isinstance(value, datetime):
        dt = value
    else:
        if not value:
            raise ValueError("Empty datetime value")
        if value.endswith('Z'):
            value = value[:-1] + '+00:00'
        dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def iso_week_label(value: Union[str, datetime]) -> str:
    """
    ISO-8601 week label, e.g. 2026-W07
    Uses the ISO year so that early-January days belonging to the previous
    year's last week are labelled with that year
    """
    iso_year, iso_week, _ = parse_datetime(value).isocalendar()
    return f"{iso_year}-W{iso_week:02d}"
