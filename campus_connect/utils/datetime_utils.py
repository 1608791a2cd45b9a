from datetime import datetime, time, timezone
from typing import Union


def utc_now() -> datetime:
    """
    Get current UTC datetime as a timezone-aware datetime.

    Returns:
        datetime: Current UTC datetime with timezone info
    """
    return datetime.now(timezone.utc)


def naive_utc_now() -> datetime:
    """
    Get current UTC datetime as a naive datetime (no timezone info).
    Stored timestamps are naive UTC so they compare cleanly on every backend.

    Returns:
        datetime: Current UTC datetime without timezone info
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_time_of_day(value: Union[str, time]) -> time:
    """
    Parse 'HH:MM' or 'HH:MM:SS' into a time object.

    Raises:
        ValueError: if the value is not a valid time of day
    """
    if isinstance(value, time):
        return value.replace(microsecond=0, tzinfo=None)
    parts = value.strip().split(":")
    if len(parts) not in (2, 3) or not all(p.isdigit() for p in parts):
        raise ValueError(f"Invalid time of day: {value!r}")
    return time(*(int(p) for p in parts))


def minutes_since_midnight(value: time, round_up: bool = False) -> int:
    """Whole minutes; `round_up` counts a started minute as taken"""
    minutes = value.hour * 60 + value.minute
    if round_up and (value.second or value.microsecond):
        minutes += 1
    return minutes


def format_minutes(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"
