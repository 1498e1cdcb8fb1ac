import re
from datetime import datetime, timedelta, timezone

_DURATION_RE = re.compile(r"^(\d+)([a-zA-Z]+)$")

_UNITS = {
    "ms": timedelta(milliseconds=1),
    "millisecond": timedelta(milliseconds=1),
    "milliseconds": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "sec": timedelta(seconds=1),
    "second": timedelta(seconds=1),
    "seconds": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "min": timedelta(minutes=1),
    "minute": timedelta(minutes=1),
    "minutes": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "hr": timedelta(hours=1),
    "hour": timedelta(hours=1),
    "hours": timedelta(hours=1),
    "d": timedelta(days=1),
    "day": timedelta(days=1),
    "days": timedelta(days=1),
    "w": timedelta(weeks=1),
    "week": timedelta(weeks=1),
    "weeks": timedelta(weeks=1),
}


def parse_duration(value: str) -> timedelta:
    """
    Convert a duration string such as "15m", "7d" or "1hour" into a timedelta

    Args:
        value: Amount followed by a unit (ms, s, m, h, d, w or their long forms)

    Returns:
        timedelta: Parsed duration

    Raises:
        ValueError: If the string is malformed or the unit is unknown
    """
    match = _DURATION_RE.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValueError(
            f"Invalid duration '{value}'. Expected an integer followed by a unit, e.g. 15m, 1h or 7d"
        )

    amount = int(match.group(1))
    unit = match.group(2).lower()
    if unit not in _UNITS:
        raise ValueError(f"Unknown time unit: {unit}")

    return amount * _UNITS[unit]


def utcnow() -> datetime:
    """Naive UTC timestamp, the form expiry columns are stored in"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def expires_in(duration: str) -> datetime:
    return utcnow() + parse_duration(duration)
