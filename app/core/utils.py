"""
General utility functions used across the application.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Union

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhdw]?)\s*$")
_DURATION_UNITS = {
    "": "seconds",
    "s": "seconds",
    "m": "minutes",
    "h": "hours",
    "d": "days",
    "w": "weeks",
}


def utcnow() -> datetime:
    """Return the current timezone-aware UTC time."""
    return datetime.now(timezone.utc)


def now_iso() -> str:
    """Return current UTC time in ISO 8601 format."""
    return utcnow().isoformat().replace("+00:00", "Z")


def parse_duration(value: Union[str, int]) -> timedelta:
    """
    Convert an expiry such as ``"7d"``, ``"12h"``, ``"15m"``, ``"30s"`` or a
    bare number of seconds into a timedelta.

    Raises:
        ValueError: If the value is not a recognised duration
    """
    if isinstance(value, int):
        return timedelta(seconds=value)

    match = _DURATION_RE.match(value.lower())
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")

    amount, unit = match.groups()
    return timedelta(**{_DURATION_UNITS[unit]: int(amount)})
