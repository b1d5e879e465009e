"""Duration and UTC-offset parsing helpers for configuration values."""

from __future__ import annotations

import re
from datetime import timedelta, timezone

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd])\s*$", re.IGNORECASE)
_OFFSET_RE = re.compile(r"^\s*(?:UTC)?\s*([+-])(\d{1,2})(?::?(\d{2}))?\s*$", re.IGNORECASE)
_UNIT_SECONDS = {
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
}


def parse_duration(value: str) -> timedelta:
    """Parse compact duration strings like '60s', '5m', '1d'."""
    match = _DURATION_RE.match(str(value or ""))
    if not match:
        raise ValueError(f"Invalid duration: {value!r}. Expected '<int><s|m|h|d>'.")

    amount = int(match.group(1))
    unit = match.group(2).lower()
    return timedelta(seconds=amount * _UNIT_SECONDS[unit])


def parse_utc_offset(value: str) -> timezone:
    """Parse a fixed offset like '+02:00', '-0530', 'UTC+1' or 'Z'."""
    text = str(value or "").strip()
    if text.upper() in ("Z", "UTC", "+00:00"):
        return timezone.utc

    match = _OFFSET_RE.match(text)
    if not match:
        raise ValueError(f"Invalid UTC offset: {value!r}. Expected '+HH:MM'.")

    sign = -1 if match.group(1) == "-" else 1
    hours = int(match.group(2))
    minutes = int(match.group(3) or 0)
    if hours > 23 or minutes > 59:
        raise ValueError(f"UTC offset out of range: {value!r}")
    return timezone(sign * timedelta(hours=hours, minutes=minutes))
