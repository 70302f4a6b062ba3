# src/awm/core/durations.py

"""
Duration codec.

Human duration literals used for cadences, status intervals and idle thresholds:
- `<integer><unit>` with unit in s/m/h/d, e.g. "5s", "15m", "1h", "2d"
- the literal "daily" (fixed 24h)

No signs, decimals or combined units. Every other module parses through here.
"""

from __future__ import annotations

import re

from .errors import InvalidDuration

SECOND_MS = 1000
MINUTE_MS = 60 * SECOND_MS
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS

_UNIT_MS = {
    "s": SECOND_MS,
    "m": MINUTE_MS,
    "h": HOUR_MS,
    "d": DAY_MS,
}

_DURATION_RE = re.compile(r"([0-9]+)([smhd])")


def parse_duration(text: str) -> int:
    """Parse a duration literal into milliseconds. Raises InvalidDuration."""
    if not isinstance(text, str):
        raise InvalidDuration(text)
    if text == "daily":
        return DAY_MS

    m = _DURATION_RE.fullmatch(text)
    if m is None:
        raise InvalidDuration(text)
    return int(m.group(1)) * _UNIT_MS[m.group(2)]


def parse_duration_safe(text: str | None) -> int | None:
    """
    Non-raising variant for evaluation loops.

    A malformed duration on one task must not abort evaluation of the others,
    so callers get None and skip the offending item.
    """
    if text is None:
        return None
    try:
        return parse_duration(text)
    except InvalidDuration:
        return None


def format_duration(ms: int) -> str:
    """
    Display-only formatting: largest whole unit, floor division.

    90s -> "1m".
    """
    seconds = max(0, int(ms)) // 1000
    if seconds < 60:
        return f"{seconds}s"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h"
    return f"{hours // 24}d"


def format_ago(ms: int) -> str:
    """Minute-granularity "N ago" text used in wake messages."""
    mins = max(0, int(ms)) // MINUTE_MS
    if mins < 60:
        return f"{mins}m ago"
    hours = mins // 60
    if hours < 24:
        return f"{hours}h ago"
    return f"{hours // 24}d ago"
