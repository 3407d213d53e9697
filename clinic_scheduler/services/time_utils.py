"""Canonical HH:MM handling for loosely typed clinic hours.

Clinic hours have been typed in by hand for years ("9", "08:00 a.m.", "3 PM",
"17:00"), so parsing here degrades to an empty string instead of raising.
"""

import re

_HH_MM = re.compile(r"^(\d{1,2}):(\d{2})$")
_NON_TIME_CHARS = re.compile(r"[^0-9:]")


def _format(hour: int, minute: int) -> str:
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return ""
    return f"{hour:02d}:{minute:02d}"


def normalize_time(raw: object) -> str:
    """Return ``raw`` as zero-padded 24-hour ``HH:MM``, or ``""`` when unusable.

    Accepts ``H:MM``/``HH:MM`` directly. Anything else is read as a 12-hour
    time: periods are dropped, an ``a`` marks AM and a ``p`` marks PM, and the
    remaining digits are split on ``:`` (minutes default to ``00``).
    Never raises.
    """
    if not isinstance(raw, str):
        return ""
    value = raw.strip()
    if not value:
        return ""

    match = _HH_MM.match(value)
    if match:
        return _format(int(match.group(1)), int(match.group(2)))

    cleaned = value.replace(".", "").lower()
    is_am = "a" in cleaned
    is_pm = "p" in cleaned
    digits = _NON_TIME_CHARS.sub("", cleaned)
    if not any(ch.isdigit() for ch in digits):
        return ""

    parts = digits.split(":")
    hour_part = parts[0]
    minute_part = parts[1] if len(parts) > 1 and parts[1] else "00"
    if not hour_part.isdigit() or not minute_part.isdigit() or len(minute_part) > 2:
        return ""

    hour = int(hour_part)
    if is_pm and hour < 12:
        hour += 12
    if is_am and hour == 12:
        hour = 0
    return _format(hour, int(minute_part))


def time_to_minutes(value: str) -> int | None:
    """Minutes since midnight for a canonical ``HH:MM``; ``None`` if not canonical."""
    match = _HH_MM.match(value or "")
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        return None
    return hour * 60 + minute


def minutes_to_time(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"
