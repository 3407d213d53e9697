import logging
from collections.abc import Mapping
from datetime import date
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.core.db import run_query
from clinic_scheduler.core.errors import NotFoundError
from clinic_scheduler.models.clinic import Clinic, Interval
from clinic_scheduler.services.time_utils import minutes_to_time, normalize_time, time_to_minutes

logger = logging.getLogger(__name__)

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

# Long-interval repair: a shift starting before 07:00 and lasting over 10h is taken
# as a closing time typed as AM, provided the same day also has a plausible morning
# shift (starting 08:00-12:00, at most 6h). Provisional thresholds.
_EARLY_START_BEFORE = 7 * 60
_LONG_INTERVAL_OVER = 10 * 60
_MORNING_SHIFT_FROM = 8 * 60
_MORNING_SHIFT_TO = 12 * 60
_MORNING_SHIFT_MAX = 6 * 60
_HALF_DAY = 12 * 60

WeeklySchedule = dict[str, list[Interval]]


def weekday_key(d: date) -> str:
    return WEEKDAYS[d.weekday()]


def _normalized_minutes(raw: Any) -> tuple[int, int] | None:
    if not isinstance(raw, Mapping):
        return None
    start = normalize_time(raw.get("start"))
    end = normalize_time(raw.get("end"))
    if not start or not end:
        return None
    start_min, end_min = time_to_minutes(start), time_to_minutes(end)
    if start_min is None or end_min is None or end_min <= start_min:
        return None
    return start_min, end_min


def _is_morning_shift(start: int, end: int) -> bool:
    return _MORNING_SHIFT_FROM <= start <= _MORNING_SHIFT_TO and end - start <= _MORNING_SHIFT_MAX


def _repair_long_intervals(intervals: list[tuple[int, int]], day: str | None) -> list[tuple[int, int]]:
    repaired: list[tuple[int, int]] = []
    for idx, (start, end) in enumerate(intervals):
        suspicious = start < _EARLY_START_BEFORE and end - start > _LONG_INTERVAL_OVER
        has_morning = any(
            _is_morning_shift(s, e) for other, (s, e) in enumerate(intervals) if other != idx
        )
        if not (suspicious and has_morning):
            repaired.append((start, end))
            continue
        shifted = start + _HALF_DAY
        if end > shifted:
            logger.warning(
                "Schedule repair on %s: start of %s-%s read as PM, using %s-%s",
                day or "unknown day",
                minutes_to_time(start), minutes_to_time(end),
                minutes_to_time(shifted), minutes_to_time(end),
            )
            repaired.append((shifted, end))
        else:
            logger.warning(
                "Schedule repair on %s: dropped %s-%s, PM start would not precede end",
                day or "unknown day", minutes_to_time(start), minutes_to_time(end),
            )
    return repaired


def _coalesce(intervals: list[tuple[int, int]]) -> list[tuple[int, int]]:
    merged: list[tuple[int, int]] = []
    for start, end in intervals:
        if merged and start < merged[-1][1]:
            last_start, last_end = merged[-1]
            merged[-1] = (last_start, max(last_end, end))
        else:
            merged.append((start, end))
    return merged


def sanitize_day_intervals(raw_intervals: Any, day: str | None = None) -> list[Interval]:
    """Clean one weekday's raw intervals.

    Normalizes both bounds, drops unusable or empty intervals, repairs the
    AM-typed closing time case, then sorts and coalesces overlapping intervals.
    Touching intervals are kept apart. Never raises on bad data.
    """
    if not isinstance(raw_intervals, list):
        return []
    parsed = [iv for iv in (_normalized_minutes(raw) for raw in raw_intervals) if iv]
    repaired = _repair_long_intervals(parsed, day)
    repaired.sort()
    return [
        Interval(start=minutes_to_time(start), end=minutes_to_time(end))
        for start, end in _coalesce(repaired)
    ]


def sanitize_schedule(raw_schedule: Any) -> WeeklySchedule:
    """Sanitize a whole week; every weekday key is present, closed days are empty."""
    source = raw_schedule if isinstance(raw_schedule, Mapping) else {}
    return {day: sanitize_day_intervals(source.get(day), day) for day in WEEKDAYS}


class ScheduleCache:
    """Per-request memo of clinic schedules. Create one per request, never share it."""

    def __init__(self) -> None:
        self._schedules: dict[int, WeeklySchedule] = {}

    def get(self, clinic_id: int) -> WeeklySchedule | None:
        return self._schedules.get(clinic_id)

    def put(self, clinic_id: int, schedule: WeeklySchedule) -> None:
        self._schedules[clinic_id] = schedule


async def get_clinic_schedule(
    session: AsyncSession, clinic_id: int, cache: ScheduleCache | None = None
) -> WeeklySchedule:
    """Sanitized weekly schedule for a clinic. Raises NotFoundError if the clinic
    or its schedule record is missing."""
    if cache is not None:
        cached = cache.get(clinic_id)
        if cached is not None:
            return cached
    result = await run_query(session, select(Clinic.schedule).where(Clinic.id == clinic_id))
    row = result.first()
    if row is None:
        raise NotFoundError(f"Clinic {clinic_id} not found")
    if row[0] is None:
        raise NotFoundError(f"Clinic {clinic_id} has no schedule configured")
    schedule = sanitize_schedule(row[0])
    if cache is not None:
        cache.put(clinic_id, schedule)
    return schedule
