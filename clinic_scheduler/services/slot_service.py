import logging
from collections.abc import Iterable
from datetime import date, timedelta

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.core.config import settings
from clinic_scheduler.core.db import run_query
from clinic_scheduler.core.errors import InvalidArgumentError
from clinic_scheduler.models.appointment import ACTIVE_STATUSES, Appointment
from clinic_scheduler.models.clinic import Interval
from clinic_scheduler.services.schedule_service import ScheduleCache, get_clinic_schedule, weekday_key
from clinic_scheduler.services.time_utils import minutes_to_time, time_to_minutes

logger = logging.getLogger(__name__)


def generate_slots(intervals: Iterable[Interval], slot_duration_minutes: int = 30) -> list[str]:
    """Every slot start t with start <= t and t + duration <= end, stepping by duration.

    Duplicates from overlapping intervals collapse; the result is sorted.
    """
    if slot_duration_minutes <= 0:
        raise ValueError("slot_duration_minutes must be positive")
    starts: set[int] = set()
    for interval in intervals:
        start = time_to_minutes(interval.start)
        end = time_to_minutes(interval.end)
        if start is None or end is None:
            continue
        current = start
        while current + slot_duration_minutes <= end:
            starts.add(current)
            current += slot_duration_minutes
    return [minutes_to_time(m) for m in sorted(starts)]


async def get_booked_times(
    session: AsyncSession,
    clinic_id: int,
    on_date: date,
    doctor_id: int | None = None,
    patient_id: int | None = None,
) -> set[str]:
    """HH:MM times on `on_date` where the doctor OR the patient already has an active appointment."""
    parties = []
    if doctor_id is not None:
        parties.append(Appointment.doctor_id == doctor_id)
    if patient_id is not None:
        parties.append(Appointment.patient_id == patient_id)
    if not parties:
        return set()
    result = await run_query(
        session,
        select(Appointment.time).where(
            Appointment.clinic_id == clinic_id,
            Appointment.date == on_date,
            Appointment.status.in_(ACTIVE_STATUSES),
            or_(*parties),
        ),
    )
    return {str(row[0])[:5] for row in result.all() if row[0]}


async def get_available_slots(
    session: AsyncSession,
    clinic_id: int,
    on_date: date | None,
    doctor_id: int | None = None,
    patient_id: int | None = None,
    cache: ScheduleCache | None = None,
) -> list[str]:
    """Free HH:MM slot starts for the doctor and/or patient on a date.

    A closed day is an empty list, not an error. Store failures propagate.
    """
    if on_date is None:
        raise InvalidArgumentError("date is required")
    if doctor_id is None and patient_id is None:
        raise InvalidArgumentError("doctor_id or patient_id is required")

    schedule = await get_clinic_schedule(session, clinic_id, cache=cache)
    all_slots = generate_slots(schedule[weekday_key(on_date)], settings.slot_duration_minutes)
    if not all_slots:
        return []
    booked = await get_booked_times(session, clinic_id, on_date, doctor_id, patient_id)
    free = [s for s in all_slots if s not in booked]
    logger.debug(
        "Availability clinic=%s date=%s: %d of %d slots free", clinic_id, on_date, len(free), len(all_slots)
    )
    return free


async def get_available_slots_for_range(
    session: AsyncSession,
    clinic_id: int,
    start_date: date | None,
    days: int,
    doctor_id: int | None = None,
    patient_id: int | None = None,
    cache: ScheduleCache | None = None,
) -> list[tuple[date, list[str]]]:
    """Availability for `days` consecutive dates starting at `start_date`.

    The clinic schedule is read once through the request cache.
    """
    if start_date is None:
        raise InvalidArgumentError("date is required")
    if days < 1 or days > settings.max_availability_days:
        raise InvalidArgumentError(f"days must be between 1 and {settings.max_availability_days}")
    cache = cache if cache is not None else ScheduleCache()
    out: list[tuple[date, list[str]]] = []
    for offset in range(days):
        d = start_date + timedelta(days=offset)
        out.append((d, await get_available_slots(session, clinic_id, d, doctor_id, patient_id, cache=cache)))
    return out
