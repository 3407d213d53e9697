import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.core.config import settings
from clinic_scheduler.core.db import run_query
from clinic_scheduler.core.errors import ConflictError, NotFoundError, UnavailableError, ValidationError
from clinic_scheduler.models.appointment import (
    ACTIVE_STATUSES,
    Appointment,
    AppointmentCreate,
    AppointmentStatus,
)
from clinic_scheduler.models.clinic import Clinic
from clinic_scheduler.services.time_utils import normalize_time, time_to_minutes

logger = logging.getLogger(__name__)

# Transitions a user may request; Completed is reached only by auto-completion.
_USER_TRANSITIONS: dict[str, set[str]] = {
    AppointmentStatus.SCHEDULED.value: {
        AppointmentStatus.IN_PROGRESS.value,
        AppointmentStatus.CANCELED.value,
    },
    AppointmentStatus.IN_PROGRESS.value: {AppointmentStatus.CANCELED.value},
}


@dataclass(frozen=True)
class Conflict:
    party: str  # "patient" or "doctor"
    appointment_id: int


def clinic_now() -> datetime:
    """Naive wall-clock time in the clinic's time zone, comparable with date + HH:MM."""
    return datetime.now(settings.clinic_tz).replace(tzinfo=None)


def _to_clinic_naive(dt: datetime) -> datetime:
    if dt.tzinfo is not None:
        return dt.astimezone(settings.clinic_tz).replace(tzinfo=None)
    return dt


async def find_conflict(
    session: AsyncSession,
    clinic_id: int,
    on_date: date,
    time: str,
    patient_id: int,
    doctor_id: int,
) -> Conflict | None:
    """Active appointment already holding this slot for the patient or the doctor.

    A patient collision is reported before a doctor collision.
    """
    result = await run_query(
        session,
        select(Appointment).where(
            Appointment.clinic_id == clinic_id,
            Appointment.date == on_date,
            func.substr(Appointment.time, 1, 5) == time[:5],
            Appointment.status.in_(ACTIVE_STATUSES),
            or_(Appointment.patient_id == patient_id, Appointment.doctor_id == doctor_id),
        ).order_by(Appointment.id)
    )
    rows = list(result.scalars().all())
    for row in rows:
        if row.patient_id == patient_id:
            return Conflict(party="patient", appointment_id=row.id)
    for row in rows:
        if row.doctor_id == doctor_id:
            return Conflict(party="doctor", appointment_id=row.id)
    return None


async def _ensure_clinic(session: AsyncSession, clinic_id: int) -> None:
    result = await run_query(session, select(Clinic.id).where(Clinic.id == clinic_id))
    if result.first() is None:
        raise NotFoundError(f"Clinic {clinic_id} not found")


async def create_appointment(
    session: AsyncSession, clinic_id: int, data: AppointmentCreate
) -> Appointment:
    time_value = normalize_time(data.time)
    if not time_value:
        raise ValidationError(f"Invalid appointment time: {data.time!r}")
    await _ensure_clinic(session, clinic_id)

    conflict = await find_conflict(
        session, clinic_id, data.date, time_value, data.patient_id, data.doctor_id
    )
    if conflict:
        logger.info(
            "Booking rejected: %s conflict with appointment %s (clinic=%s date=%s time=%s)",
            conflict.party, conflict.appointment_id, clinic_id, data.date, time_value,
        )
        raise ConflictError(conflict.party, conflict.appointment_id)

    appointment = Appointment(
        clinic_id=clinic_id,
        patient_id=data.patient_id,
        doctor_id=data.doctor_id,
        date=data.date,
        time=time_value,
        status=AppointmentStatus.SCHEDULED.value,
        service_description=data.service_description,
    )
    session.add(appointment)
    try:
        await session.flush()
    except IntegrityError:
        # Lost the check/insert race: the unique index saw a concurrent booking
        await session.rollback()
        conflict = await find_conflict(
            session, clinic_id, data.date, time_value, data.patient_id, data.doctor_id
        )
        logger.info("Booking rejected by unique index (clinic=%s date=%s time=%s)", clinic_id, data.date, time_value)
        raise ConflictError(
            conflict.party if conflict else None,
            conflict.appointment_id if conflict else None,
        ) from None
    except DBAPIError as exc:
        logger.exception("Appointment insert failed: %s", exc)
        raise UnavailableError("Could not save the appointment, please retry") from exc
    await session.refresh(appointment)
    return appointment


async def auto_complete_appointments(
    session: AsyncSession, clinic_id: int, now: datetime | None = None
) -> int:
    """Mark Scheduled/In-progress appointments older than the grace window as Completed.

    Returns the number of rows updated. Idempotent; terminal rows are never touched.
    """
    now = _to_clinic_naive(now) if now is not None else clinic_now()
    grace = timedelta(minutes=settings.auto_complete_grace_minutes)
    result = await run_query(
        session,
        select(Appointment.id, Appointment.date, Appointment.time).where(
            Appointment.clinic_id == clinic_id,
            Appointment.status.in_(ACTIVE_STATUSES),
            Appointment.date <= now.date(),
        ),
    )
    due: list[int] = []
    for appointment_id, on_date, raw_time in result.all():
        minutes = time_to_minutes(normalize_time(str(raw_time or "")[:5]))
        if minutes is None:
            continue
        starts_at = datetime.combine(on_date, datetime.min.time()) + timedelta(minutes=minutes)
        if now - starts_at > grace:
            due.append(appointment_id)
    if not due:
        return 0

    result = await run_query(
        session,
        update(Appointment)
        .where(Appointment.id.in_(due), Appointment.status.in_(ACTIVE_STATUSES))
        .values(status=AppointmentStatus.COMPLETED.value),
    )
    await session.flush()
    updated = result.rowcount or 0
    logger.info("Auto-completed %d appointment(s) for clinic %s", updated, clinic_id)
    return updated


async def list_appointments(
    session: AsyncSession,
    clinic_id: int,
    on_date: date | None = None,
    doctor_id: int | None = None,
    patient_id: int | None = None,
) -> list[Appointment]:
    await auto_complete_appointments(session, clinic_id)
    q = (
        select(Appointment)
        .where(Appointment.clinic_id == clinic_id)
        .order_by(Appointment.date, Appointment.time, Appointment.id)
    )
    if on_date:
        q = q.where(Appointment.date == on_date)
    if doctor_id is not None:
        q = q.where(Appointment.doctor_id == doctor_id)
    if patient_id is not None:
        q = q.where(Appointment.patient_id == patient_id)
    result = await run_query(session, q)
    return list(result.scalars().all())


async def list_appointments_for_patient(
    session: AsyncSession, clinic_id: int, patient_id: int
) -> list[Appointment]:
    """A patient's appointment history, most recent date first."""
    await auto_complete_appointments(session, clinic_id)
    result = await run_query(
        session,
        select(Appointment)
        .where(Appointment.clinic_id == clinic_id, Appointment.patient_id == patient_id)
        .order_by(Appointment.date.desc(), Appointment.time.desc()),
    )
    return list(result.scalars().all())


async def get_appointment(session: AsyncSession, clinic_id: int, appointment_id: int) -> Appointment:
    result = await run_query(
        session,
        select(Appointment).where(
            Appointment.id == appointment_id,
            Appointment.clinic_id == clinic_id,
        ),
    )
    appointment = result.scalar_one_or_none()
    if not appointment:
        raise NotFoundError(f"Appointment {appointment_id} not found")
    return appointment


async def update_appointment_status(
    session: AsyncSession, clinic_id: int, appointment_id: int, new_status: AppointmentStatus
) -> Appointment:
    await auto_complete_appointments(session, clinic_id)
    appointment = await get_appointment(session, clinic_id, appointment_id)
    # the sweep above may have changed the row behind the identity map
    await session.refresh(appointment)
    target = AppointmentStatus(new_status).value
    if appointment.status == target:
        return appointment
    if target not in _USER_TRANSITIONS.get(appointment.status, set()):
        raise ValidationError(f"Cannot change an appointment from {appointment.status} to {target}")
    appointment.status = target
    session.add(appointment)
    await session.flush()
    await session.refresh(appointment)
    return appointment
