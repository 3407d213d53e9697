"""Shared helpers for seeding clinics and appointments in tests."""

from datetime import date, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.core.security import create_access_token
from clinic_scheduler.models import Appointment, AppointmentStatus, Clinic

# 2024-01-01 was a Monday
MONDAY = date(2024, 1, 1)
SUNDAY = date(2024, 1, 7)

WEEKDAY_HOURS = {
    "monday": [{"start": "09:00", "end": "17:00"}],
    "tuesday": [{"start": "09:00", "end": "17:00"}],
    "wednesday": [{"start": "09:00", "end": "17:00"}],
    "thursday": [{"start": "09:00", "end": "17:00"}],
    "friday": [{"start": "09:00", "end": "17:00"}],
    "saturday": [],
    "sunday": [],
}


def next_weekday(weekday: int, start: date | None = None) -> date:
    """First date strictly after `start` (default today) falling on `weekday` (Monday=0)."""
    start = start or date.today()
    days_ahead = (weekday - start.weekday()) % 7 or 7
    return start + timedelta(days=days_ahead)


async def create_clinic(session: AsyncSession, schedule: dict | None = WEEKDAY_HOURS, name: str = "Clinica Dental") -> Clinic:
    clinic = Clinic(name=name, schedule=schedule)
    session.add(clinic)
    await session.commit()
    await session.refresh(clinic)
    return clinic


async def add_appointment(
    session: AsyncSession,
    clinic_id: int,
    on_date: date,
    time: str,
    doctor_id: int = 10,
    patient_id: int = 100,
    status: str = AppointmentStatus.SCHEDULED.value,
) -> Appointment:
    appointment = Appointment(
        clinic_id=clinic_id,
        doctor_id=doctor_id,
        patient_id=patient_id,
        date=on_date,
        time=time,
        status=status,
        service_description="Limpieza",
    )
    session.add(appointment)
    await session.commit()
    await session.refresh(appointment)
    return appointment


def auth_headers(clinic_id: int, user_id: int = 1) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id, clinic_id)}"}
