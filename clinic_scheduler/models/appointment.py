from datetime import UTC, datetime
from datetime import date as date_type
from enum import Enum

from sqlalchemy import Index, text
from sqlmodel import Field, SQLModel


def _utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


class AppointmentStatus(str, Enum):
    SCHEDULED = "Scheduled"
    IN_PROGRESS = "In-progress"
    COMPLETED = "Completed"
    CANCELED = "Canceled"


ACTIVE_STATUSES = (AppointmentStatus.SCHEDULED.value, AppointmentStatus.IN_PROGRESS.value)
TERMINAL_STATUSES = (AppointmentStatus.COMPLETED.value, AppointmentStatus.CANCELED.value)

_ACTIVE_PREDICATE = text("status IN ('Scheduled', 'In-progress')")


class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    # Double-booking guard: one active appointment per doctor and per patient per slot
    __table_args__ = (
        Index(
            "uq_appointments_doctor_slot_active",
            "clinic_id", "doctor_id", "date", "time",
            unique=True,
            postgresql_where=_ACTIVE_PREDICATE,
            sqlite_where=_ACTIVE_PREDICATE,
        ),
        Index(
            "uq_appointments_patient_slot_active",
            "clinic_id", "patient_id", "date", "time",
            unique=True,
            postgresql_where=_ACTIVE_PREDICATE,
            sqlite_where=_ACTIVE_PREDICATE,
        ),
    )
    id: int | None = Field(default=None, primary_key=True)
    clinic_id: int = Field(foreign_key="clinics.id", index=True)
    patient_id: int = Field(index=True)
    doctor_id: int = Field(index=True)
    date: date_type = Field(index=True)
    time: str = Field(max_length=8)  # HH:MM; legacy rows may carry seconds
    status: str = Field(default=AppointmentStatus.SCHEDULED.value, max_length=20, index=True)
    service_description: str | None = None
    created_at: datetime = Field(default_factory=_utc_naive_now)


class AppointmentCreate(SQLModel):
    patient_id: int
    doctor_id: int
    date: date_type
    time: str
    service_description: str | None = None


class AppointmentPublic(SQLModel):
    id: int
    clinic_id: int
    patient_id: int
    doctor_id: int
    date: date_type
    time: str
    status: str
    service_description: str | None = None
    created_at: datetime
