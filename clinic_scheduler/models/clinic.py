from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


def _utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


class Clinic(SQLModel, table=True):
    __tablename__ = "clinics"
    id: int | None = Field(default=None, primary_key=True)
    name: str
    # Raw weekly hours as entered during onboarding/settings:
    # {"monday": [{"start": "09:00", "end": "17:00"}], ...}. Read-only here.
    schedule: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON, nullable=True))
    created_at: datetime = Field(default_factory=_utc_naive_now)


class Interval(SQLModel):
    """A sanitized opening period [start, end) in canonical HH:MM."""

    start: str
    end: str


class WeeklySchedulePublic(SQLModel):
    clinic_id: int
    days: dict[str, list[Interval]]
