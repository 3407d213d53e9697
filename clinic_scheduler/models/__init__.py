from clinic_scheduler.models.clinic import Clinic, Interval, WeeklySchedulePublic
from clinic_scheduler.models.appointment import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    Appointment,
    AppointmentCreate,
    AppointmentPublic,
    AppointmentStatus,
)

__all__ = [
    "Clinic",
    "Interval",
    "WeeklySchedulePublic",
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "Appointment",
    "AppointmentCreate",
    "AppointmentPublic",
    "AppointmentStatus",
]
