from datetime import date

from pydantic import BaseModel

from clinic_scheduler.models.appointment import AppointmentStatus


class AvailableSlotsResponse(BaseModel):
    date: str  # YYYY-MM-DD
    slots: list[str]  # HH:MM


class AvailabilityRangeResponse(BaseModel):
    days: list[AvailableSlotsResponse]


class BookAppointmentRequest(BaseModel):
    patient_id: int
    doctor_id: int
    date: date
    time: str
    service_description: str | None = None


class StatusUpdateRequest(BaseModel):
    status: AppointmentStatus


class RefreshStatusesResponse(BaseModel):
    updated: int
