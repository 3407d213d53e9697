import logging
from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.api.deps import get_current_identity, get_session
from clinic_scheduler.api.schemas.appointment import (
    BookAppointmentRequest,
    RefreshStatusesResponse,
    StatusUpdateRequest,
)
from clinic_scheduler.core.security import Identity
from clinic_scheduler.models.appointment import Appointment, AppointmentCreate, AppointmentPublic
from clinic_scheduler.services.appointment_service import (
    auto_complete_appointments,
    create_appointment,
    list_appointments,
    list_appointments_for_patient,
    update_appointment_status,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/appointments", tags=["appointments"])


def _to_public(a: Appointment) -> AppointmentPublic:
    """Build public response; times always go out as HH:MM."""
    return AppointmentPublic(
        id=int(a.id) if a.id is not None else 0,
        clinic_id=a.clinic_id,
        patient_id=a.patient_id,
        doctor_id=a.doctor_id,
        date=a.date,
        time=(a.time or "")[:5],
        status=a.status,
        service_description=a.service_description,
        created_at=a.created_at,
    )


@router.post("", response_model=AppointmentPublic, status_code=status.HTTP_201_CREATED)
async def book_appointment(
    body: BookAppointmentRequest,
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_current_identity),
) -> AppointmentPublic:
    data = AppointmentCreate(
        patient_id=body.patient_id,
        doctor_id=body.doctor_id,
        date=body.date,
        time=body.time,
        service_description=body.service_description,
    )
    appointment = await create_appointment(session, identity.clinic_id, data)
    logger.info(
        "Appointment %s booked by user %s (clinic=%s)", appointment.id, identity.user_id, identity.clinic_id
    )
    return _to_public(appointment)


@router.get("", response_model=list[AppointmentPublic])
async def list_clinic_appointments(
    date_param: date | None = Query(None, alias="date"),
    doctor_id: int | None = Query(None),
    patient_id: int | None = Query(None),
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_current_identity),
) -> list[AppointmentPublic]:
    appointments = await list_appointments(
        session, identity.clinic_id, on_date=date_param, doctor_id=doctor_id, patient_id=patient_id
    )
    return [_to_public(a) for a in appointments]


@router.get("/patient/{patient_id}", response_model=list[AppointmentPublic])
async def list_patient_appointments(
    patient_id: int,
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_current_identity),
) -> list[AppointmentPublic]:
    appointments = await list_appointments_for_patient(session, identity.clinic_id, patient_id)
    return [_to_public(a) for a in appointments]


@router.post("/refresh-statuses", response_model=RefreshStatusesResponse)
async def refresh_statuses(
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_current_identity),
) -> RefreshStatusesResponse:
    """Complete every appointment of the clinic that ended more than the grace window ago."""
    updated = await auto_complete_appointments(session, identity.clinic_id)
    return RefreshStatusesResponse(updated=updated)


@router.patch("/{appointment_id}/status", response_model=AppointmentPublic)
async def change_status(
    appointment_id: int,
    body: StatusUpdateRequest,
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_current_identity),
) -> AppointmentPublic:
    appointment = await update_appointment_status(session, identity.clinic_id, appointment_id, body.status)
    return _to_public(appointment)
