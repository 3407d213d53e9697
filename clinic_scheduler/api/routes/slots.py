from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.api.deps import get_current_identity, get_schedule_cache, get_session
from clinic_scheduler.api.schemas.appointment import AvailabilityRangeResponse, AvailableSlotsResponse
from clinic_scheduler.core.security import Identity
from clinic_scheduler.services.schedule_service import ScheduleCache
from clinic_scheduler.services.slot_service import get_available_slots, get_available_slots_for_range

router = APIRouter(prefix="/slots", tags=["slots"])


@router.get("/available", response_model=AvailableSlotsResponse)
async def available_slots(
    date_param: date | None = Query(None, alias="date"),
    doctor_id: int | None = Query(None),
    patient_id: int | None = Query(None),
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_current_identity),
    cache: ScheduleCache = Depends(get_schedule_cache),
) -> AvailableSlotsResponse:
    """Free HH:MM slot starts on `date` for the doctor and/or patient. A closed day returns no slots."""
    slots = await get_available_slots(
        session, identity.clinic_id, date_param, doctor_id=doctor_id, patient_id=patient_id, cache=cache
    )
    return AvailableSlotsResponse(date=date_param.isoformat(), slots=slots)


@router.get("/available/range", response_model=AvailabilityRangeResponse)
async def available_slots_range(
    date_param: date | None = Query(None, alias="date"),
    days: int = Query(7),
    doctor_id: int | None = Query(None),
    patient_id: int | None = Query(None),
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_current_identity),
    cache: ScheduleCache = Depends(get_schedule_cache),
) -> AvailabilityRangeResponse:
    """Availability for `days` consecutive days starting at `date`."""
    per_day = await get_available_slots_for_range(
        session, identity.clinic_id, date_param, days,
        doctor_id=doctor_id, patient_id=patient_id, cache=cache,
    )
    return AvailabilityRangeResponse(
        days=[AvailableSlotsResponse(date=d.isoformat(), slots=slots) for d, slots in per_day]
    )
