from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.api.deps import get_current_identity, get_session
from clinic_scheduler.core.security import Identity
from clinic_scheduler.models.clinic import WeeklySchedulePublic
from clinic_scheduler.services.schedule_service import get_clinic_schedule

router = APIRouter(prefix="/schedule", tags=["schedule"])


@router.get("", response_model=WeeklySchedulePublic)
async def clinic_schedule(
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_current_identity),
) -> WeeklySchedulePublic:
    """The clinic's weekly hours as the engine sees them, after sanitization."""
    days = await get_clinic_schedule(session, identity.clinic_id)
    return WeeklySchedulePublic(clinic_id=identity.clinic_id, days=days)
