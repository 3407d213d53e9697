from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from clinic_scheduler.core.db import get_session
from clinic_scheduler.core.security import Identity, decode_access_token
from clinic_scheduler.services.schedule_service import ScheduleCache

security = HTTPBearer(auto_error=False)

__all__ = ["get_current_identity", "get_schedule_cache", "get_session"]


async def get_current_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> Identity:
    """Resolve the acting (user_id, clinic_id) pair from the bearer token."""
    if not credentials or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )
    identity = decode_access_token(credentials.credentials)
    if not identity:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity


def get_schedule_cache() -> ScheduleCache:
    """Fresh schedule cache for the current request only."""
    return ScheduleCache()
