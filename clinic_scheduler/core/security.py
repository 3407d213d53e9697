from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from clinic_scheduler.core.config import settings


@dataclass(frozen=True)
class Identity:
    """The acting user and the clinic they act for."""

    user_id: int
    clinic_id: int


def create_access_token(user_id: int, clinic_id: int) -> str:
    expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode = {
        "sub": str(user_id),
        "clinic_id": str(clinic_id),
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> Identity | None:
    try:
        payload = jwt.decode(
            token, settings.secret_key, algorithms=[settings.algorithm]
        )
    except JWTError:
        return None
    if payload.get("type") != "access":
        return None
    sub = payload.get("sub")
    clinic_id = payload.get("clinic_id")
    if not sub or not clinic_id:
        return None
    try:
        return Identity(user_id=int(sub), clinic_id=int(clinic_id))
    except (TypeError, ValueError):
        return None
