import logging
from collections.abc import AsyncGenerator
from typing import Any
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from clinic_scheduler.core.config import settings
from clinic_scheduler.core.errors import UnavailableError

logger = logging.getLogger(__name__)


def to_async_database_url(database_url: str) -> str:
    """Use asyncpg for postgresql URLs; other schemes (e.g. sqlite+aiosqlite) pass through.

    asyncpg does not accept psycopg params like sslmode/channel_binding, so those are
    stripped; SSL is enabled via connect_args instead.
    """
    parsed = urlparse(database_url)
    if parsed.scheme not in ("postgresql", "postgres"):
        return database_url
    query = parse_qs(parsed.query, keep_blank_values=True)
    query.pop("sslmode", None)
    query.pop("channel_binding", None)
    new_query = urlencode(query, doseq=True)
    return urlunparse(
        ("postgresql+asyncpg", parsed.netloc, parsed.path, parsed.params, new_query, parsed.fragment)
    )


async_database_url = to_async_database_url(settings.database_url)

_engine_kwargs: dict[str, Any] = {"echo": settings.env == "development", "pool_pre_ping": True}
if async_database_url.startswith("postgresql+asyncpg"):
    _engine_kwargs.update(pool_size=5, max_overflow=10)
    if settings.database_ssl:
        _engine_kwargs["connect_args"] = {"ssl": True}

engine = create_async_engine(async_database_url, **_engine_kwargs)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def run_query(session: AsyncSession, statement: Any) -> Any:
    """Execute against the store, turning driver/connection failures into UnavailableError.

    Integrity errors are left alone: they mean the store answered, just "no".
    """
    try:
        return await session.execute(statement)
    except IntegrityError:
        raise
    except DBAPIError as exc:
        logger.exception("Store call failed: %s", exc)
        raise UnavailableError("Could not reach the appointment store, please retry") from exc
