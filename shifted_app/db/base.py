# shifted_app/db/base.py
from typing import Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase

from shifted_app.core.config import settings, logger


class BackendNotConfigured(RuntimeError):
    """DATABASE_URL is missing, so nothing can be stored."""


_engine: Optional[AsyncEngine] = None
_sessionmaker: Optional[async_sessionmaker[AsyncSession]] = None


class Base(DeclarativeBase):
    pass


def get_engine() -> AsyncEngine:
    global _engine, _sessionmaker
    if _engine is None:
        if not settings.database_url:
            raise BackendNotConfigured("DATABASE_URL is not set")
        _engine = create_async_engine(settings.database_url, future=True, echo=False, pool_pre_ping=True)
        _sessionmaker = async_sessionmaker(_engine, expire_on_commit=False)
    return _engine


def async_session() -> AsyncSession:
    get_engine()
    if _sessionmaker is None:
        raise BackendNotConfigured("DATABASE_URL is not set")
    return _sessionmaker()


async def init_db():
    if not settings.backend_configured:
        logger.warning("[db] DATABASE_URL not set - waitlist and recovery bridge will return 500")
        return
    # models must be registered on Base.metadata before create_all
    import shifted_app.db.models  # noqa: F401

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine():
    global _engine, _sessionmaker
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _sessionmaker = None
