"""Async engine, session factory and constraint helpers shared by every context.

Only the users table is ORM-mapped; catalog, orders and payments issue raw
`text()` SQL over the same AsyncSession.
"""

import logging
from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from config.settings import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_pre_ping=True,
)

# expire_on_commit=False: services return rows after committing
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request, closed afterwards."""
    async with async_session_factory() as session:
        yield session


async def ping_database() -> None:
    """Fail fast at startup when PostgreSQL is unreachable; errors propagate."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    logger.info("Database reachable")


def violates_constraint(exc: IntegrityError, constraint_name: str) -> bool:
    """True if the IntegrityError was raised by the named DB constraint/index."""
    orig = getattr(exc, "orig", None)
    if getattr(orig, "constraint_name", None) == constraint_name:
        return True
    return constraint_name in str(orig if orig is not None else exc)
