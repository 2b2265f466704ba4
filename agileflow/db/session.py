"""Async database engine and session management.

The probe endpoints only need a session to verify connectivity, so sessions
handed out here never commit. Use :func:`get_db_no_commit` as a FastAPI
dependency::

    @router.get("/ready")
    async def readiness(
        db: Annotated[AsyncSession, Depends(get_db_no_commit)],
    ) -> ReadinessResponse:
        await ping_database(db, timeout=5.0)
        ...
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from functools import lru_cache
from typing import Any

from sqlalchemy import event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from agileflow.config.settings import get_settings

logger = logging.getLogger(__name__)


@lru_cache
def get_engine() -> AsyncEngine:
    """Get the database engine (lazily initialized).

    Pool sizing and statement timeouts only apply to PostgreSQL; SQLite uses
    SQLAlchemy's default pool for its driver.
    """
    settings = get_settings()
    engine_kwargs: dict[str, Any] = {"echo": settings.database_echo}
    if not settings.is_sqlite:
        engine_kwargs.update(
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_timeout=settings.database_pool_timeout,
        )
    engine = create_async_engine(settings.async_database_url, **engine_kwargs)

    if not settings.is_sqlite:
        # SET doesn't support parameters, but value is validated integer from settings
        @event.listens_for(engine.sync_engine, "connect")
        def set_statement_timeout(  # pyright: ignore[reportUnusedFunction]
            dbapi_connection: object, connection_record: object
        ) -> None:
            cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
            cursor.execute(f"SET statement_timeout = {settings.database_statement_timeout}")
            cursor.close()

    return engine


@lru_cache
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the async session factory (lazily initialized)."""
    return async_sessionmaker(
        get_engine(),
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def get_db_no_commit() -> AsyncGenerator[AsyncSession]:
    """FastAPI dependency that provides a read-only database session."""
    async with get_session_factory()() as session:
        try:
            yield session
        except SQLAlchemyError:
            await session.rollback()
            raise


async def ping_database(session: AsyncSession, timeout: float) -> None:
    """Run ``SELECT 1`` on the session, bounded by ``timeout`` seconds.

    Raises:
        TimeoutError: The query did not finish in time.
        SQLAlchemyError: The database rejected the query or is unreachable.
    """
    result = await asyncio.wait_for(session.execute(text("SELECT 1")), timeout=timeout)
    result.scalar()
