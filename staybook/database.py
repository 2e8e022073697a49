"""Async SQLAlchemy engine, session factory, declarative base, and read helpers."""

import logging
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import func
from sqlalchemy.engine import Result, make_url
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import Executable

from staybook.config import settings

logger = logging.getLogger(__name__)


def engine_options(url: str) -> dict[str, Any]:
    """Pool settings for a database URL; SQLite (tests, local dev) gets the driver defaults."""
    if make_url(url).get_backend_name() == "sqlite":
        return {"echo": settings.debug}
    return {
        "echo": settings.debug,
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 20,
    }


engine = create_async_engine(settings.async_database_url, **engine_options(settings.async_database_url))

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class TimestampMixin:
    """Mixin that adds created_at and updated_at columns."""

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        onupdate=func.now(),
    )


class UUIDPrimaryKeyMixin:
    """Mixin that adds a UUID primary key column."""

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)


async def execute_read(db: AsyncSession, statement: Executable, *, retries: int = 1) -> Result:
    """Execute an idempotent SELECT, retrying transient driver errors.

    Only for reads on a session that holds no pending writes or row locks,
    because the session is rolled back before the retry. Writes are never
    retried: a replayed INSERT after an ambiguous failure could double-book.
    """
    attempt = 0
    while True:
        try:
            return await db.execute(statement)
        except DBAPIError as e:
            if attempt >= retries or not e.connection_invalidated:
                raise
            attempt += 1
            await db.rollback()
            logger.warning("Transient database error on read, retrying (%d/%d): %s", attempt, retries, e)


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async database session for FastAPI dependency injection.

    Usage::

        @app.get("/items")
        async def get_items(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
