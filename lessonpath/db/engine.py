"""Async SQLAlchemy engine and session factory.

When DATABASE_URL is configured, provides:
- async engine for PostgreSQL via asyncpg
- async session factory for request-scoped sessions
- lifespan hook for startup/shutdown

When DATABASE_URL is None, all exports are None and the service falls back
to the in-memory repositories.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator
from contextlib import asynccontextmanager, contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from lessonpath.core.config import SETTINGS
from lessonpath.services.errors import StoreUnavailable

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all table models."""


# --- Engine and session factory (None when no DATABASE_URL) ---

if SETTINGS.database_url:
    engine = create_async_engine(
        SETTINGS.database_url,
        echo=SETTINGS.is_dev,  # log SQL in dev only
        pool_size=5,
        max_overflow=10,
    )
    async_session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
else:
    engine = None
    async_session_factory = None


@contextmanager
def store_errors(collection: str) -> Iterator[None]:
    """Re-raise driver/ORM failures as StoreUnavailable.

    Works around awaits too: ``with store_errors("scenes"): await ...``.
    """
    try:
        yield
    except SQLAlchemyError as e:
        logger.error("Store failure on %s: %s", collection, e)
        raise StoreUnavailable(f"{collection} store unavailable") from e


@asynccontextmanager
async def lifespan_db():
    """Startup/shutdown hook for the database engine."""
    if engine is None:
        logger.info("No DATABASE_URL configured; using in-memory repositories")
        yield
        return

    logger.info("Database engine created: %s", engine.url)
    yield
    await engine.dispose()
    logger.info("Database engine disposed")


def as_uuid(value: str | None) -> uuid.UUID | None:
    """Parse a string id for a UUID column; None when it cannot match a row."""
    if not value:
        return None
    try:
        return uuid.UUID(value)
    except ValueError:
        return None
