from __future__ import annotations

"""Database setup for SQLAlchemy with async psycopg driver."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.engine.url import URL
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from libs.core.settings import get_settings

settings = get_settings()
DATABASE_URL = settings.postgres_uri

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all ORM models."""


# pool_pre_ping validates connections before use, pool_recycle drops
# connections before server-side idle timeouts kick in.
engine: AsyncEngine = create_async_engine(
    DATABASE_URL,
    echo=False,
    future=True,
    pool_pre_ping=True,
    pool_recycle=1800,
)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False)


@asynccontextmanager
async def get_session() -> AsyncIterator[AsyncSession]:
    """Provide a transactional scope around a series of operations."""

    async with SessionLocal() as session:  # pragma: no cover - simple wrapper
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def _ensure_database_exists(url: URL) -> None:
    """Create the target Postgres database when it is missing."""

    if not url.drivername.startswith("postgresql"):
        return
    maint_engine = create_engine(url.set(database="postgres"))
    try:
        with maint_engine.connect() as conn:
            exists = conn.execute(
                text("SELECT 1 FROM pg_database WHERE datname=:db"),
                {"db": url.database},
            ).scalar()
            if exists != 1:
                # CREATE DATABASE must run outside a transaction block
                conn.execution_options(isolation_level="AUTOCOMMIT").execute(
                    text(f'CREATE DATABASE "{url.database}"')
                )
                logger.info("Created missing database '%s'", url.database)
    finally:
        maint_engine.dispose()


async def init_db(
    target: AsyncEngine | None = None, max_attempts: int = 5, delay: float = 5
) -> None:
    """Create tables, retrying while the database is still starting up.

    If all attempts fail, the last exception is propagated.
    """

    # Populate Base.metadata even when this module is imported standalone.
    from . import models  # noqa: F401

    target = target or engine
    try:
        _ensure_database_exists(target.url)
    except SQLAlchemyError as exc:  # pragma: no cover - best effort
        logger.warning("Could not ensure database exists: %s", exc)

    last_exc: SQLAlchemyError | None = None
    for attempt in range(1, max_attempts + 1):
        try:
            async with target.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("DB schema ensured (attempt %d)", attempt)
            return
        except SQLAlchemyError as exc:
            last_exc = exc
            if attempt == max_attempts:
                break
            logger.warning(
                "DB init attempt %d failed: %s. Retrying in %ss", attempt, exc, delay
            )
            await asyncio.sleep(delay)

    logger.error("DB init failed after %d attempts", max_attempts)
    if last_exc is not None:
        raise last_exc


__all__ = ["Base", "engine", "SessionLocal", "get_session", "init_db"]
