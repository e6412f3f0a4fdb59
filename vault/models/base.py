"""Database base, engine and session setup."""
from __future__ import annotations

import logging

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from vault.errors import StorageError

logger = logging.getLogger("filevault.db")

# Database every PostgreSQL server has, used to create the application database
_MAINTENANCE_DB = "postgres"


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def _connect_args(database_url: str, sslmode: str | None) -> dict:
    if sslmode and make_url(database_url).get_backend_name() == "postgresql":
        # asyncpg understands libpq sslmode names (disable, require, verify-full, ...)
        return {"ssl": sslmode}
    return {}


def create_engine(database_url: str, sslmode: str | None = None, **kwargs) -> AsyncEngine:
    return create_async_engine(
        database_url,
        echo=False,
        connect_args=_connect_args(database_url, sslmode),
        **kwargs,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def ensure_database(database_url: str, sslmode: str | None = None) -> None:
    """Create the configured PostgreSQL database if it does not exist yet. No-op for other backends."""
    url = make_url(database_url)
    if url.get_backend_name() != "postgresql" or not url.database:
        return
    admin_engine = create_engine(
        url.set(database=_MAINTENANCE_DB).render_as_string(hide_password=False),
        sslmode,
        isolation_level="AUTOCOMMIT",
    )
    try:
        async with admin_engine.connect() as conn:
            exists = await conn.scalar(
                text("SELECT 1 FROM pg_database WHERE datname = :name"),
                {"name": url.database},
            )
            if exists:
                logger.info("Database '%s' already exists.", url.database)
                return
            logger.info("Database '%s' does not exist, creating it...", url.database)
            quoted = conn.dialect.identifier_preparer.quote(url.database)
            await conn.execute(text(f"CREATE DATABASE {quoted}"))
            logger.info("Database '%s' created.", url.database)
    except (SQLAlchemyError, OSError) as e:
        raise StorageError(f"Could not ensure database {url.database!r}: {e}") from e
    finally:
        await admin_engine.dispose()


async def init_db(engine: AsyncEngine) -> None:
    """Check connectivity and create all tables."""
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            await conn.run_sync(Base.metadata.create_all)
    except (SQLAlchemyError, OSError) as e:
        raise StorageError(f"Could not initialize database: {e}") from e
    logger.info("Users table checked/created.")
