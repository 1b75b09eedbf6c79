"""
Database engine, session factory, and base model class.

This module sets up SQLAlchemy 2.0 with async support. Key components:

  - Base: Declarative base class that all ORM models inherit from
  - create_engine(): builds the async engine for a database URL
  - create_session_factory(): factory for AsyncSession instances
  - init_db(): creates the tables (and the SQLite directory) if missing

Unlike a web app, nothing here is a module-level singleton: the CLI builds
one engine and hands it to a SqlAccountStore, and tests build their own
in-memory engine per test.

Architecture note:
  We use async SQLAlchemy (with aiosqlite for SQLite) so concurrent sessions
  can share one event loop without blocking. Moving to PostgreSQL only needs
  a different DATABASE_URL (asyncpg driver).
"""

from pathlib import Path

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from atm.config import settings


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Provides metadata tracking (used by init_db to create the schema) and
    the common declarative mapping features.
    """
    pass


def create_engine(database_url: str | None = None) -> AsyncEngine:
    """
    Create the async engine.

    echo=True in debug mode logs all SQL statements.
    """
    return create_async_engine(
        database_url or settings.DATABASE_URL,
        echo=settings.DEBUG,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Session factory bound to `engine`.

    expire_on_commit=False keeps attributes readable after commit; without
    it, touching a committed object would trigger a lazy load, which fails
    in async context.
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


def _ensure_sqlite_directory(engine: AsyncEngine) -> None:
    url = make_url(str(engine.url))
    if url.get_backend_name() != "sqlite":
        return
    if not url.database or url.database == ":memory:":
        return
    Path(url.database).parent.mkdir(parents=True, exist_ok=True)


async def init_db(engine: AsyncEngine) -> None:
    """
    Create all tables if they don't exist.

    In a production deployment this would be an Alembic migration; for the
    simulator, create_all is enough.
    """
    # Import models so their tables are registered on Base.metadata
    import atm.models  # noqa: F401

    _ensure_sqlite_directory(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
