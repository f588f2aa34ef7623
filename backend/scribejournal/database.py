"""
ScribeJournal Backend — Database Engine & Session Factory
===========================================================

What:  Async SQLAlchemy engine construction, session factory and ORM base.
How:   `create_engine(settings)` builds a pooled async engine from the
       explicit Settings object; `create_session_factory(engine)` wraps it.
       Both are created once in `create_app()` and stored on `app.state`.
Who:   JournalStore opens one short session per store call; the health route
       pings the engine directly.

Connection Pooling Strategy:
    pool_size=20, max_overflow=10, pool_pre_ping, pool_recycle=3600.
    SQLite URLs (tests, local experiments) skip the pool arguments because
    SQLAlchemy picks a non-queue pool for them.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from scribejournal.config import Settings


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Shares one metadata object, which Alembic reads for migrations.
    """
    pass


def create_engine(settings: Settings) -> AsyncEngine:
    """
    Build the async engine for the configured database URL.

    Pool tuning only applies to server databases; SQLite ignores it.
    """
    engine_kwargs = {"echo": settings.log_level == "DEBUG"}
    if not settings.database_url.startswith("sqlite"):
        engine_kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )
    return create_async_engine(settings.database_url, **engine_kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Create the session factory used by the journal store.

    expire_on_commit=False keeps returned ORM rows readable after the session
    that loaded them has closed.
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def dispose_engine(engine: AsyncEngine) -> None:
    """
    What:  Gracefully closes all connections in the pool.
    When:  Called during application shutdown (lifespan handler).
    """
    await engine.dispose()
