"""
ContactBook Backend — Database Session Management
===================================================

What:  Async SQLAlchemy engine, session factory, and FastAPI dependency.
Why:   Centralizes all database connection logic in one place.
How:   `create_engine_from_settings()` builds a pooled async engine; the app
       factory stores it and its session factory on `app.state`. The
       `get_db_session` dependency commits on success and rolls back on error.
Who:   Used by route handlers and the authenticator via Depends().
When:  Engine is created once per app; sessions are created per-request.

Connection Pooling Strategy:
    PostgreSQL (asyncpg): QueuePool sized by db_pool_size / db_max_overflow,
    pre-ping enabled, recycled hourly.
    SQLite (aiosqlite, tests and local runs): a single StaticPool connection,
    because an in-memory database only exists inside the connection that
    created it.
"""

from typing import Any, AsyncGenerator, Dict

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from app.config import Settings


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    All models inherit from this class to register with the shared metadata
    (used by Alembic for migrations and by tests for create_all).
    """
    pass


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    """
    Build the async engine for the configured database URL.

    Pool arguments are only valid for QueuePool, so SQLite URLs get a
    StaticPool and none of the sizing options.
    """
    kwargs: Dict[str, Any] = {"echo": settings.log_level == "DEBUG"}
    if settings.database_url.startswith("sqlite"):
        kwargs["poolclass"] = StaticPool
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )
    return create_async_engine(settings.database_url, **kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Session factory bound to `engine`.

    expire_on_commit=False: ORM objects stay readable after the request's
    commit, so response models can be built from them.
    """
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Creates a new session from the app's factory
        2. Yields it to the route handler
        3. On success: commits the transaction
        4. On error: rolls back the transaction
        5. Always: closes the session (returns connection to pool)

    A failed refresh rolls back the delete of the old session together with
    the insert of the new one, so rotation is all-or-nothing.
    """
    session_factory: async_sessionmaker[AsyncSession] = request.app.state.session_factory
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def create_schema(engine: AsyncEngine) -> None:
    """Create every table registered on Base (tests and first local runs)."""
    # Import models so they register with Base.metadata
    from app.models import contact, session, user  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine(engine: AsyncEngine) -> None:
    """
    What:  Gracefully closes all connections in the pool.
    When:  Called during application shutdown (lifespan handler).
    """
    await engine.dispose()
