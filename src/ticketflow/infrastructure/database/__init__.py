"""
Database Infrastructure
=======================

Engine and session lifecycle for the async SQLAlchemy 2.0 stack.

PostgreSQL (asyncpg) in deployment; the test suite points the same code at
an in-memory SQLite database through aiosqlite.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from ticketflow.config import settings


class Base(DeclarativeBase):
    """Declarative base shared by every ORM model."""
    pass


_engine: Optional[AsyncEngine] = None
_session_maker: Optional[async_sessionmaker[AsyncSession]] = None


def get_engine() -> AsyncEngine:
    """
    Get the initialized database engine.

    Raises:
        RuntimeError: If init_database() has not run
    """
    if _engine is None:
        raise RuntimeError("Database engine not initialized. Call init_database() first.")
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the session factory queue handlers open per-job sessions from."""
    if _session_maker is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")
    return _session_maker


def init_database(database_url: Optional[str] = None) -> AsyncEngine:
    """
    Initialize the database engine and session maker.

    Args:
        database_url: Overrides settings.database_url (used by tests)

    Returns:
        AsyncEngine: The initialized engine
    """
    global _engine, _session_maker

    # asyncpg expects ssl= rather than libpq's sslmode=
    url = (database_url or settings.database_url).replace("sslmode=", "ssl=")

    engine_kwargs = {"echo": settings.debug}
    if url.startswith("sqlite"):
        # :memory: databases live per connection
        if url.endswith("://") or ":memory:" in url:
            engine_kwargs["poolclass"] = StaticPool
    else:
        engine_kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,
        )

    _engine = create_async_engine(url, **engine_kwargs)
    _session_maker = async_sessionmaker(
        bind=_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    return _engine


async def close_database() -> None:
    """Dispose of pooled connections on shutdown."""
    global _engine, _session_maker

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_maker = None


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding a session that commits on success.

    Yields:
        AsyncSession: SQLAlchemy async session
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def get_session_context() -> AsyncGenerator[AsyncSession, None]:
    """
    Context-managed session for background work outside a request.

    Usage:
        async with get_session_context() as session:
            await session.execute(select(TicketModel))
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def create_tables() -> None:
    """
    Create all tables known to Base.metadata.

    Development and tests only; deployments manage schema separately.
    """
    # Register every model on Base.metadata before create_all
    import ticketflow.infrastructure.queue.models  # noqa: F401
    import ticketflow.ingestion.infrastructure.models  # noqa: F401
    import ticketflow.triage.infrastructure.models  # noqa: F401

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
