"""Database engine, session factory and FastAPI session dependency.

All persistence in this service is asynchronous: membership lookups,
preference writes and audit writes are awaited so other request handling
can interleave with them.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from config import get_settings
from models.base import Base

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker] = None


def create_engine_from_url(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine.

    Pool settings only apply to PostgreSQL (not SQLite).
    """
    engine_kwargs = {
        "echo": echo,
        "pool_pre_ping": True,  # Verify connections before using
    }
    if not database_url.startswith("sqlite"):
        engine_kwargs["pool_size"] = 5
        engine_kwargs["max_overflow"] = 10
    return create_async_engine(database_url, **engine_kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_engine_from_url(settings.DATABASE_URL, echo=settings.DB_ECHO)
    return _engine


def get_session_factory() -> async_sessionmaker:
    """Return the process-wide session factory, creating it lazily."""
    global _session_factory
    if _session_factory is None:
        _session_factory = create_session_factory(get_engine())
    return _session_factory


async def init_models(engine: Optional[AsyncEngine] = None) -> None:
    """Create all tables (development and tests only - use migrations in production)."""
    async with (engine or get_engine()).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def session_scope() -> AsyncGenerator[AsyncSession, None]:
    """Context manager for database sessions outside the request lifecycle.

    Usage:
        async with session_scope() as session:
            await session.execute(select(Org))

    Automatically commits on success, rolls back on exception.
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for FastAPI endpoints.

    Usage:
        @router.get("/orgs")
        async def list_orgs(db: AsyncSession = Depends(get_db)):
            ...

    Services commit explicitly; anything left uncommitted is rolled back
    when the session closes.
    """
    async with get_session_factory()() as session:
        yield session
