"""
Database engine, session factory and table bootstrap.

The dispatch tables are small and hot: every accept is a single
conditional UPDATE, so sessions never autoflush and objects stay readable
after commit for the notification step that follows.
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from emergency_backend.app.core.config import settings


def _engine_options(url: str) -> dict:
    # SQLite (local runs) has no connection pool to size
    if url.startswith("sqlite"):
        return {"echo": settings.db_echo}
    return {
        "echo": settings.db_echo,
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_pre_ping": True,
    }


engine = create_async_engine(settings.database_url, **_engine_options(settings.database_url))

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def create_tables() -> None:
    """Create every dispatch table that does not exist yet."""
    # Registers the mappers on Base before create_all
    from emergency_backend.app.models import (  # noqa: F401
        ambulance,
        audit_log,
        driver,
        emergency_request,
        user,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db():
    """
    FastAPI dependency for database sessions.

    Rolls back whatever the handler left uncommitted when it raises.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
