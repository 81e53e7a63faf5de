"""Async database engine and session configuration."""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from hacksniffer.config import settings
from hacksniffer.models import Base


def create_engine(database_url: str = None, echo: bool = None) -> AsyncEngine:
    """Create the async engine for the configured database.

    SQLite doesn't support pool_size / max_overflow / pool_pre_ping, so those
    are only passed for server databases.
    """
    url = database_url or settings.DATABASE_URL
    engine_kwargs: dict = {"echo": settings.DEBUG if echo is None else echo}
    if not url.startswith("sqlite"):
        engine_kwargs.update(pool_size=5, max_overflow=5, pool_pre_ping=True)
    return create_async_engine(url, **engine_kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables that don't exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
