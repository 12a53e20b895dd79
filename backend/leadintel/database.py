"""Database connection and session management."""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import declarative_base
from leadintel.config import settings

# Base class for models
Base = declarative_base()


def create_engine(database_url: str = None) -> AsyncEngine:
    """Create the async engine, converting plain postgresql:// URLs to asyncpg."""
    database_url = (database_url or settings.DATABASE_URL).replace(
        "postgresql://", "postgresql+asyncpg://"
    )

    options = {"echo": settings.LOG_LEVEL == "DEBUG"}
    if database_url.startswith("postgresql"):
        options.update(pool_pre_ping=True, pool_size=20, max_overflow=10)

    return create_async_engine(database_url, **options)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory used by the SQL repository."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False
    )


async def init_models(engine: AsyncEngine):
    """Create all tables (development and tests)."""
    # Import models so they register with Base
    from leadintel import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
