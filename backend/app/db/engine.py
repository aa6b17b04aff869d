"""Database engine and session factory."""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from backend.app.config import Settings
from backend.app.db.models import Base


def normalize_async_url(database_url: str) -> str:
    """Map sync driver URLs onto their async equivalents."""
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if database_url.startswith("postgres://"):
        return database_url.replace("postgres://", "postgresql+asyncpg://", 1)
    if database_url.startswith("sqlite://"):
        return database_url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return database_url


def normalize_sync_url(database_url: str) -> str:
    """Map async driver URLs onto the sync drivers Alembic runs with."""
    for prefix, replacement in (
        ("postgresql+asyncpg://", "postgresql://"),
        ("postgres://", "postgresql://"),
        ("sqlite+aiosqlite://", "sqlite://"),
    ):
        if database_url.startswith(prefix):
            return replacement + database_url[len(prefix) :]
    return database_url


def create_async_engine_from_settings(settings: Settings) -> AsyncEngine:
    """Create async SQLAlchemy engine from settings.

    Raises:
        ValueError: If DATABASE_URL is unset or empty.
    """
    if not settings.database_url:
        raise ValueError(
            "DATABASE_URL must be set to a valid connection string. "
            "Please configure the database_url setting."
        )

    return create_async_engine(
        normalize_async_url(settings.database_url), pool_pre_ping=True, echo=False
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create sessionmaker for creating database sessions.

    Args:
        engine: Async SQLAlchemy engine

    Returns:
        Sessionmaker bound to the engine
    """
    return async_sessionmaker(bind=engine, expire_on_commit=False)


async def create_all(engine: AsyncEngine) -> None:
    """Create all tables. Used for SQLite dev databases and tests."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
