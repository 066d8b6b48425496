from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from jobwarden.config import get_settings
from jobwarden.core.logging import get_logger

logger = get_logger(__name__)

settings = get_settings()


def _engine_options(url: str) -> dict[str, Any]:
    """
    Pool options for the configured database.

    SQLite (aiosqlite) uses SQLAlchemy's default pool and needs no
    tuning; server databases get a small recycled pool.
    """
    if url.startswith("sqlite"):
        return {}
    return {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 280,
    }


def create_engine(url: str) -> AsyncEngine:
    """Create an async engine for the given database URL."""
    return create_async_engine(url, echo=False, **_engine_options(url))


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory with the project-wide session defaults."""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = create_engine(settings.database_url)

AsyncSessionLocal = create_session_factory(engine)
