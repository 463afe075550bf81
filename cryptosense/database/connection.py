"""CryptoSense - Database Configuration

SQLAlchemy async engine and session management. PostgreSQL via asyncpg in
deployment, SQLite via aiosqlite for development and tests.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool, StaticPool

# SQLAlchemy declarative base
Base = declarative_base()


def normalize_database_url(url: str) -> str:
    """Convert postgresql:// to postgresql+asyncpg:// if needed."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://") and not url.startswith("sqlite+"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


def create_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create the async engine for ``url``."""
    url = normalize_database_url(url)
    if url.startswith("sqlite") and ":memory:" in url:
        # One shared connection so every session sees the same in-memory database.
        return create_async_engine(
            url,
            echo=echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    return create_async_engine(
        url,
        echo=echo,
        pool_pre_ping=True,
        poolclass=NullPool,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Async session factory; objects stay usable after commit."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Create database tables (schema migrations are handled out of band)."""
    # Register every model on Base.metadata before create_all.
    from cryptosense.database import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db(engine: AsyncEngine) -> None:
    """Close database engine."""
    await engine.dispose()
