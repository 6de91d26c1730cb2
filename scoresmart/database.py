"""Database connection and session management using SQLAlchemy async ORM"""
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from scoresmart.config import DATABASE_URL as _CONFIGURED_URL

# Convert sync postgresql:// to async postgresql+asyncpg://
DATABASE_URL = _CONFIGURED_URL
if DATABASE_URL.startswith("postgresql://"):
    DATABASE_URL = DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://", 1)


def build_engine(url: str = DATABASE_URL):
    """
    Create async SQLAlchemy engine.

    PostgreSQL gets a connection pool sized for concurrent enrollment traffic:
    pool_size=20 kept alive, max_overflow=30 extra under load,
    pool_recycle=3600 to avoid stale connections.
    """
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=False)

    return create_async_engine(
        url,
        echo=False,  # Set to True for SQL query logging during development
        pool_size=20,
        max_overflow=30,
        pool_recycle=3600,
        pool_pre_ping=True,  # Verify connection health before using
    )


def build_session_factory(bind) -> async_sessionmaker:
    """Create async session factory bound to an engine"""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = build_engine()

# Create async session factory
AsyncSessionLocal = build_session_factory(engine)

# Base class for declarative models
Base = declarative_base()

