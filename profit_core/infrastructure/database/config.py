"""
Database configuration.

Manages engine creation and the session factory.
"""
from typing import Optional
import logging

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from profit_core.settings import get_app_settings


logger = logging.getLogger(__name__)


# =============================================================================
# ENGINE CREATION
# =============================================================================

def create_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """
    Create async SQLAlchemy engine.

    Args:
        database_url: overrides DB_DATABASE_URL (tests pass sqlite+aiosqlite)

    Returns:
        Configured async engine
    """
    settings = get_app_settings().database
    url = database_url or settings.database_url
    logger.info(f"Creating database engine: {url.split('@')[-1]}")

    if url.startswith("sqlite"):
        return create_async_engine(url, echo=settings.echo_sql)

    return create_async_engine(
        url,
        echo=settings.echo_sql,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        pool_timeout=settings.pool_timeout,
        pool_recycle=settings.pool_recycle,
        pool_pre_ping=True,  # Test connections before using
    )


# Global engine instance
engine: Optional[AsyncEngine] = None


def get_engine() -> AsyncEngine:
    """
    Get or create global engine instance.
    """
    global engine

    if engine is None:
        engine = create_engine()

    return engine


# =============================================================================
# SESSION FACTORY
# =============================================================================

def get_session_factory(bind: Optional[AsyncEngine] = None):
    """
    Get session factory.

    Returns:
        Session factory for creating sessions
    """
    return sessionmaker(
        bind=bind or get_engine(),
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# =============================================================================
# DATABASE INITIALIZATION
# =============================================================================

async def init_database(bind: Optional[AsyncEngine] = None):
    """
    Initialize database.

    Creates all tables if they don't exist.
    """
    from profit_core.infrastructure.database.models import Base

    logger.info("Initializing database...")

    async with (bind or get_engine()).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("✅ Database initialized successfully")


async def close_database():
    """Close database connections."""
    global engine

    if engine:
        logger.info("Closing database connections...")
        await engine.dispose()
        engine = None
        logger.info("✅ Database connections closed")
