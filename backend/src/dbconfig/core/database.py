"""
Database connection and session management for the settings service.

This module provides the declarative base, a lazily created async engine,
session factory and the FastAPI session dependency.
"""

import os
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from .config import get_settings_instance
from .exceptions import DatabaseConnectionError, DatabaseSessionError
from .logging import get_logger

logger = get_logger(__name__)

# Create declarative base
Base = declarative_base()

# Global async engine and session factory - lazy initialization
_async_engine = None
_AsyncSessionLocal = None


def _redact_url(url: str) -> str:
    """Drop credentials from a database URL before logging it."""
    if "@" in url:
        scheme = url.split("://", 1)[0]
        return f"{scheme}://***@{url.split('@', 1)[1]}"
    return url


def get_database_url() -> str:
    env_url = os.getenv("DBCONFIG_DATABASE_URL")
    if env_url:
        return env_url
    try:
        return get_settings_instance().database_url
    except Exception:
        logger.error("Could not determine database URL from environment or settings", exc_info=True)
        raise DatabaseConnectionError(
            "Could not determine database URL. Please set DBCONFIG_DATABASE_URL environment variable."
        )


def get_async_engine():
    global _async_engine
    if _async_engine is None:
        database_url = get_database_url()
        settings = get_settings_instance()
        logger.debug(f"Database configuration: URL={_redact_url(database_url)}")
        try:
            if database_url.startswith("sqlite"):
                # SQLite has no connection pool sizing
                _async_engine = create_async_engine(database_url, echo=False)
            else:
                _async_engine = create_async_engine(
                    database_url,
                    pool_size=settings.database_pool_size,
                    max_overflow=settings.database_max_overflow,
                    pool_timeout=settings.database_pool_timeout,
                    pool_recycle=settings.database_pool_recycle,
                    pool_pre_ping=True,
                    echo=False,
                )
        except Exception as e:
            logger.error(f"Failed to create async database engine: {str(e)}")
            raise DatabaseConnectionError(f"engine creation: {str(e)}")
    return _async_engine


def get_async_session_local():
    global _AsyncSessionLocal
    if _AsyncSessionLocal is None:
        try:
            _AsyncSessionLocal = async_sessionmaker(
                bind=get_async_engine(),
                expire_on_commit=False,
                autoflush=False,
                class_=AsyncSession,
            )
        except DatabaseConnectionError:
            raise
        except Exception as e:
            logger.error(f"Failed to create async session factory: {str(e)}")
            raise DatabaseSessionError(f"session factory creation: {str(e)}")
    return _AsyncSessionLocal


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    session_local = get_async_session_local()
    async with session_local() as session:
        try:
            yield session
        except SQLAlchemyError as e:
            logger.error(f"Database session error: {str(e)}")
            await session.rollback()
            raise DatabaseSessionError(f"session operation: {str(e)}")


async def init_db() -> None:
    """Create the settings tables if they don't exist yet."""
    # Ensure models are imported so Base.metadata has all tables
    from ..models import AppSetting  # noqa: F401

    try:
        engine = get_async_engine()
        logger.debug(f"Initializing database tables: URL={_redact_url(get_database_url())}")
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {str(e)}")
        raise DatabaseSessionError(f"database initialization: {str(e)}")


async def close_db() -> None:
    global _async_engine, _AsyncSessionLocal
    if _async_engine is None:
        return
    try:
        await _async_engine.dispose()
        logger.debug("Database connections closed")
    except Exception as e:
        logger.error(f"Error closing database connections: {str(e)}")
    finally:
        _async_engine = None
        _AsyncSessionLocal = None


async def check_db_connection() -> bool:
    """Check if database connection is working."""
    try:
        engine = get_async_engine()
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {str(e)}")
        return False
