"""
FastAPI dependencies for dbconfig.

This module provides reusable dependencies for database sessions and the
settings service.
"""

from typing import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db as core_get_db
from ..services.app_settings_service import AppSettingsService
from ..services.config_registry import ConfigRegistry, get_config_registry


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Database session dependency.

    Yields an async database session and ensures it's closed after use.
    """
    async for session in core_get_db():
        yield session


def get_app_settings_service(
    db: AsyncSession = Depends(get_db),
    registry: ConfigRegistry = Depends(get_config_registry),
) -> AppSettingsService:
    """Settings service bound to the request's session and the live registry."""
    return AppSettingsService(db, registry=registry)
