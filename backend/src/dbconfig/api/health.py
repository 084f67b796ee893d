"""Health check API endpoints for dbconfig.

Reports database connectivity and the state of the configuration registry.
"""

import time

from fastapi import APIRouter, Depends

from ..core.config import get_settings_instance
from ..core.database import check_db_connection
from ..core.logging import get_logger
from ..core.response import DbConfigResponse
from ..services.config_registry import ConfigRegistry, get_config_registry

logger = get_logger(__name__)
router = APIRouter(prefix="/health", tags=["health"])


@router.get("", summary="Health check", description="Database and configuration registry status.")
async def health_check(registry: ConfigRegistry = Depends(get_config_registry)):
    """Health check endpoint.

    The registry version is 0 until the first successful load from the
    settings table, so a healthy database with version 0 means the startup
    load failed and the process is running on its defaults.
    """
    logger.debug("Health check requested")
    settings = get_settings_instance()

    health_data = {
        "status": "healthy",
        "timestamp": time.time(),
        "version": settings.version,
        "environment": settings.environment,
        "checks": {},
    }

    if await check_db_connection():
        health_data["checks"]["database"] = {"status": "healthy"}
    else:
        health_data["checks"]["database"] = {"status": "unhealthy"}
        health_data["status"] = "unhealthy"

    health_data["checks"]["config_registry"] = {
        "status": "healthy" if registry.version > 0 else "warning",
        "version": registry.version,
    }
    if registry.version == 0 and health_data["status"] == "healthy":
        health_data["status"] = "warning"

    status_code = 503 if health_data["status"] == "unhealthy" else 200
    return DbConfigResponse.success(health_data, status_code=status_code)
