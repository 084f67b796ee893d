"""
API package for dbconfig.

This package contains FastAPI routers for all API endpoints.
"""

from .app_settings import router as app_settings_router
from .health import router as health_router

__all__ = ["app_settings_router", "health_router"]
