"""dbconfig - FastAPI Application

This module creates and configures the FastAPI application serving the
runtime settings API.
"""

import traceback
import uuid
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api.app_settings import router as app_settings_router
from .api.health import router as health_router
from .core.config import get_settings_instance
from .core.database import close_db, get_async_session_local, init_db
from .core.exceptions import DbConfigException, LoginRedirect
from .core.logging import get_logger, setup_logging
from .core.middleware import RequestIDMiddleware, TimingMiddleware
from .core.response import DbConfigResponse
from .services.app_settings_service import AppSettingsService
from .services.config_registry import get_config_registry, load_registry_at_startup

logger = get_logger(__name__)
settings = get_settings_instance()

NOTICE_HEADER = "X-DbConfig-Notice"


def generate_error_id() -> str:
    """Generate a unique error ID for tracking."""
    return f"ERR-{uuid.uuid4().hex[:8].upper()}"


def get_request_context(request: Request) -> dict[str, Any]:
    """Extract relevant context from request for error logging."""
    return {
        "method": request.method,
        "url": str(request.url),
        "path": request.url.path,
        "query_params": dict(request.query_params),
        "client": {
            "host": request.client.host if request.client else None,
            "port": request.client.port if request.client else None,
        },
        "request_id": getattr(request.state, "request_id", None),
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    setup_logging()

    logger.info("Starting dbconfig...")
    logger.info(f"Version: {settings.version}")
    logger.info(f"Environment: {settings.environment}")

    try:
        await init_db()
        logger.info("Database initialized successfully")

        if settings.seed_defaults:
            session_maker = get_async_session_local()
            async with session_maker() as session:
                seeded = await AppSettingsService(session).seed_defaults()
            if seeded:
                logger.info(f"Inserted {seeded} default settings")
    except Exception as e:
        # Do not crash the app if DB is unavailable; health will reflect DB status.
        logger.error(f"Failed to initialize database: {e}", exc_info=True)

    # Best effort: without it the process runs on the registry defaults
    if await load_registry_at_startup():
        logger.info("Configuration registry loaded", extra={"version": get_config_registry().version})

    logger.info("dbconfig startup complete")

    yield

    logger.info("Shutting down dbconfig...")
    await close_db()
    logger.info("dbconfig shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="Runtime settings API",
        version=settings.version,
        debug=settings.debug,
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app)
    setup_exception_handlers(app)
    setup_routes(app)

    logger.info("dbconfig FastAPI application created successfully")
    return app


def setup_middleware(app: FastAPI) -> None:
    """Register request ID and timing middleware."""
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(TimingMiddleware)


def setup_exception_handlers(app: FastAPI) -> None:
    """Register custom exception handlers on the FastAPI application.

    Settings exceptions become envelope responses with their own status code;
    server errors get an error ID that is logged with the request context.
    Login redirects become 303 responses carrying the notice for the login page.
    """

    @app.exception_handler(LoginRedirect)
    async def login_redirect_handler(request: Request, exc: LoginRedirect):
        """Send unauthenticated visitors to the login page with a notice."""
        if "session" in request.scope:
            request.session["flash"] = exc.message
        logger.info("Redirecting unauthenticated request to login", extra={"path": request.url.path})
        return RedirectResponse(
            url=exc.location,
            status_code=exc.status_code,
            headers={NOTICE_HEADER: exc.message},
        )

    @app.exception_handler(DbConfigException)
    async def dbconfig_exception_handler(request: Request, exc: DbConfigException):
        """Handle custom exceptions with enhanced logging."""
        error_id = generate_error_id() if exc.status_code >= 500 else None

        if exc.status_code >= 500:
            logger.error(
                "dbconfig server error",
                extra={
                    "error_id": error_id,
                    "error_code": exc.error_code,
                    "error_message": exc.message,
                    "details": exc.details,
                    "request_context": get_request_context(request),
                },
            )
        elif exc.status_code >= 400:
            logger.warning(
                "dbconfig client error",
                extra={
                    "error_code": exc.error_code,
                    "error_message": exc.message,
                    "details": exc.details,
                    "request_context": get_request_context(request),
                },
            )

        return DbConfigResponse.error(
            message=exc.message,
            code=exc.error_code,
            details=exc.details,
            status_code=exc.status_code,
            error_id=error_id,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions with the same envelope."""
        if exc.status_code >= 400:
            logger.warning(
                "HTTP client error",
                extra={"status_code": exc.status_code, "detail": exc.detail, "request_context": get_request_context(request)},
            )
        return DbConfigResponse.error(
            message=str(exc.detail),
            code=f"HTTP_{exc.status_code}",
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None) or None,
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions; details are only exposed in debug mode."""
        error_id = generate_error_id()
        logger.error(
            "Unhandled exception",
            extra={
                "error_id": error_id,
                "exception_type": type(exc).__name__,
                "exception_message": str(exc),
                "request_context": get_request_context(request),
            },
            exc_info=True,
        )

        error_response: dict[str, Any] = {
            "error": {
                "code": "INTERNAL_SERVER_ERROR",
                "message": "Internal server error",
                "error_id": error_id,
                "details": {},
            }
        }
        if settings.debug:
            error_response["error"]["details"] = {
                "exception_type": type(exc).__name__,
                "exception_message": str(exc),
                "traceback": traceback.format_exc().split("\n"),
            }

        return JSONResponse(status_code=500, content=error_response)


def setup_routes(app: FastAPI) -> None:
    """Configure application routes."""
    app.include_router(health_router, prefix=settings.api_v1_prefix)
    app.include_router(app_settings_router, prefix=settings.api_v1_prefix)


# Ensure logging is configured as early as possible (before app instantiation)
# The lifespan will call setup_logging() again but it's guarded to no-op on second call
setup_logging()

app = create_app()


def run() -> None:
    """Serve the API with uvicorn using the configured host and port."""
    import uvicorn

    uvicorn.run(
        "dbconfig.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,  # keep our logging configuration
    )


if __name__ == "__main__":
    run()
