"""
FastAPI Application Factory
===========================

Entry point for the rolegate service: OAuth login, signed sessions and
the admin user/role management API backed by the identity provider's
Management API.

Routers:
    - /auth/*       : Login, callback, logout and current session
    - /api/*        : Admin user and role management (Admin role required)
    - /health       : Health check endpoint

Running the Service:
    Development:
        uvicorn rolegate.main:app --reload --host 0.0.0.0 --port 8080

    With custom log level:
        LOG_LEVEL=DEBUG uvicorn rolegate.main:app --reload
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from rolegate.admin.routes import admin_router
from rolegate.auth.routes import auth_router
from rolegate.config import get_settings, validate_configuration
from rolegate.management.client import ManagementApiClient
from rolegate.management.token_cache import ManagementTokenCache
from rolegate.models import ErrorResponse, HealthResponse

SERVICE_NAME = "rolegate"
SERVICE_VERSION = "1.0.0"

logger = logging.getLogger(__name__)


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured JSON-line logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)],
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup:
        - Configure logging and report configuration problems
        - Create the shared HTTP client
        - Create the Management API token cache and client singletons

    Shutdown:
        - Close the shared HTTP client
    """
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)

    status_report = validate_configuration(settings)
    for warning in status_report["warnings"]:
        logger.warning("Configuration warning: %s", warning)
    for error in status_report["errors"]:
        logger.error("Configuration error: %s", error)

    http_client = httpx.AsyncClient(timeout=settings.MANAGEMENT_HTTP_TIMEOUT_SECONDS)
    token_cache = ManagementTokenCache(http_client, settings=settings)

    app.state.http_client = http_client
    app.state.token_cache = token_cache
    app.state.management_client = ManagementApiClient(token_cache, http_client, settings=settings)

    logger.info(
        "Started %s %s (management API %s)",
        SERVICE_NAME,
        SERVICE_VERSION,
        "configured" if settings.management_configured else "unavailable",
    )

    yield

    logger.info("Shutting down %s", SERVICE_NAME)
    await http_client.aclose()
    app.state.management_client = None
    app.state.token_cache = None
    app.state.http_client = None


def create_application() -> FastAPI:
    """
    Application factory function.

    Creates and configures the FastAPI application instance with:
        - Lifespan management
        - Signed session cookies and CORS middleware
        - Route handlers
        - Exception handlers

    Returns:
        FastAPI: Configured application instance
    """
    settings = get_settings()

    app = FastAPI(
        title="rolegate",
        description="OAuth login, sessions and role management for the web application",
        version=SERVICE_VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.SESSION_SECRET,
        session_cookie=settings.SESSION_COOKIE_NAME,
        max_age=settings.SESSION_JWT_EXPIRY_MINUTES * 60,
        same_site="lax",
        https_only=settings.SESSION_HTTPS_ONLY,
    )

    if settings.allowed_origins_list:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins_list,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            allow_headers=["*"],
        )

    app.include_router(auth_router)
    app.include_router(admin_router)

    @app.get("/health", tags=["System"], response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        return HealthResponse(
            status="ok",
            service=SERVICE_NAME,
            management_configured=settings.management_configured,
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Log unhandled errors and return a standardized error response.
        """
        logger.error(
            "Unhandled exception: %s",
            exc,
            extra={
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__,
            },
            exc_info=True,
        )

        details: Optional[Dict[str, Any]] = None
        if settings.LOG_LEVEL == "DEBUG":
            details = {"exception": str(exc)}

        error = ErrorResponse(
            error="internal_server_error",
            message="An unexpected error occurred",
            details=details,
        )
        return JSONResponse(status_code=500, content=error.model_dump(mode="json"))

    return app


app = create_application()


if __name__ == "__main__":
    settings = get_settings()

    uvicorn.run(
        "rolegate.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=True,
        log_level=settings.LOG_LEVEL.lower(),
    )
