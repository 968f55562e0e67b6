"""
Main entrypoint for the catalog API.

This module assembles the FastAPI application: logging, the request
middleware (rate limiting, security headers, CORS, compression), the
JSON error envelopes, the versioned routers, static serving of locally
stored uploads and the keep‑alive background task.  ``create_app``
builds and configures the app, which is instantiated at import time as
``app``::

    uvicorn catalog_api.app.main:app --reload
"""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api.v1.router import router as v1_router
from .core.config import settings
from .core.db import init_db
from .core.errors import ServiceError
from .core.keep_alive import keep_alive_url, run_keep_alive
from .core.logging_config import setup_logging
from .core.middleware import add_rate_limiting, add_security_headers
from .schemas.common import error_list

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    """Render every failure as a JSON envelope."""

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message, exc_info=exc)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "message": "Validation failed", "errors": error_list(exc.errors())},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = "Route not found" if exc.status_code == status.HTTP_404_NOT_FOUND else exc.detail
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": message},
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "message": "Something went wrong!",
                "error": str(exc) if settings.is_development else "Internal server error",
            },
        )


def create_app() -> FastAPI:
    """Create and configure a FastAPI application.

    Returns
    -------
    FastAPI
        A configured FastAPI application instance.
    """
    # Logging first so that everything below can log.
    setup_logging(settings.log_level, settings.log_file or None)

    app = FastAPI(title=settings.project_name, version=settings.api_version, debug=settings.debug)

    # Added innermost first: the limiter, then security headers, so 429s
    # carry them as well.
    add_rate_limiting(app)
    add_security_headers(app)
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    @app.get("/api/health", tags=["health"])
    async def health() -> dict:
        return {
            "status": "OK",
            "message": f"{settings.project_name} is running",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    app.include_router(v1_router, prefix="/api/v1")

    # Locally stored product images; unused when Cloudinary is configured.
    app.mount("/uploads", StaticFiles(directory=settings.upload_dir, check_dir=False), name="uploads")

    @app.on_event("startup")
    async def startup_event() -> None:
        # Creates the database file if needed and applies migrations.
        init_db()
        Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)
        app.state.keep_alive_task = None
        if keep_alive_url():
            app.state.keep_alive_task = asyncio.create_task(run_keep_alive())
        logger.info("%s started (environment: %s)", settings.project_name, settings.environment)

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        task = getattr(app.state, "keep_alive_task", None)
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    return app


# Create the application instance at import time so that uvicorn can
# discover it without calling create_app manually.
app = create_app()
