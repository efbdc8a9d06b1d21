"""Main application entrypoint for the direct upload service."""

import contextlib
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from directupload.api.middleware import HTTPErrorLoggingMiddleware
from directupload.api.v1 import routes_health
from directupload.api.v1.routes_upload import router as upload_router
from directupload.core.config import settings
from directupload.core.logging import setup_logging
from directupload.models.upload import ErrorResponse
from directupload.uploads.exceptions import UploadError
from directupload.uploads.service import UploadServices, build_upload_services

logger = logging.getLogger(__name__)


async def upload_error_handler(request: Request, exc: UploadError) -> JSONResponse:
    """Render lifecycle errors with their stable code."""
    body = ErrorResponse(code=exc.code, detail=exc.detail, retryable=exc.retryable)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


def create_app(services: UploadServices | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        services: Prebuilt upload components. Built from settings at startup
            when omitted.

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    # Initialize logging first
    setup_logging()

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI):
        upload_services = services or build_upload_services()
        app.state.upload_services = upload_services

        if settings.SWEEPER_ENABLED:
            await upload_services.scheduler.start()
        try:
            yield
        finally:
            await upload_services.scheduler.stop()
            upload_services.engine.dispose()
            logger.info("Upload services stopped")

    app = FastAPI(
        title=settings.SERVICE_NAME,
        version=settings.SERVICE_VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(HTTPErrorLoggingMiddleware)
    app.add_exception_handler(UploadError, upload_error_handler)

    # Register routers
    app.include_router(routes_health.router, tags=["health"])
    app.include_router(upload_router)

    return app


# Export app instance for ASGI servers
app = create_app()
