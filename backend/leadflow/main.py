"""
LeadFlow Backend - FastAPI Application Entry Point

Lead follow-up workflow engine for the sales CRM: outcome gating, stage
transitions, follow-up scheduling and SLA tracking.
"""

import time
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware

from .core.config import settings
from .core.database import check_db_connection, engine, init_db
from .core.exceptions import WorkflowError
from .core.logging_config import setup_logging
from .schemas.common import ErrorDetail
from .services.outcome_catalog import CATALOG_VERSION
from .api import health_router, leads_router, tasks_router, outcomes_router


logger = logging.getLogger(__name__)


# =============================================================================
# Performance Monitoring Middleware
# =============================================================================

class PerformanceMonitoringMiddleware(BaseHTTPMiddleware):
    """
    Middleware to track API response times and log slow requests.

    Logs warnings for requests exceeding 500ms (usually a lead row lock
    held by a concurrent writer). Adds X-Response-Time header to all
    responses.
    """

    SLOW_REQUEST_THRESHOLD_MS = 500

    async def dispatch(self, request: Request, call_next):
        """Process request with timing."""
        start_time = time.time()

        response = await call_next(request)

        process_time_ms = (time.time() - start_time) * 1000
        response.headers["X-Response-Time"] = f"{process_time_ms:.2f}ms"

        if process_time_ms > self.SLOW_REQUEST_THRESHOLD_MS:
            logger.warning(
                f"Slow request: {request.method} {request.url.path} "
                f"took {process_time_ms:.2f}ms"
            )

        if settings.debug:
            logger.debug(
                f"{request.method} {request.url.path} - {process_time_ms:.2f}ms"
            )

        return response


# =============================================================================
# Application Lifespan
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.

    Handles startup and shutdown events.
    """
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(
        f"Environment: {settings.environment}, "
        f"business timezone: {settings.business_timezone}, "
        f"SLA target: {settings.sla_target_minutes}min"
    )

    # Production schema is managed by migrations
    if settings.db_create_tables and not settings.is_production:
        init_db()
        logger.info("Database tables created")

    if not check_db_connection():
        logger.warning("Database is not reachable; requests will fail until it is")

    yield

    logger.info("Shutting down...")
    engine.dispose()


# =============================================================================
# Exception Handlers
# =============================================================================

async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    """
    Map workflow errors to their HTTP status.

    The error code tells the client whether to refetch and retry, re-prompt
    the agent, or give up.
    """
    logger.info(f"{request.method} {request.url.path} rejected: {exc.code}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.code,
            "message": exc.message,
        },
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies and parameters, in the same envelope as workflow errors."""
    details = [
        ErrorDetail(
            field=".".join(str(part) for part in error.get("loc", ()) if part != "body") or None,
            message=error.get("msg", "Invalid value"),
            code=error.get("type"),
        ).model_dump()
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "success": False,
            "error": "validation_error",
            "message": "Request validation failed",
            "details": details,
        },
    )


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """
    Handle storage failures.

    The transaction has already been rolled back; the request can be retried.
    """
    logger.error(f"Database error on {request.method} {request.url.path}: {type(exc).__name__}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "success": False,
            "error": "storage_unavailable",
            "message": "The database is temporarily unavailable. Please retry.",
        },
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unhandled exceptions.

    Logs the traceback and returns a generic message (never expose internals).
    """
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "internal_error",
            "message": "An unexpected error occurred. Please try again later.",
        },
    )


# =============================================================================
# Application Factory
# =============================================================================

def create_application() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    setup_logging()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description=(
            "Lead follow-up workflow API: selectable outcomes, atomic stage "
            "transitions, follow-up tasks and SLA status."
        ),
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
        lifespan=lifespan,
    )

    # Add GZip compression middleware (compress responses > 1KB)
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    # Add performance monitoring middleware
    app.add_middleware(PerformanceMonitoringMiddleware)

    # Configure CORS
    cors_origins = settings.cors_origins_list
    allow_all = "*" in cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else cors_origins,
        allow_credentials=not allow_all,  # credentials not compatible with wildcard
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Response-Time"],
    )

    app.add_exception_handler(WorkflowError, workflow_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # Register routers
    app.include_router(health_router)
    app.include_router(leads_router)
    app.include_router(tasks_router)
    app.include_router(outcomes_router)

    return app


app = create_application()


# =============================================================================
# Root Endpoint
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict:
    """
    Root endpoint returning API information.
    """
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "running",
        "catalog_version": CATALOG_VERSION,
        "business_timezone": settings.business_timezone,
        "docs": "/docs" if settings.is_development else "disabled",
    }


# =============================================================================
# Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "leadflow.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level="debug" if settings.debug else "info",
    )
