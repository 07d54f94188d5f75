"""
Content Processor API - FastAPI Application Entry Point.

Initializes the FastAPI application with CORS and request logging middleware,
registers the auth, files and jobs routers and the exception translator, and
ties the MongoDB client to the application lifespan.

Architecture Decisions:
- Every response, success or failure, uses the ApiResponse envelope
- Domain errors are raised by services and translated in one place
- Health (liveness) and readiness (MongoDB ping) endpoints for orchestration
"""

import logging
import time
import uuid

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from content_processor.api.error_handlers import error_response, register_exception_handlers
from content_processor.api.routes import api_router
from content_processor.config import get_settings
from content_processor.core.database import close_db, get_db_client, init_db
from content_processor.models.common import ApiResponse
from content_processor.utils.logger import setup_logging


APP_VERSION = "1.0.0"

logger = logging.getLogger("content_processor")


# =============================================================================
# Configuration Loading
# =============================================================================

settings = get_settings()
setup_logging(settings.log_level, json_logs=settings.log_json)


# =============================================================================
# Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """
    Connect to MongoDB on startup and disconnect on shutdown.

    A failed connection is logged and the service keeps starting so that
    ``/ready`` can report it.
    """
    try:
        await init_db(settings)
    except RuntimeError:
        logger.exception("Failed to initialize database connection")

    logger.info("Content Processor API started on %s:%s", settings.host, settings.port)
    yield

    await close_db()
    logger.info("Content Processor API shutdown complete")


# =============================================================================
# FastAPI Application Initialization
# =============================================================================

app = FastAPI(
    title="Content Processor API",
    version=APP_VERSION,
    description="Upload media files and track content processing jobs",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Process-Time"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next) -> Response:
    """Tag each request with an id and log its outcome and duration."""
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    start = time.perf_counter()

    response = await call_next(request)

    elapsed = time.perf_counter() - start
    response.headers["X-Request-ID"] = request_id
    response.headers["X-Process-Time"] = f"{elapsed:.4f}"
    logger.info(
        "%s %s -> %d (%.1f ms) [%s]",
        request.method,
        request.url.path,
        response.status_code,
        elapsed * 1000,
        request_id,
    )
    return response


register_exception_handlers(app)


# =============================================================================
# Service Endpoints
# =============================================================================


@app.get("/", tags=["root"], response_model=ApiResponse[dict], response_model_exclude_none=True)
async def root() -> ApiResponse[dict]:
    return ApiResponse.ok(
        "Content Processor API",
        {"name": settings.app_name, "version": APP_VERSION, "docs": "/docs"},
    )


@app.get("/health", tags=["health"], response_model=ApiResponse[dict])
async def health_check() -> ApiResponse[dict]:
    """Liveness probe; never touches dependencies."""
    return ApiResponse.ok(
        "Service is healthy",
        {"status": "healthy", "timestamp": datetime.now(UTC).isoformat()},
    )


@app.get("/ready", tags=["health"], response_model=None)
async def readiness_check() -> JSONResponse:
    """Readiness probe: 200 when MongoDB answers a ping, 503 otherwise."""
    try:
        database_ready = await get_db_client().ping()
    except RuntimeError:
        database_ready = False

    if not database_ready:
        logger.warning("Readiness check failed: database unavailable")
        return error_response(503, "Service not ready", {"database": "unavailable"})

    ready = ApiResponse.ok("Service is ready", {"status": "ready", "database": "connected"})
    return JSONResponse(content=ready.model_dump(mode="json", exclude_none=True))


app.include_router(api_router)
