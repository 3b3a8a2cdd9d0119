from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from hr_portal.config import settings
from hr_portal.api.v1.router import api_router
from hr_portal.core.exceptions import (
    HRPortalError, NotFoundError, ParsingError, StorageError, NetworkError, SyncConflictError,
)
from hr_portal.database import init_db, async_session_factory
from hr_portal.jobs.scheduler import start_scheduler, shutdown_scheduler

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    - Create storage tables
    - Start background scheduler (sync jobs when enabled)
    """
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    await init_db()

    start_scheduler()

    yield

    # Shutdown
    shutdown_scheduler()
    logger.info("Shutting down...")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="HR & payroll API: employee master, attendance, leave accrual, salary sheets and spreadsheet sync.",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router)


# Service errors map onto HTTP status codes
ERROR_STATUS_CODES = [
    (NotFoundError, 404),
    (ParsingError, 422),
    (SyncConflictError, 409),
    (NetworkError, 502),
    (StorageError, 500),
]


@app.exception_handler(HRPortalError)
async def hr_portal_exception_handler(request: Request, exc: HRPortalError):
    status_code = next((code for error_type, code in ERROR_STATUS_CODES if isinstance(exc, error_type)), 400)
    if status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")

    content = {
        "detail": exc.message,
        "type": type(exc).__name__,
    }
    if isinstance(exc, ParsingError) and exc.row_number is not None:
        content["row_number"] = exc.row_number
    if exc.details:
        content["details"] = exc.details
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return a JSON error body for anything unhandled."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")

    error_detail = {
        "error": str(exc) if settings.DEBUG else "Internal server error",
        "type": type(exc).__name__,
        "path": str(request.url.path),
        "method": request.method,
    }
    response = JSONResponse(status_code=500, content=error_detail)

    # Add CORS headers if origin is allowed
    origin = request.headers.get("origin", "")
    if origin in settings.cors_origins_list or "*" in settings.cors_origins_list:
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Credentials"] = "true"

    return response


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint with database validation."""
    from sqlalchemy import text
    from datetime import datetime, timezone

    health_status = {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": "unknown"
        }
    }

    # Check database connectivity
    try:
        async with async_session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
            health_status["checks"]["database"] = "connected"
    except Exception as e:
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = f"error: {str(e)}"

    # Return 503 if unhealthy
    if health_status["status"] == "unhealthy":
        return JSONResponse(status_code=503, content=health_status)

    return health_status


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "redoc": "/redoc",
    }
