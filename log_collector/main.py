"""
FastAPI Application Entry Point

This is the main application module that sets up the FastAPI app,
configures middleware, registers error handlers and includes all routers.
"""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from log_collector.config import settings
from log_collector.database import database
from log_collector.errors import AuthorizationError, LogCollectorError, RequestShapeError, StoreError
from log_collector.routers import health, logs
from log_collector.services.event_store import EventStore

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events:
    - Startup: Initialize database connection pool and the logs table
    - Shutdown: Close database connections gracefully
    """
    # Startup
    logger.info("Starting Log Collector Service...")
    await database.connect()
    await EventStore(database).init_schema()
    logger.info(f"Log Collector Service started ({len(settings.service_tokens)} producer tokens)")

    yield

    # Shutdown
    logger.info("Shutting down Log Collector Service...")
    await database.disconnect()
    logger.info("Log Collector Service stopped")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    # Log Collector Service API

    Minimal telemetry collection backend:

    - **Ingestion**: services push single records or batches with a `Token` credential
    - **Partial acceptance**: every record in a batch is validated and stored independently
    - **Query**: filter by service, severity, event time and receive time, with pagination
    """,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    openapi_url="/openapi.json" if settings.debug else None,
    lifespan=lifespan
)


# ============================================================================
# Middleware
# ============================================================================

# CORS (configure appropriately for production)
if settings.debug:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.middleware("http")
async def add_request_timing(request: Request, call_next):
    """Add request timing header for monitoring."""
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    return response


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming requests."""
    logger.debug(f"{request.method} {request.url.path}")
    response = await call_next(request)
    return response


# ============================================================================
# Exception Handlers
# ============================================================================

@app.exception_handler(AuthorizationError)
async def authorization_error_handler(request: Request, exc: AuthorizationError):
    """Reject the whole request; no per-record detail is returned."""
    return JSONResponse(status_code=exc.status_code, content={"error": exc.public_message})


@app.exception_handler(RequestShapeError)
async def request_shape_error_handler(request: Request, exc: RequestShapeError):
    """Descriptive 400 for malformed request bodies and query parameters."""
    logger.info(f"Bad request on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    """
    Store failures surfacing at request level.

    The cause is logged; the caller only gets a generic message.
    """
    logger.error(f"Store failure on {request.method} {request.url.path}: {exc.__cause__ or exc}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.public_message})


@app.exception_handler(LogCollectorError)
async def service_error_handler(request: Request, exc: LogCollectorError):
    """Fallback for any other service error."""
    return JSONResponse(status_code=exc.status_code, content={"error": exc.public_message})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler.

    Returns generic error responses to prevent information leakage.
    Detailed errors are logged internally.
    """
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"}
    )


# ============================================================================
# Include Routers
# ============================================================================

# Log ingestion and query endpoints
app.include_router(logs.router)

# Health check and monitoring
app.include_router(health.router)


# ============================================================================
# Root Endpoint
# ============================================================================

@app.get("/", tags=["root"])
async def root():
    """
    Root endpoint.

    Returns basic service information.
    """
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "status": "running"
    }


def run() -> None:
    """Run the service with uvicorn."""
    import uvicorn

    uvicorn.run(
        "log_collector.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.workers
    )


# ============================================================================
# Development Server
# ============================================================================

if __name__ == "__main__":
    run()
