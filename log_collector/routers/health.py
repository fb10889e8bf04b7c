"""
Health check and monitoring endpoints.
"""

import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from log_collector.config import settings
from log_collector.database import Database, get_db
from log_collector.models import HealthStatus, ServiceInfo

router = APIRouter(tags=["monitoring"])

# Track application start time
START_TIME = time.time()


@router.get("/health", response_model=HealthStatus)
async def health_check():
    """
    Health check endpoint.

    Reports that the process is up along with the current server time.
    Does not touch the database; see `/health/ready` for that.
    """
    return HealthStatus(status="ok", time=datetime.now(timezone.utc))


@router.get("/health/live")
async def liveness_check():
    """Kubernetes liveness probe."""
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(db: Database = Depends(get_db)):
    """
    Kubernetes readiness probe.

    Checks that the application is ready to receive traffic.
    Verifies database connectivity.
    """
    db_healthy = await db.health_check()

    if not db_healthy:
        return Response(
            content='{"status": "not ready", "reason": "database disconnected"}',
            status_code=503,
            media_type="application/json"
        )

    return {"status": "ready"}


@router.get("/metrics")
async def metrics():
    """
    Prometheus metrics endpoint.

    Returns metrics in Prometheus text format including:
    - Records accepted and rejected per identity
    - Read and write request outcomes
    - Store insert and query latency
    """
    if not settings.enable_metrics:
        return Response(status_code=404)

    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


@router.get("/info", response_model=ServiceInfo)
async def info():
    """Service information endpoint."""
    return ServiceInfo(
        name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
        uptime_seconds=time.time() - START_TIME
    )
