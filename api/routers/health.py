# WORKFLOW: Health check endpoints for monitoring and operational status.
# Used by: Load balancers, monitoring systems, operational dashboards
# Endpoints:
# 1. /healthz - Basic health check (always returns healthy)
# 2. /readyz - Readiness check against the database
# 3. /livez - Liveness check for Kubernetes probes
#
# Readiness flow: Readiness check -> SELECT 1 on the database -> Ready/Not ready

from fastapi import APIRouter
from fastapi.responses import JSONResponse
import logging
from datetime import datetime, timezone

from db.session import check_db_connection
from core.config import settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/healthz")
async def health_check():
    """
    Basic health check endpoint.

    Returns:
        Health status of the API
    """
    return {
        "status": "healthy",
        "timestamp": _now(),
        "version": settings.version,
        "environment": settings.environment
    }


@router.get("/readyz")
def readiness_check():
    """
    Readiness check endpoint.

    Returns 503 until the database answers a trivial query.
    """
    checks = {"database": check_db_connection()}
    is_ready = all(checks.values())
    if not is_ready:
        logger.warning(f"Readiness check failed: {checks}")

    return JSONResponse(
        status_code=200 if is_ready else 503,
        content={
            "status": "ready" if is_ready else "not_ready",
            "timestamp": _now(),
            "checks": checks,
            "version": settings.version
        },
    )


@router.get("/livez")
async def liveness_check():
    """
    Liveness check endpoint.

    Returns:
        Liveness status
    """
    return {
        "status": "alive",
        "timestamp": _now()
    }
