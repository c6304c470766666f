"""Health check endpoints for monitoring application status."""

from datetime import datetime
from datetime import timezone

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Request
from fastapi import status
from fastapi.responses import JSONResponse
from loguru import logger

from telemetry_api.dependencies import get_settings
from telemetry_api.settings import Settings

ROUTER_HEALTH = APIRouter(tags=["Health"])

SERVICE_NAME = "Device Telemetry API"


@ROUTER_HEALTH.get(
    "/health",
    summary="Health check endpoint",
    description="Basic health check that returns application status and metadata",
    responses={
        status.HTTP_200_OK: {
            "description": "Application is healthy",
            "content": {
                "application/json": {
                    "example": {
                        "status": "healthy",
                        "timestamp": "2026-01-05T12:00:00.000000Z",
                        "service": SERVICE_NAME,
                        "version": "v1",
                    }
                }
            },
        }
    },
)
async def health_check(request: Request):
    """
    Basic health check endpoint.

    Lightweight; does not check external dependencies.
    """
    task_runner = getattr(request.app.state, "task_runner", None)

    response_data = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": SERVICE_NAME,
        "version": "v1",
        "running_operations": task_runner.running if task_runner else 0,
    }

    logger.debug("Health check requested", status="healthy")

    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content=response_data,
    )


@ROUTER_HEALTH.get(
    "/health/live",
    summary="Liveness probe",
    description="Returns 200 while the process is able to serve requests",
)
async def liveness_check():
    """Liveness probe: the process is up."""
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={
            "status": "alive",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


@ROUTER_HEALTH.get(
    "/health/ready",
    summary="Readiness probe",
    description="Returns 200 when alarm storage is configured and reachable, 503 otherwise",
    responses={
        status.HTTP_200_OK: {"description": "Application is ready"},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"description": "Application is not ready"},
    },
)
async def readiness_check(request: Request, settings: Settings = Depends(get_settings)):
    """
    Readiness probe.

    Checks:
    - settings: storage connection string is configured
    - storage: document database answers a trivial query
    """
    checks = {"settings": "ok", "storage": "ok"}
    error = None

    if not settings.storage_connection_string:
        checks["settings"] = "failed"
        checks["storage"] = "skipped"
        error = "Storage connection string is not configured"
    else:
        pool = getattr(request.app.state, "document_db_pool", None)
        if pool is None or not await pool.health_check():
            checks["storage"] = "failed"
            error = "Document database is not reachable"

    response_data = {
        "status": "ready" if error is None else "not_ready",
        "service": SERVICE_NAME,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
    }

    if error is not None:
        response_data["error"] = error
        logger.warning("Readiness check failed", checks=checks, error=error)
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=response_data)

    return JSONResponse(status_code=status.HTTP_200_OK, content=response_data)
