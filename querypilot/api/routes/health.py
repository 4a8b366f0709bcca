"""
Health Check Routes

FastAPI endpoints for service health and readiness checks.
"""

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from querypilot import __version__
from querypilot.models.api import HealthResponse, ReadinessResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=HealthResponse, status_code=status.HTTP_200_OK)
async def health() -> HealthResponse:
    """
    Basic liveness check.

    Returns 200 OK if the service is running.
    This endpoint should always succeed if the application is alive.

    Returns:
        HealthResponse with status and version
    """
    return HealthResponse(
        status="healthy",
        version=__version__,
        timestamp=datetime.now(UTC).isoformat(),
    )


@router.get("/ready", status_code=status.HTTP_200_OK)
async def readiness() -> JSONResponse:
    """
    Readiness check for service dependencies.

    Checks:
    - Tenant registry is loaded and has at least one tenant
    - Query pipeline is initialized
    - Insights pipeline is initialized

    Returns:
        200 OK if all checks pass
        503 Service Unavailable if any check fails
    """
    from querypilot.api.main import app_state

    checks: dict[str, bool] = {}

    registry = app_state["registry"]
    checks["registry"] = registry is not None and bool(registry.tenant_ids())
    if checks["registry"]:
        logger.debug(f"Registry check: OK ({len(registry.tenant_ids())} tenants)")
    else:
        logger.warning("Registry check: FAILED (not loaded or empty)")

    checks["pipeline"] = app_state["pipeline"] is not None
    if not checks["pipeline"]:
        logger.warning("Pipeline check: FAILED (not initialized)")

    checks["insights"] = app_state["insights"] is not None
    if not checks["insights"]:
        logger.warning("Insights check: FAILED (not initialized)")

    all_ready = all(checks.values())
    response_data = ReadinessResponse(
        status="ready" if all_ready else "not_ready",
        version=__version__,
        timestamp=datetime.now(UTC).isoformat(),
        checks=checks,
    )

    status_code = status.HTTP_200_OK if all_ready else status.HTTP_503_SERVICE_UNAVAILABLE

    return JSONResponse(
        status_code=status_code,
        content=response_data.to_wire(),
    )
