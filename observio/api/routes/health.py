"""
Health Check Routes

FastAPI endpoints for service health and readiness checks.
"""

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from observio import __version__
from observio.connectors.base import ConnectorError
from observio.models.api import HealthResponse, ReadinessResponse

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
    - ClickHouse connector is initialized and answers SELECT 1

    Returns:
        200 OK if all checks pass
        503 Service Unavailable if any check fails
    """
    from observio.api.main import app_state

    checks: dict[str, bool] = {}
    all_ready = True

    try:
        if app_state["connector"] is not None:
            await app_state["connector"].execute("SELECT 1")
            checks["clickhouse"] = True
            logger.debug("ClickHouse check: OK")
        else:
            checks["clickhouse"] = False
            all_ready = False
            logger.warning("ClickHouse check: FAILED (connector not initialized)")
    except ConnectorError as e:
        checks["clickhouse"] = False
        all_ready = False
        logger.warning(f"ClickHouse check: FAILED ({e})")

    response_data = ReadinessResponse(
        status="ready" if all_ready else "not_ready",
        version=__version__,
        timestamp=datetime.now(UTC).isoformat(),
        checks=checks,
    )

    status_code = status.HTTP_200_OK if all_ready else status.HTTP_503_SERVICE_UNAVAILABLE

    return JSONResponse(
        status_code=status_code,
        content=response_data.model_dump(),
    )
