"""
API Request/Response Models

Service-level models for FastAPI endpoints.
"""

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Body of every error response."""

    error: str = Field(..., description="Error message")


class HealthResponse(BaseModel):
    """Response model for health check endpoints."""

    status: str = Field(..., description="Service status: 'healthy' or 'unhealthy'")
    version: str = Field(..., description="API version")
    timestamp: str = Field(..., description="Current timestamp (ISO 8601)")


class ReadinessResponse(BaseModel):
    """Response model for readiness check endpoint."""

    status: str = Field(..., description="Readiness status: 'ready' or 'not_ready'")
    version: str = Field(..., description="API version")
    timestamp: str = Field(..., description="Current timestamp (ISO 8601)")
    checks: dict[str, bool] = Field(..., description="Individual readiness checks")

    model_config = {
        "json_schema_extra": {
            "example": {
                "status": "ready",
                "version": "0.1.0",
                "timestamp": "2026-01-16T12:00:00Z",
                "checks": {"clickhouse": True},
            }
        }
    }
