"""
API Request/Response Models

Pydantic models for FastAPI endpoints.
"""

from pydantic import Field

from querypilot.models.pipeline import ConversationMessage, PipelineRequest, WireModel


class QueryRequest(PipelineRequest):
    """Request model for the streaming query endpoint."""

    model_config = {
        "json_schema_extra": {
            "example": {
                "userId": "acme",
                "messages": [
                    {"role": "user", "content": "Top 5 customers by revenue"},
                    {"role": "assistant", "content": "Acme Corp leads with $1.2M."},
                    {"role": "user", "content": "Only for 2024"},
                ],
            }
        }
    }


class InsightsRequest(WireModel):
    """Request model for the insights endpoint."""

    user_id: str = Field(..., min_length=1, description="Tenant identifier")
    messages: list[ConversationMessage] = Field(
        default_factory=list, description="Conversation so far (may be empty)"
    )


class HealthResponse(WireModel):
    """Response model for health check endpoints."""

    status: str = Field(..., description="Service status: 'healthy' or 'unhealthy'")
    version: str = Field(..., description="API version")
    timestamp: str = Field(..., description="Current timestamp (ISO 8601)")


class ReadinessResponse(WireModel):
    """Response model for readiness check endpoint."""

    status: str = Field(..., description="Readiness status: 'ready' or 'not_ready'")
    version: str = Field(..., description="API version")
    timestamp: str = Field(..., description="Current timestamp (ISO 8601)")
    checks: dict[str, bool] = Field(
        ..., description="Individual readiness checks (pipeline, registry)"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "status": "ready",
                "version": "0.1.0",
                "timestamp": "2026-01-16T12:00:00Z",
                "checks": {"pipeline": True, "registry": True},
            }
        }
    }


class ErrorResponse(WireModel):
    """Error response returned before a stream starts."""

    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Human-readable error message")
