"""
Insights Routes

Streaming endpoint describing a tenant's data and the questions it can answer.
"""

import logging

from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from querypilot.api.streaming import ndjson_response
from querypilot.models.api import InsightsRequest
from querypilot.streaming.sink import NDJSONEventSink

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/insights", response_class=StreamingResponse)
async def insights(request: InsightsRequest) -> StreamingResponse:
    """Stream a Markdown overview of the tenant's data."""
    from querypilot.api.main import get_insights

    pipeline = get_insights()
    pipeline.registry.lookup_tenant(request.user_id)

    logger.info(
        f"Generating insights for '{request.user_id}'",
        extra={"tenant_id": request.user_id},
    )

    sink = NDJSONEventSink()
    return ndjson_response(
        lambda: pipeline.run(request.user_id, request.messages, sink), sink
    )
