"""
Query Routes

Streaming endpoint answering a natural-language question over the tenant's data.
"""

import logging

from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from querypilot.api.streaming import ndjson_response
from querypilot.models.api import QueryRequest
from querypilot.streaming.sink import NDJSONEventSink

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/query", response_class=StreamingResponse)
async def query(request: QueryRequest) -> StreamingResponse:
    """
    Answer a question as an NDJSON stream of pipeline events.

    The tenant is resolved before the stream opens, so an unknown tenant is a
    plain 400 response instead of an in-stream error.

    Args:
        request: Tenant id and conversation (last message is the question)

    Returns:
        application/x-ndjson stream of ``{"type", "text"}`` lines

    Raises:
        TenantNotFoundError: Rendered as 400 by the application handler
        HTTPException: 503 if the pipeline is not initialized
    """
    from querypilot.api.main import get_pipeline

    pipeline = get_pipeline()
    pipeline.registry.lookup_tenant(request.user_id)

    logger.info(
        f"Processing query for '{request.user_id}': {request.user_query[:100]}",
        extra={"tenant_id": request.user_id, "messages": len(request.messages)},
    )

    sink = NDJSONEventSink()
    return ndjson_response(lambda: pipeline.run(request, sink), sink)
