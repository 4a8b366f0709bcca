"""
Streaming Helpers

Bridges a pipeline run writing to an NDJSONEventSink and a StreamingResponse
reading from it.
"""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Callable, Coroutine
from typing import Any

from fastapi.responses import StreamingResponse

from querypilot.streaming.sink import NDJSONEventSink

logger = logging.getLogger(__name__)

NDJSON_MEDIA_TYPE = "application/x-ndjson"


async def stream_run(
    start_run: Callable[[], Coroutine[Any, Any, Any]],
    sink: NDJSONEventSink,
) -> AsyncIterator[str]:
    """
    Run a pipeline in its own task and yield the sink's lines.

    The task starts when the response body is first iterated. When the client
    disconnects the generator is closed and the still-running task is
    cancelled, so no further stage runs and held connections are released.
    """
    task = asyncio.create_task(start_run())
    # A run that dies without a terminal event must still end the stream.
    task.add_done_callback(lambda _: sink.close())
    try:
        async for line in sink.lines():
            yield line
        await task
    finally:
        if not task.done():
            logger.info("Client disconnected; cancelling pipeline run")
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task


def ndjson_response(
    start_run: Callable[[], Coroutine[Any, Any, Any]],
    sink: NDJSONEventSink,
) -> StreamingResponse:
    """StreamingResponse carrying one StreamEvent per line."""
    return StreamingResponse(
        stream_run(start_run, sink),
        media_type=NDJSON_MEDIA_TYPE,
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
