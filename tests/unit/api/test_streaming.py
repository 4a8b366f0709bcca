"""
Unit tests for the NDJSON streaming bridge.
"""

import asyncio
import json

import pytest

from querypilot.api.streaming import stream_run
from querypilot.streaming.events import StreamEvent
from querypilot.streaming.sink import NDJSONEventSink


@pytest.mark.asyncio
async def test_lines_end_with_the_run():
    sink = NDJSONEventSink()

    async def run():
        sink.emit(StreamEvent.status("Working"))
        sink.emit(StreamEvent.result({"ok": True}))

    lines = [line async for line in stream_run(run, sink)]

    assert [json.loads(line)["type"] for line in lines] == ["status", "result"]


@pytest.mark.asyncio
async def test_closing_the_stream_cancels_the_run():
    sink = NDJSONEventSink()
    cancelled = asyncio.Event()

    async def run():
        sink.emit(StreamEvent.status("Executing Query"))
        try:
            await asyncio.sleep(30)
        except asyncio.CancelledError:
            cancelled.set()
            raise

    stream = stream_run(run, sink)
    first = await stream.__anext__()
    await stream.aclose()

    assert json.loads(first)["text"] == "Executing Query"
    assert cancelled.is_set()
