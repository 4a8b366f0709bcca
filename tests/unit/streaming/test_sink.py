"""
Unit tests for stream events and event sinks.
"""

import json

import pytest

from querypilot.models.errors import SinkClosedError
from querypilot.streaming.events import EventType, StreamEvent
from querypilot.streaming.sink import CollectingEventSink, NDJSONEventSink


class TestStreamEvent:
    """Test event construction and serialization."""

    def test_status_line(self):
        line = StreamEvent.status("Generating Query").to_line()

        assert line.endswith("\n")
        assert json.loads(line) == {"type": "status", "text": "Generating Query"}

    def test_structured_payload_is_double_encoded(self):
        """partialResult text is a JSON string, not a nested object."""
        event = StreamEvent.partial_result({"sqlResult": {"sqlQuery": "SELECT 1"}})
        decoded = json.loads(event.to_line())

        assert decoded["type"] == "partialResult"
        assert isinstance(decoded["text"], str)
        assert json.loads(decoded["text"]) == {"sqlResult": {"sqlQuery": "SELECT 1"}}
        assert event.payload() == {"sqlResult": {"sqlQuery": "SELECT 1"}}

    def test_terminal_types(self):
        assert StreamEvent.result({}).is_terminal
        assert StreamEvent.error({}).is_terminal
        assert not StreamEvent.status("x").is_terminal
        assert not StreamEvent.content("x").is_terminal
        assert not StreamEvent.partial_result({}).is_terminal


class TestCollectingEventSink:
    """Test ordering and closing behavior."""

    def test_keeps_emission_order(self):
        sink = CollectingEventSink()
        sink.status("one")
        sink.emit(StreamEvent.content("two"))
        sink.status("three")

        assert [event.text for event in sink.events] == ["one", "two", "three"]
        assert sink.texts(EventType.STATUS) == ["one", "three"]

    def test_closes_after_terminal_event(self):
        sink = CollectingEventSink()
        sink.emit(StreamEvent.result({"data": None}))

        assert sink.closed
        assert sink.terminal.type == EventType.RESULT

    def test_emit_after_close_raises(self):
        sink = CollectingEventSink()
        sink.emit(StreamEvent.error({"error": "boom"}))

        with pytest.raises(SinkClosedError):
            sink.status("late")
        assert len(sink.events) == 1

    def test_terminal_is_none_without_terminal_event(self):
        sink = CollectingEventSink()
        sink.status("working")

        assert sink.terminal is None


class TestNDJSONEventSink:
    """Test the queue-backed sink used by the HTTP layer."""

    @pytest.mark.asyncio
    async def test_lines_end_after_terminal_event(self):
        sink = NDJSONEventSink()
        sink.status("Analyzing the Query")
        sink.emit(StreamEvent.content("Hel"))
        sink.emit(StreamEvent.result({"finalSummary": "done"}))

        lines = [line async for line in sink.lines()]

        assert [json.loads(line)["type"] for line in lines] == ["status", "content", "result"]
        assert all(line.endswith("\n") for line in lines)

    @pytest.mark.asyncio
    async def test_lines_end_after_close(self):
        sink = NDJSONEventSink()
        sink.status("partial")
        sink.close()

        lines = [line async for line in sink.lines()]

        assert len(lines) == 1
        with pytest.raises(SinkClosedError):
            sink.status("late")

    def test_close_is_idempotent(self):
        sink = NDJSONEventSink()
        sink.close()
        sink.close()

        assert sink.closed
