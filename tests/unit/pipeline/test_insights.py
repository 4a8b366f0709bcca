"""
Unit tests for the InsightsPipeline.
"""

import asyncio

import pytest

from querypilot.models.pipeline import ConversationMessage
from querypilot.pipeline.insights import InsightsPipeline
from querypilot.streaming.events import EventType
from querypilot.streaming.sink import CollectingEventSink

OVERVIEW = "## Your data\n\nCustomers and their orders.\n\n- Who ordered the most?"


@pytest.fixture
def insights(scripted_provider, tenant_registry) -> InsightsPipeline:
    return InsightsPipeline(scripted_provider, tenant_registry)


class TestInsightsRun:
    """Test the insights event sequence."""

    @pytest.mark.asyncio
    async def test_event_sequence(self, insights, scripted_provider):
        scripted_provider.add("text", OVERVIEW)
        sink = CollectingEventSink()

        summary = await insights.run("acme", [], sink)

        assert summary == OVERVIEW
        types = [event.type for event in sink.events]
        assert types[0] == EventType.STATUS
        assert types[-3:] == [EventType.STATUS, EventType.PARTIAL_RESULT, EventType.RESULT]
        assert set(types[1:-3]) == {EventType.CONTENT}

        assert sink.texts(EventType.STATUS) == ["Generating summary...", "Summary generated"]
        assert "".join(sink.texts(EventType.CONTENT)) == OVERVIEW
        assert sink.of_type(EventType.PARTIAL_RESULT)[0].payload() == {"summary": OVERVIEW}
        assert sink.terminal.payload() == {"summary": OVERVIEW, "error": None}
        assert sink.closed

    @pytest.mark.asyncio
    async def test_empty_conversation_uses_default_question(self, insights, scripted_provider):
        scripted_provider.add("text", OVERVIEW)

        await insights.run("acme", [], CollectingEventSink())

        request = scripted_provider.requests[0]
        assert request.response_format is None
        assert request.messages[0].role == "system"
        assert "customers" in request.messages[0].content
        assert request.messages[1].content == "Give me an overview of my data."

    @pytest.mark.asyncio
    async def test_conversation_is_forwarded(self, insights, scripted_provider):
        scripted_provider.add("text", OVERVIEW)
        messages = [
            ConversationMessage(role="user", content="What is in here?"),
            ConversationMessage(role="assistant", content="Orders and customers."),
            ConversationMessage(role="user", content="What about revenue?"),
        ]

        await insights.run("acme", messages, CollectingEventSink())

        sent = scripted_provider.requests[0].messages
        assert [m.content for m in sent[1:]] == [m.content for m in messages]
        assert "build on it" in sent[0].content

    @pytest.mark.asyncio
    async def test_unknown_tenant(self, insights, scripted_provider):
        sink = CollectingEventSink()

        summary = await insights.run("globex", [], sink)

        assert summary is None
        assert scripted_provider.requests == []
        assert sink.terminal.type == EventType.ERROR
        assert sink.terminal.payload() == {
            "summary": None,
            "error": "User schema or database URL not found for 'globex'",
        }
        assert sink.texts(EventType.STATUS)[-1].startswith("Error: ")

    @pytest.mark.asyncio
    async def test_transport_failure(self, insights, scripted_provider, transport_error):
        scripted_provider.add("text", transport_error)
        sink = CollectingEventSink()

        await insights.run("acme", [], sink)

        assert sink.texts(EventType.STATUS) == [
            "Generating summary...",
            "Error: Connection reset by peer",
        ]
        assert sink.terminal.payload() == {"summary": None, "error": "Connection reset by peer"}
        assert [event for event in sink.events if event.is_terminal] == [sink.events[-1]]

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, insights, scripted_provider):
        async def hang(request):
            await asyncio.sleep(5)
            yield None

        scripted_provider.stream = hang
        sink = CollectingEventSink()

        task = asyncio.create_task(insights.run("acme", [], sink))
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert sink.terminal is None
