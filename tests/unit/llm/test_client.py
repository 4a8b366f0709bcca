"""
Unit tests for GenerationClient.

Tests buffered and streamed structured generation against a scripted provider.
"""

import json

import pytest

from querypilot.llm.client import GenerationClient, strip_code_fences
from querypilot.llm.models import LLMMessage
from querypilot.models.errors import GenerationTransportError, MalformedGenerationError
from querypilot.models.pipeline import ErrorExplanation, ParsedIntent, RunSummary
from querypilot.streaming.events import EventType
from querypilot.streaming.sink import CollectingEventSink

MESSAGES = [
    LLMMessage(role="system", content="You are helpful."),
    LLMMessage(role="user", content="Top customers"),
]

INTENT = {
    "userQuery": "Top customers",
    "queryIntent": "Rank customers by revenue",
    "keySubjects": [
        {"subject": "revenue", "weight": 6, "context": "ranking metric"},
        {"subject": "customers", "weight": 9, "context": "entity"},
    ],
    "primaryFocus": "customers",
    "contextInfluence": None,
    "summary": "Customers ranked by revenue",
    "reasoning": 'The user wants a "top" list.',
}


class TestStripCodeFences:
    def test_strips_json_fence(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_leaves_plain_json(self):
        assert strip_code_fences('  {"a": 1}  ') == '{"a": 1}'


class TestGenerate:
    """Test buffered generation."""

    @pytest.mark.asyncio
    async def test_parses_output_shape(self, scripted_provider):
        scripted_provider.add("RunSummary", {"summary": "All good"})
        client = GenerationClient(scripted_provider)

        result = await client.generate(MESSAGES, RunSummary)

        assert result == RunSummary(summary="All good")
        request = scripted_provider.requests[0]
        assert request.response_format.name == "RunSummary"
        assert request.stream is False

    @pytest.mark.asyncio
    async def test_raw_text_without_shape(self, scripted_provider):
        scripted_provider.add("text", "# Overview\nYour data covers orders.")
        client = GenerationClient(scripted_provider)

        result = await client.generate(MESSAGES)

        assert result == "# Overview\nYour data covers orders."
        assert scripted_provider.requests[0].response_format is None

    @pytest.mark.asyncio
    async def test_fenced_response_parses(self, scripted_provider):
        scripted_provider.add("RunSummary", '```json\n{"summary": "fenced"}\n```')
        client = GenerationClient(scripted_provider)

        result = await client.generate(MESSAGES, RunSummary)

        assert result.summary == "fenced"

    @pytest.mark.asyncio
    async def test_invalid_response_is_malformed(self, scripted_provider):
        scripted_provider.add("RunSummary", '{"wrong": true}')
        client = GenerationClient(scripted_provider)

        with pytest.raises(MalformedGenerationError) as exc_info:
            await client.generate(MESSAGES, RunSummary)

        assert exc_info.value.recoverable
        assert exc_info.value.stage == "RunSummary"

    @pytest.mark.asyncio
    async def test_empty_response_is_malformed(self, scripted_provider):
        scripted_provider.add("RunSummary", "   ")
        client = GenerationClient(scripted_provider)

        with pytest.raises(MalformedGenerationError, match="Empty response"):
            await client.generate(MESSAGES, RunSummary)


class TestGenerateStreamed:
    """Test streamed generation with field extraction."""

    @pytest.mark.asyncio
    async def test_streams_field_and_returns_parsed(self, scripted_provider):
        scripted_provider.add("ParsedIntent", INTENT)
        client = GenerationClient(scripted_provider)
        sink = CollectingEventSink()

        intent = await client.generate_streamed(
            MESSAGES, ParsedIntent, field_to_stream="reasoning", sink=sink
        )

        assert "".join(sink.texts(EventType.CONTENT)) == 'The user wants a "top" list.'
        assert all(event.type == EventType.CONTENT for event in sink.events)
        assert intent.primary_focus == "customers"
        assert [subject.subject for subject in intent.key_subjects] == ["customers", "revenue"]
        assert scripted_provider.requests[0].stream is True

    @pytest.mark.asyncio
    async def test_content_before_parse_error(self, scripted_provider):
        """Content already streamed stays emitted when the document fails to parse."""
        scripted_provider.add("ErrorExplanation", '{"errorReason": "Column missing", "extra"')
        client = GenerationClient(scripted_provider)
        sink = CollectingEventSink()

        with pytest.raises(MalformedGenerationError):
            await client.generate_streamed(
                MESSAGES, ErrorExplanation, field_to_stream="errorReason", sink=sink
            )

        assert "".join(sink.texts(EventType.CONTENT)) == "Column missing"

    @pytest.mark.asyncio
    async def test_missing_field_emits_nothing(self, scripted_provider):
        scripted_provider.add("RunSummary", json.dumps({"summary": "done"}))
        client = GenerationClient(scripted_provider)
        sink = CollectingEventSink()

        result = await client.generate_streamed(
            MESSAGES, RunSummary, field_to_stream="reasoning", sink=sink
        )

        assert result.summary == "done"
        assert sink.events == []

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self, scripted_provider, transport_error):
        scripted_provider.add("RunSummary", transport_error)
        client = GenerationClient(scripted_provider)

        with pytest.raises(GenerationTransportError):
            await client.generate_streamed(
                MESSAGES, RunSummary, field_to_stream="summary", sink=CollectingEventSink()
            )
