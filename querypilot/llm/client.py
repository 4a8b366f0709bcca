"""
Generation Client

Structured generation on top of a text-generation provider.

Two modes:
    generate():          buffered; returns the parsed result (or raw text)
    generate_streamed(): every token chunk also passes through an
                         IncrementalFieldExtractor so one field of the
                         document reaches the event sink while it is written

Parsing failures raise MalformedGenerationError; provider transport failures
arrive as GenerationTransportError. The client never retries; retry policy
belongs to the pipeline.

Usage:
    client = GenerationClient(provider)
    intent = await client.generate_streamed(
        messages, ParsedIntent, field_to_stream="reasoning", sink=sink
    )
"""

import logging
import re
import time
from typing import TypeVar, overload

from pydantic import BaseModel, ValidationError

from querypilot.llm.base import BaseLLMProvider
from querypilot.llm.models import LLMMessage, LLMRequest, ResponseFormat
from querypilot.models.errors import MalformedGenerationError
from querypilot.streaming.events import EventType, StreamEvent
from querypilot.streaming.field_extractor import IncrementalFieldExtractor
from querypilot.streaming.sink import EventSink

logger = logging.getLogger(__name__)

OutputT = TypeVar("OutputT", bound=BaseModel)

_CODE_FENCE = re.compile(r"^\s*```(?:json|JSON)?\s*\n?(.*?)\n?\s*```\s*$", re.DOTALL)


def strip_code_fences(text: str) -> str:
    """Remove a markdown code fence wrapped around a JSON document."""
    match = _CODE_FENCE.match(text)
    if match:
        return match.group(1)
    return text.strip()


class GenerationClient:
    """
    Buffered and streamed structured generation.

    Args:
        provider: Text-generation backend
    """

    def __init__(self, provider: BaseLLMProvider):
        self.provider = provider

    @overload
    async def generate(self, messages: list[LLMMessage], output_shape: None = None) -> str: ...

    @overload
    async def generate(
        self, messages: list[LLMMessage], output_shape: type[OutputT]
    ) -> OutputT: ...

    async def generate(self, messages, output_shape=None):
        """
        Generate a complete response and parse it.

        Args:
            messages: Prompt messages
            output_shape: Pydantic model the response must parse as (None = raw text)

        Returns:
            Parsed output_shape instance, or the raw text without a shape

        Raises:
            MalformedGenerationError: Response does not parse as output_shape
            GenerationTransportError: Provider failure
        """
        request = self._build_request(messages, output_shape)
        started = time.perf_counter()
        response = await self.provider.generate(request)
        self._log_completion(output_shape, response.content, started)
        return self._parse(response.content, output_shape)

    @overload
    async def generate_streamed(
        self,
        messages: list[LLMMessage],
        output_shape: None,
        field_to_stream: str,
        sink: EventSink,
    ) -> str: ...

    @overload
    async def generate_streamed(
        self,
        messages: list[LLMMessage],
        output_shape: type[OutputT],
        field_to_stream: str,
        sink: EventSink,
    ) -> OutputT: ...

    async def generate_streamed(self, messages, output_shape, field_to_stream, sink):
        """
        Stream a response, forwarding one field's content to the sink as it arrives.

        Args:
            messages: Prompt messages
            output_shape: Pydantic model the response must parse as
            field_to_stream: Top-level string field surfaced as ``content`` events
            sink: Event sink receiving the ``content`` events

        Returns:
            Parsed output_shape instance, available only after the stream ends

        Raises:
            MalformedGenerationError: Accumulated text does not parse
            GenerationTransportError: Provider failure or interrupted stream
        """

        def forward(text: str, kind: str) -> None:
            sink.emit(StreamEvent(type=EventType(kind), text=text))

        extractor = IncrementalFieldExtractor(field_to_stream, forward)
        request = self._build_request(messages, output_shape)
        request.stream = True
        started = time.perf_counter()

        async for chunk in self.provider.stream(request):
            if chunk.content:
                extractor.process_chunk(chunk.content)

        document = extractor.full_document()
        if not extractor.is_complete():
            logger.debug(
                f"Field '{field_to_stream}' never completed in streamed output",
                extra={"field": field_to_stream, "state": extractor.state.value},
            )
        self._log_completion(output_shape, document, started)
        return self._parse(document, output_shape)

    def _build_request(
        self, messages: list[LLMMessage], output_shape: type[BaseModel] | None
    ) -> LLMRequest:
        return LLMRequest(
            messages=messages,
            response_format=ResponseFormat.from_model(output_shape) if output_shape else None,
        )

    def _parse(self, text: str, output_shape: type[BaseModel] | None):
        if output_shape is None:
            return text

        shape = output_shape.__name__
        document = strip_code_fences(text)
        if not document:
            raise MalformedGenerationError(shape, f"Empty response for {shape}")
        try:
            return output_shape.model_validate_json(document)
        except ValidationError as e:
            logger.warning(
                f"Response did not parse as {shape}: {e.error_count()} error(s)",
                extra={"shape": shape, "raw": document[:500]},
            )
            raise MalformedGenerationError(
                shape,
                f"Response did not parse as {shape}: {e.errors()[0]['msg']}",
                context={"raw": document[:500], "errors": e.error_count()},
            ) from e

    def _log_completion(
        self, output_shape: type[BaseModel] | None, text: str, started: float
    ) -> None:
        logger.debug(
            f"Generation finished in {(time.perf_counter() - started) * 1000:.1f}ms",
            extra={
                "provider": self.provider.provider_name,
                "shape": output_shape.__name__ if output_shape else None,
                "characters": len(text),
            },
        )
