"""
OpenAI LLM Provider

Implementation of BaseLLMProvider for OpenAI's chat models and any
OpenAI-compatible gateway reachable through ``base_url``.
"""

import logging
from collections.abc import AsyncIterator
from typing import Any

import openai
from openai import AsyncOpenAI

from querypilot.llm.base import BaseLLMProvider
from querypilot.llm.models import LLMRequest, LLMResponse, LLMStreamChunk, LLMUsage
from querypilot.models.errors import GenerationTransportError

logger = logging.getLogger(__name__)


class OpenAIProvider(BaseLLMProvider):
    """
    OpenAI LLM provider implementation.

    Uses the official openai Python SDK with async support. Structured output
    is requested through ``response_format`` JSON schemas (non-strict, so
    optional fields stay optional).
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        base_url: str | None = None,
        temperature: float = 0.1,
        top_p: float = 0.1,
        max_tokens: int = 4000,
        timeout: int = 60,
        structured_output: bool = True,
    ):
        """
        Initialize OpenAI provider.

        Args:
            api_key: OpenAI API key
            model: Default model to use
            base_url: Optional OpenAI-compatible endpoint
            temperature: Default temperature
            top_p: Default nucleus sampling cutoff
            max_tokens: Default max tokens
            timeout: Request timeout
            structured_output: Send JSON schemas as response_format
        """
        super().__init__(
            provider_name="openai",
            model=model,
            temperature=temperature,
            top_p=top_p,
            max_tokens=max_tokens,
            timeout=timeout,
            structured_output=structured_output,
        )
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=float(timeout))

    def _build_params(self, request: LLMRequest) -> dict[str, Any]:
        """Convert a request into chat.completions.create keyword arguments."""
        params: dict[str, Any] = {
            "model": request.model or self.model,
            "messages": [{"role": msg.role, "content": msg.content} for msg in request.messages],
            "temperature": request.temperature,
            "top_p": request.top_p,
            "max_tokens": request.max_tokens,
        }
        if request.response_format is not None:
            if self.structured_output:
                params["response_format"] = {
                    "type": "json_schema",
                    "json_schema": {
                        "name": request.response_format.name,
                        "schema": request.response_format.json_schema,
                        "strict": False,
                    },
                }
            else:
                params["response_format"] = {"type": "json_object"}
        params.update(request.metadata)
        return params

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """
        Generate completion using OpenAI API.

        Args:
            request: LLM request

        Returns:
            LLMResponse with generated content

        Raises:
            GenerationTransportError: On API errors and timeouts
        """
        request = self._apply_defaults(request)
        self._log_request(request)

        try:
            response = await self.client.chat.completions.create(**self._build_params(request))
        except openai.APITimeoutError as e:
            logger.error(f"OpenAI API timeout: {e}")
            raise GenerationTransportError("openai", f"OpenAI API timeout: {e}") from e
        except openai.APIError as e:
            logger.error(f"OpenAI API error: {e}")
            raise GenerationTransportError("openai", f"OpenAI API error: {e}") from e

        usage = None
        if response.usage is not None:
            usage = LLMUsage(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
                total_tokens=response.usage.total_tokens,
            )

        llm_response = LLMResponse(
            content=response.choices[0].message.content or "",
            model=response.model,
            usage=usage,
            finish_reason=self._map_finish_reason(response.choices[0].finish_reason),
            provider="openai",
            metadata={"id": response.id, "created": response.created},
        )

        self._log_response(llm_response)
        return llm_response

    async def stream(self, request: LLMRequest) -> AsyncIterator[LLMStreamChunk]:
        """
        Stream completion using OpenAI API.

        The trailing usage-only chunk (``stream_options.include_usage``) has no
        choices; it is yielded with ``usage`` set and empty content.

        Args:
            request: LLM request

        Yields:
            LLMStreamChunk with content chunks

        Raises:
            GenerationTransportError: On API errors or interrupted streams
        """
        request = self._apply_defaults(request)
        request.stream = True
        self._log_request(request)

        try:
            stream = await self.client.chat.completions.create(
                **self._build_params(request),
                stream=True,
                stream_options={"include_usage": True},
            )

            async for chunk in stream:
                if chunk.usage is not None:
                    usage = LLMUsage(
                        prompt_tokens=chunk.usage.prompt_tokens,
                        completion_tokens=chunk.usage.completion_tokens,
                        total_tokens=chunk.usage.total_tokens,
                    )
                    self._log_usage(usage)
                    yield LLMStreamChunk(usage=usage, metadata={"id": chunk.id})
                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                if choice.delta.content:
                    yield LLMStreamChunk(
                        content=choice.delta.content,
                        finish_reason=self._map_finish_reason(choice.finish_reason)
                        if choice.finish_reason
                        else None,
                        metadata={"id": chunk.id},
                    )

        except openai.APIError as e:
            logger.error(f"OpenAI streaming error: {e}")
            raise GenerationTransportError("openai", f"OpenAI streaming error: {e}") from e

    async def close(self) -> None:
        await self.client.close()

    def _map_finish_reason(self, reason: str | None) -> str:
        """Map OpenAI finish reason to our standard format."""
        if reason == "length":
            return "length"
        elif reason == "content_filter":
            return "content_filter"
        else:
            return "stop"
