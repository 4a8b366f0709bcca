"""
Anthropic LLM Provider

Implementation of BaseLLMProvider for Anthropic's Claude models.
The Messages API has no response_format, so the output schema is appended to
the system prompt instead.
"""

import logging
from collections.abc import AsyncIterator
from typing import Any

import anthropic
from anthropic import AsyncAnthropic

from querypilot.llm.base import BaseLLMProvider
from querypilot.llm.models import LLMRequest, LLMResponse, LLMStreamChunk, LLMUsage
from querypilot.models.errors import GenerationTransportError

logger = logging.getLogger(__name__)


class AnthropicProvider(BaseLLMProvider):
    """
    Anthropic (Claude) LLM provider implementation.

    Uses the anthropic Python SDK.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "claude-3-5-sonnet-20241022",
        temperature: float = 0.1,
        top_p: float = 0.1,
        max_tokens: int = 4000,
        timeout: int = 60,
        structured_output: bool = True,
    ):
        """
        Initialize Anthropic provider.

        Args:
            api_key: Anthropic API key
            model: Default model to use
            temperature: Default temperature
            top_p: Default nucleus sampling cutoff
            max_tokens: Default max tokens
            timeout: Request timeout
            structured_output: Append JSON schemas to the system prompt
        """
        super().__init__(
            provider_name="anthropic",
            model=model,
            temperature=temperature,
            top_p=top_p,
            max_tokens=max_tokens,
            timeout=timeout,
            structured_output=structured_output,
        )
        self.client = AsyncAnthropic(api_key=api_key, timeout=float(timeout))

    def _build_params(self, request: LLMRequest) -> dict[str, Any]:
        # Anthropic requires the system prompt outside the message list
        system_parts = []
        messages = []
        for msg in request.messages:
            if msg.role == "system":
                system_parts.append(msg.content)
            else:
                messages.append({"role": msg.role, "content": msg.content})

        instruction = self._schema_instruction(request) if self.structured_output else None
        if instruction:
            system_parts.append(instruction)

        params: dict[str, Any] = {
            "model": request.model or self.model,
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
            "messages": messages,
        }
        if system_parts:
            params["system"] = "\n\n".join(system_parts)
        params.update(request.metadata)
        return params

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """Generate completion using Anthropic API."""
        request = self._apply_defaults(request)
        self._log_request(request)

        try:
            response = await self.client.messages.create(**self._build_params(request))
        except anthropic.APIError as e:
            logger.error(f"Anthropic API error: {e}")
            raise GenerationTransportError("anthropic", f"Anthropic API error: {e}") from e

        text = "".join(block.text for block in response.content if block.type == "text")
        llm_response = LLMResponse(
            content=text,
            model=response.model,
            usage=LLMUsage(
                prompt_tokens=response.usage.input_tokens,
                completion_tokens=response.usage.output_tokens,
                total_tokens=response.usage.input_tokens + response.usage.output_tokens,
            ),
            finish_reason=self._map_finish_reason(response.stop_reason),
            provider="anthropic",
            metadata={"id": response.id},
        )

        self._log_response(llm_response)
        return llm_response

    async def stream(self, request: LLMRequest) -> AsyncIterator[LLMStreamChunk]:
        """Stream completion using Anthropic API."""
        request = self._apply_defaults(request)
        request.stream = True
        self._log_request(request)

        try:
            async with self.client.messages.stream(**self._build_params(request)) as stream:
                async for text in stream.text_stream:
                    yield LLMStreamChunk(content=text, finish_reason=None)
        except anthropic.APIError as e:
            logger.error(f"Anthropic streaming error: {e}")
            raise GenerationTransportError("anthropic", f"Anthropic streaming error: {e}") from e

    async def close(self) -> None:
        await self.client.close()

    def _map_finish_reason(self, reason: str | None) -> str:
        """Map Anthropic stop reason to standard format."""
        if reason == "max_tokens":
            return "length"
        else:
            return "stop"
