"""
Base LLM Provider

Abstract base class defining the interface for all LLM providers.
Ensures consistent API across OpenAI, Anthropic and local model servers.
"""

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from querypilot.llm.models import LLMRequest, LLMResponse, LLMStreamChunk, LLMUsage

logger = logging.getLogger(__name__)


class BaseLLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    Providers translate SDK failures into GenerationTransportError so the
    pipeline never sees vendor exception types.

    Attributes:
        provider_name: Unique identifier for this provider
        model: Default model name
        temperature: Default sampling temperature
        top_p: Default nucleus sampling cutoff
        max_tokens: Default maximum tokens to generate
        timeout: Request timeout in seconds
        structured_output: Whether to send JSON schemas to the backend
    """

    def __init__(
        self,
        provider_name: str,
        model: str,
        temperature: float = 0.1,
        top_p: float = 0.1,
        max_tokens: int = 4000,
        timeout: int = 60,
        structured_output: bool = True,
    ):
        """
        Initialize base provider.

        Args:
            provider_name: Provider identifier (e.g., "openai", "anthropic")
            model: Default model to use
            temperature: Default temperature for responses
            top_p: Default nucleus sampling cutoff
            max_tokens: Default max tokens for responses
            timeout: Request timeout in seconds
            structured_output: Constrain responses with JSON schemas
        """
        self.provider_name = provider_name
        self.model = model
        self.temperature = temperature
        self.top_p = top_p
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.structured_output = structured_output

        logger.info(
            f"Initialized {provider_name} provider with model: {model}",
            extra={
                "provider": provider_name,
                "model": model,
                "temperature": temperature,
                "max_tokens": max_tokens,
            },
        )

    @abstractmethod
    async def generate(self, request: LLMRequest) -> LLMResponse:
        """
        Generate a completion from the LLM.

        Args:
            request: LLM request with messages and parameters

        Returns:
            LLMResponse with generated content and metadata

        Raises:
            GenerationTransportError: Backend unreachable or request rejected
        """
        pass  # pragma: no cover - abstract method

    @abstractmethod
    async def stream(self, request: LLMRequest) -> AsyncIterator[LLMStreamChunk]:
        """
        Stream a completion from the LLM.

        Yields chunks of generated text as they're produced.

        Args:
            request: LLM request with messages and parameters

        Yields:
            LLMStreamChunk: Chunks of generated text

        Raises:
            GenerationTransportError: Backend unreachable or stream interrupted
        """
        pass  # pragma: no cover - abstract method

    async def close(self) -> None:
        """Release network resources held by the provider."""

    def _apply_defaults(self, request: LLMRequest) -> LLMRequest:
        """
        Apply default values to request if not specified.

        Args:
            request: Original request

        Returns:
            Request with defaults applied
        """
        if request.temperature is None:
            request.temperature = self.temperature
        if request.top_p is None:
            request.top_p = self.top_p
        if request.max_tokens is None:
            request.max_tokens = self.max_tokens
        return request

    def _schema_instruction(self, request: LLMRequest) -> str | None:
        """Prompt suffix describing the output schema for providers without native support."""
        if request.response_format is None:
            return None
        schema = json.dumps(request.response_format.json_schema)
        return (
            "Respond with a single JSON object only, no prose and no code fences. "
            f"It must conform to this JSON schema:\n{schema}"
        )

    def _log_request(self, request: LLMRequest) -> None:
        """Log request details for debugging."""
        logger.debug(
            f"{self.provider_name} request",
            extra={
                "provider": self.provider_name,
                "message_count": len(request.messages),
                "temperature": request.temperature,
                "max_tokens": request.max_tokens,
                "stream": request.stream,
                "schema": request.response_format.name if request.response_format else None,
            },
        )

    def _log_response(self, response: LLMResponse) -> None:
        """Log response details for debugging."""
        usage = response.usage
        logger.debug(
            f"{self.provider_name} response",
            extra={
                "provider": self.provider_name,
                "model": response.model,
                "prompt_tokens": usage.prompt_tokens if usage else None,
                "completion_tokens": usage.completion_tokens if usage else None,
                "total_tokens": usage.total_tokens if usage else None,
                "finish_reason": response.finish_reason,
            },
        )

    def _log_usage(self, usage: LLMUsage) -> None:
        logger.info(
            f"{self.provider_name} usage: {usage.total_tokens} tokens",
            extra={
                "provider": self.provider_name,
                "prompt_tokens": usage.prompt_tokens,
                "completion_tokens": usage.completion_tokens,
                "total_tokens": usage.total_tokens,
            },
        )
