"""
LLM Provider Module

Multi-provider LLM abstraction layer supporting OpenAI, Anthropic, and Local models,
plus the structured GenerationClient used by the pipelines.

Usage:
    from querypilot.llm import GenerationClient, LLMProviderFactory, LLMMessage
    from querypilot.config import get_settings

    config = get_settings()
    provider = LLMProviderFactory.create_default_provider(config.llm)
    client = GenerationClient(provider)

    text = await client.generate([LLMMessage(role="user", content="Hello!")])
"""

from querypilot.llm.anthropic import AnthropicProvider
from querypilot.llm.base import BaseLLMProvider
from querypilot.llm.client import GenerationClient, strip_code_fences
from querypilot.llm.factory import LLMProviderFactory
from querypilot.llm.local import LocalProvider
from querypilot.llm.models import (
    LLMMessage,
    LLMRequest,
    LLMResponse,
    LLMStreamChunk,
    LLMUsage,
    ResponseFormat,
)
from querypilot.llm.openai import OpenAIProvider

__all__ = [
    # Base classes
    "BaseLLMProvider",
    # Models
    "LLMMessage",
    "LLMRequest",
    "LLMResponse",
    "LLMStreamChunk",
    "LLMUsage",
    "ResponseFormat",
    # Client
    "GenerationClient",
    "strip_code_fences",
    # Factory
    "LLMProviderFactory",
    # Providers
    "OpenAIProvider",
    "AnthropicProvider",
    "LocalProvider",
]
