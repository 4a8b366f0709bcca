"""
LLM Provider Factory

Factory and registry for creating LLM provider instances based on configuration.
Supports OpenAI, Anthropic, and Local providers.
"""

import logging
from typing import Literal

from querypilot.config import LLMSettings
from querypilot.llm.anthropic import AnthropicProvider
from querypilot.llm.base import BaseLLMProvider
from querypilot.llm.local import LocalProvider
from querypilot.llm.openai import OpenAIProvider

logger = logging.getLogger(__name__)


class LLMProviderFactory:
    """
    Factory for creating LLM provider instances.

    Handles provider selection and configuration.
    """

    # Registry of available providers
    PROVIDERS = {
        "openai": OpenAIProvider,
        "anthropic": AnthropicProvider,
        "local": LocalProvider,
    }

    @staticmethod
    def create_provider(
        provider_type: Literal["openai", "anthropic", "local"],
        config: LLMSettings,
    ) -> BaseLLMProvider:
        """
        Create an LLM provider instance.

        Args:
            provider_type: Type of provider to create
            config: LLM configuration settings

        Returns:
            Configured provider instance

        Raises:
            ValueError: If provider type is unknown or required config is missing
        """
        if provider_type not in LLMProviderFactory.PROVIDERS:
            raise ValueError(
                f"Unknown provider type: {provider_type}. "
                f"Available providers: {list(LLMProviderFactory.PROVIDERS.keys())}"
            )

        logger.info(f"Creating {provider_type} provider", extra={"provider": provider_type})

        if provider_type == "openai":
            return LLMProviderFactory._create_openai(config)
        elif provider_type == "anthropic":
            return LLMProviderFactory._create_anthropic(config)
        elif provider_type == "local":
            return LLMProviderFactory._create_local(config)

        raise ValueError(f"Provider {provider_type} not implemented")  # pragma: no cover

    @staticmethod
    def create_default_provider(config: LLMSettings) -> BaseLLMProvider:
        """
        Create provider using default_provider from config.

        Args:
            config: LLM configuration

        Returns:
            Default provider instance
        """
        return LLMProviderFactory.create_provider(config.default_provider, config)

    @staticmethod
    def _create_openai(config: LLMSettings) -> OpenAIProvider:
        """Create OpenAI provider instance."""
        if not config.openai_api_key:
            raise ValueError("OpenAI API key is required but not configured")

        return OpenAIProvider(
            api_key=config.openai_api_key,
            model=config.openai_model,
            base_url=config.openai_base_url,
            temperature=config.temperature,
            top_p=config.top_p,
            max_tokens=config.max_tokens,
            timeout=config.timeout,
            structured_output=config.structured_output,
        )

    @staticmethod
    def _create_anthropic(config: LLMSettings) -> AnthropicProvider:
        """Create Anthropic provider instance."""
        if not config.anthropic_api_key:
            raise ValueError("Anthropic API key is required but not configured")

        return AnthropicProvider(
            api_key=config.anthropic_api_key,
            model=config.anthropic_model,
            temperature=config.temperature,
            top_p=config.top_p,
            max_tokens=config.max_tokens,
            timeout=config.timeout,
            structured_output=config.structured_output,
        )

    @staticmethod
    def _create_local(config: LLMSettings) -> LocalProvider:
        """Create Local provider instance."""
        return LocalProvider(
            base_url=config.local_base_url,
            model=config.local_model,
            temperature=config.temperature,
            top_p=config.top_p,
            max_tokens=config.max_tokens,
            timeout=config.timeout,
            structured_output=config.structured_output,
        )
