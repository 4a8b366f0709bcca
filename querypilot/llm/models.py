"""
LLM Request and Response Models

Pydantic models for LLM provider interactions.
Provider-agnostic models shared by the OpenAI, Anthropic and local providers.
"""

from typing import Any, Literal

from pydantic import BaseModel, Field


class LLMMessage(BaseModel):
    """Single message in an LLM conversation."""

    role: Literal["system", "user", "assistant"] = Field(..., description="Message role")
    content: str = Field(..., description="Message content", min_length=1)


class ResponseFormat(BaseModel):
    """JSON schema the response is constrained to."""

    name: str = Field(..., description="Schema name reported to the provider")
    json_schema: dict[str, Any] = Field(..., description="JSON schema of the expected output")

    @classmethod
    def from_model(cls, model: type[BaseModel]) -> "ResponseFormat":
        """Build the response format for a pydantic output model (wire aliases)."""
        return cls(name=model.__name__, json_schema=model.model_json_schema(by_alias=True))


class LLMRequest(BaseModel):
    """Request to an LLM provider."""

    messages: list[LLMMessage] = Field(..., description="Conversation messages", min_length=1)
    temperature: float | None = Field(
        None, ge=0.0, le=2.0, description="Sampling temperature (overrides default)"
    )
    top_p: float | None = Field(
        None, gt=0.0, le=1.0, description="Nucleus sampling cutoff (overrides default)"
    )
    max_tokens: int | None = Field(
        None, gt=0, description="Maximum tokens to generate (overrides default)"
    )
    stream: bool = Field(default=False, description="Whether to stream the response")
    model: str | None = Field(None, description="Specific model to use (overrides default)")
    response_format: ResponseFormat | None = Field(
        None, description="Structured output schema, if any"
    )
    metadata: dict[str, Any] = Field(
        default_factory=dict, description="Additional provider-specific parameters"
    )


class LLMUsage(BaseModel):
    """Token usage information."""

    prompt_tokens: int = Field(..., ge=0, description="Number of tokens in the prompt")
    completion_tokens: int = Field(..., ge=0, description="Number of tokens in the completion")
    total_tokens: int = Field(..., ge=0, description="Total tokens used")


class LLMResponse(BaseModel):
    """Response from an LLM provider."""

    content: str = Field(..., description="Generated text content")
    model: str = Field(..., description="Model that generated the response")
    usage: LLMUsage | None = Field(None, description="Token usage information")
    finish_reason: Literal["stop", "length", "content_filter", "error"] = Field(
        ..., description="Reason the generation stopped"
    )
    provider: str = Field(..., description="Provider that handled the request")
    metadata: dict[str, Any] = Field(
        default_factory=dict, description="Additional provider-specific response data"
    )


class LLMStreamChunk(BaseModel):
    """Streaming response chunk from an LLM provider."""

    content: str = Field(default="", description="Chunk of generated text")
    finish_reason: Literal["stop", "length", "content_filter", "error"] | None = Field(
        None, description="Reason if this is the final chunk"
    )
    usage: LLMUsage | None = Field(
        None, description="Token usage, present on the usage-only trailing chunk"
    )
    metadata: dict[str, Any] = Field(default_factory=dict, description="Additional chunk metadata")
