"""
Local LLM Provider

Implementation of BaseLLMProvider for local model servers.
Supports Ollama, vLLM, llama.cpp server and any endpoint exposing the
OpenAI-compatible ``/v1/chat/completions`` API.
"""

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from querypilot.llm.base import BaseLLMProvider
from querypilot.llm.models import LLMRequest, LLMResponse, LLMStreamChunk, LLMUsage
from querypilot.models.errors import GenerationTransportError

logger = logging.getLogger(__name__)


class LocalProvider(BaseLLMProvider):
    """
    Local LLM provider implementation.

    Talks to the OpenAI-compatible chat completions endpoint over httpx and
    parses server-sent events when streaming.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "llama3.1:8b",
        temperature: float = 0.1,
        top_p: float = 0.1,
        max_tokens: int = 4000,
        timeout: int = 60,
        structured_output: bool = True,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize local provider.

        Args:
            base_url: Base URL for local model server
            model: Model name (e.g., "llama3.1:8b" for Ollama)
            temperature: Default temperature
            top_p: Default nucleus sampling cutoff
            max_tokens: Default max tokens
            timeout: Request timeout
            structured_output: Send JSON schemas as response_format
            client: Optional preconfigured httpx client
        """
        super().__init__(
            provider_name="local",
            model=model,
            temperature=temperature,
            top_p=top_p,
            max_tokens=max_tokens,
            timeout=timeout,
            structured_output=structured_output,
        )
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=float(timeout))

    @property
    def completions_url(self) -> str:
        return f"{self.base_url}/v1/chat/completions"

    def _build_payload(self, request: LLMRequest, stream: bool = False) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": request.model or self.model,
            "messages": [{"role": msg.role, "content": msg.content} for msg in request.messages],
            "temperature": request.temperature,
            "top_p": request.top_p,
            "max_tokens": request.max_tokens,
            "stream": stream,
        }
        if request.response_format is not None and self.structured_output:
            payload["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": request.response_format.name,
                    "schema": request.response_format.json_schema,
                },
            }
        payload.update(request.metadata)
        return payload

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """Generate completion using the local model server."""
        request = self._apply_defaults(request)
        self._log_request(request)

        try:
            response = await self.client.post(self.completions_url, json=self._build_payload(request))
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            logger.error(f"Local model server error: {e}")
            raise GenerationTransportError("local", f"Local model server error: {e}") from e

        choice = (data.get("choices") or [{}])[0]
        raw_usage = data.get("usage") or {}
        prompt_tokens = raw_usage.get("prompt_tokens", 0)
        completion_tokens = raw_usage.get("completion_tokens", 0)

        llm_response = LLMResponse(
            content=choice.get("message", {}).get("content") or "",
            model=data.get("model", self.model),
            usage=LLMUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
            finish_reason="length" if choice.get("finish_reason") == "length" else "stop",
            provider="local",
            metadata={"base_url": self.base_url},
        )

        self._log_response(llm_response)
        return llm_response

    async def stream(self, request: LLMRequest) -> AsyncIterator[LLMStreamChunk]:
        """Stream completion using server-sent events."""
        request = self._apply_defaults(request)
        request.stream = True
        self._log_request(request)

        try:
            async with self.client.stream(
                "POST",
                self.completions_url,
                json=self._build_payload(request, stream=True),
            ) as response:
                response.raise_for_status()
                async for line in response.aiter_lines():
                    if not line.startswith("data: "):
                        continue
                    data = line[len("data: ") :].strip()
                    if data == "[DONE]":
                        break
                    try:
                        chunk_data = json.loads(data)
                    except json.JSONDecodeError:
                        logger.warning(f"Skipping malformed stream line from {self.base_url}")
                        continue
                    choices = chunk_data.get("choices") or []
                    if choices and (content := choices[0].get("delta", {}).get("content")):
                        yield LLMStreamChunk(content=content, finish_reason=None)
        except httpx.HTTPError as e:
            logger.error(f"Local model streaming error: {e}")
            raise GenerationTransportError("local", f"Local model streaming error: {e}") from e

    async def close(self) -> None:
        await self.client.aclose()
