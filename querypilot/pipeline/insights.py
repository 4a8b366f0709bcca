"""
Insights Pipeline

Streams a free-form Markdown overview of a tenant's data: what it covers and
which questions it can answer. The response is not structured, so every token
is forwarded as a ``content`` event without field extraction.
"""

import logging

from querypilot.llm.base import BaseLLMProvider
from querypilot.llm.models import LLMMessage, LLMRequest
from querypilot.models.errors import SinkClosedError, describe_error
from querypilot.models.pipeline import ConversationMessage
from querypilot.prompts.loader import PromptLoader
from querypilot.registry.tenants import TenantRegistry
from querypilot.streaming.events import StreamEvent
from querypilot.streaming.sink import EventSink

logger = logging.getLogger(__name__)


class InsightsPipeline:
    """
    Single-stage pipeline for the insights endpoint.

    Event sequence:
        status "Generating summary..." → content* → status "Summary generated"
        → partialResult {"summary"} → result {"summary", "error": null}

    Failures end with status "Error: ..." and error {"summary": null, "error"}.
    """

    def __init__(
        self,
        provider: BaseLLMProvider,
        registry: TenantRegistry,
        prompts: PromptLoader | None = None,
    ):
        self.provider = provider
        self.registry = registry
        self.prompts = prompts or PromptLoader()

    async def run(
        self, tenant_id: str, messages: list[ConversationMessage], sink: EventSink
    ) -> str | None:
        """
        Stream the overview for a tenant.

        Args:
            tenant_id: Tenant identifier
            messages: Conversation so far (may be empty)
            sink: Destination of the events

        Returns:
            The complete Markdown overview, or None on failure
        """
        try:
            tenant = self.registry.lookup_tenant(tenant_id)
            sink.emit(StreamEvent.status("Generating summary..."))

            conversation = [
                LLMMessage(role=message.role, content=message.content)
                for message in messages
                if message.content.strip()
            ]
            if not conversation:
                conversation = [
                    LLMMessage(role="user", content="Give me an overview of my data.")
                ]
            system = self.prompts.render(
                "pipeline/insights.md",
                schema=tenant.schema_prompt(),
                has_conversation=bool(messages),
            )
            request = LLMRequest(
                messages=[LLMMessage(role="system", content=system), *conversation],
                stream=True,
            )

            parts: list[str] = []
            async for chunk in self.provider.stream(request):
                if chunk.content:
                    parts.append(chunk.content)
                    sink.emit(StreamEvent.content(chunk.content))
            summary = "".join(parts)

            sink.emit(StreamEvent.status("Summary generated"))
            sink.emit(StreamEvent.partial_result({"summary": summary}))
            sink.emit(StreamEvent.result({"summary": summary, "error": None}))
        except SinkClosedError:
            raise
        except Exception as e:
            message = describe_error(e)
            logger.error(
                f"Insights generation failed: {message}",
                extra={"tenant_id": tenant_id},
                exc_info=True,
            )
            sink.emit(StreamEvent.status(f"Error: {message}"))
            sink.emit(StreamEvent.error({"summary": None, "error": message}))
            return None

        logger.info(
            f"Insights generated for '{tenant_id}'",
            extra={"tenant_id": tenant_id, "characters": len(summary)},
        )
        return summary
