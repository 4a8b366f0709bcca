"""
Pipeline Errors

Exception taxonomy shared by the generation client, the registry and the
query pipeline.

Recoverable failures (failed executions, zero-row results) are never raised;
they travel as ExecutionOutcome data. Only the errors below cross stage
boundaries.
"""

from typing import Any


class QueryPilotError(Exception):
    """
    Base exception for pipeline errors.

    Attributes:
        stage: Name of the component or stage that raised the error
        message: Error description
        recoverable: Whether the pipeline may retry the failed step
        context: Additional context for debugging
    """

    def __init__(
        self,
        stage: str,
        message: str,
        recoverable: bool = False,
        context: dict[str, Any] | None = None,
    ):
        self.stage = stage
        self.message = message
        self.recoverable = recoverable
        self.context = context or {}
        super().__init__(f"[{stage}] {message}")

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/API responses."""
        return {
            "stage": self.stage,
            "message": self.message,
            "recoverable": self.recoverable,
            "context": self.context,
            "type": self.__class__.__name__,
        }


class GenerationFailure(QueryPilotError):
    """The text-generation backend did not produce a usable response."""

    def __init__(
        self,
        stage: str,
        message: str,
        recoverable: bool = False,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(stage, message, recoverable=recoverable, context=context)


class MalformedGenerationError(GenerationFailure):
    """Accumulated output did not parse against the requested schema (transient)."""

    def __init__(self, stage: str, message: str, context: dict[str, Any] | None = None):
        super().__init__(stage, message, recoverable=True, context=context)


class TransportError(QueryPilotError):
    """Backend unreachable or stream interrupted; aborts the run."""

    def __init__(self, stage: str, message: str, context: dict[str, Any] | None = None):
        super().__init__(stage, message, recoverable=False, context=context)


class GenerationTransportError(GenerationFailure, TransportError):
    """Transport failure raised while talking to the generation backend."""

    def __init__(self, stage: str, message: str, context: dict[str, Any] | None = None):
        QueryPilotError.__init__(self, stage, message, recoverable=False, context=context)


class IntentParseFailure(QueryPilotError):
    """The backend could not produce a valid parsed-intent structure (fatal)."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__("parse_intent", message, recoverable=False, context=context)


class TenantNotFoundError(QueryPilotError):
    """No schema or connection target is registered for the tenant."""

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__(
            "registry",
            f"User schema or database URL not found for '{tenant_id}'",
            recoverable=False,
            context={"tenant_id": tenant_id},
        )


class SinkClosedError(RuntimeError):
    """An event was emitted after the terminal event closed the stream."""


def describe_error(exc: BaseException) -> str:
    """Return the user-facing message for an exception."""
    if isinstance(exc, QueryPilotError):
        return exc.message
    return str(exc) or exc.__class__.__name__
