"""
QueryPilot Models Module

Pydantic models for type-safe data validation throughout the application.

Available Models:
    Pipeline Models:
        - PipelineRequest: Inbound request (tenant id + conversation)
        - ParsedIntent: Interpretation of the user's question
        - QueryAttempt: One query generation within the retry loop
        - ExecutionOutcome: Result of running an attempt's query
        - ChartPlan / ChartVisual: Visualization plan
        - ErrorExplanation: Explanation after exhausted retries
        - RunSummary: Final natural-language synthesis
        - FinalResult: Terminal event payload

    Errors:
        - QueryPilotError: Base exception
        - GenerationFailure, MalformedGenerationError, GenerationTransportError
        - IntentParseFailure, TenantNotFoundError, SinkClosedError

Usage:
    from querypilot.models import PipelineRequest, QueryAttempt
    from querypilot.models.errors import MalformedGenerationError
"""

from querypilot.models.errors import (
    GenerationFailure,
    GenerationTransportError,
    IntentParseFailure,
    MalformedGenerationError,
    QueryPilotError,
    SinkClosedError,
    TenantNotFoundError,
    TransportError,
    describe_error,
)
from querypilot.models.pipeline import (
    ChartPlan,
    ChartVisual,
    ConversationMessage,
    ErrorExplanation,
    ExecutionOutcome,
    FinalResult,
    KeySubject,
    ParsedIntent,
    PipelineRequest,
    QueryAttempt,
    RunSummary,
    SqlGeneration,
    WireModel,
)

__all__ = [
    # Pipeline
    "ChartPlan",
    "ChartVisual",
    "ConversationMessage",
    "ErrorExplanation",
    "ExecutionOutcome",
    "FinalResult",
    "KeySubject",
    "ParsedIntent",
    "PipelineRequest",
    "QueryAttempt",
    "RunSummary",
    "SqlGeneration",
    "WireModel",
    # Errors
    "GenerationFailure",
    "GenerationTransportError",
    "IntentParseFailure",
    "MalformedGenerationError",
    "QueryPilotError",
    "SinkClosedError",
    "TenantNotFoundError",
    "TransportError",
    "describe_error",
]
