"""
Pipeline Models

Pydantic models for everything a pipeline run produces: the inbound request,
the parsed intent, query attempts, execution outcomes, chart plans and the
final result.

Wire-facing models serialize with camelCase keys (``sqlQuery``, ``rowCount``,
``finalSummary``) and accept either casing on input. The same models double as
the structured-output schemas handed to the text-generation backend, so the
camelCase names are also the JSON keys the backend is asked to produce.
"""

import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

ChartColor = Literal[
    "var(--chart-1)",
    "var(--chart-2)",
    "var(--chart-3)",
    "var(--chart-4)",
    "var(--chart-5)",
]

CHART_KINDS = {"bar", "line", "area"}
GRAPH_KINDS = {"pie", "radar", "radial"}


class WireModel(BaseModel):
    """Base model with camelCase wire names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """Dump to a JSON-safe dict using wire (camelCase) keys."""
        return self.model_dump(by_alias=True, mode="json")


# ============================================================================
# Request
# ============================================================================


class ConversationMessage(WireModel):
    """Single turn of the conversation sent by the caller."""

    role: Literal["user", "assistant", "system"]
    content: str

    model_config = ConfigDict(frozen=True)


class PipelineRequest(WireModel):
    """
    Inbound pipeline request.

    The last message is the new user question; earlier messages are prior
    turns. Immutable once a run starts.
    """

    user_id: str = Field(..., min_length=1, description="Tenant identifier")
    messages: list[ConversationMessage] = Field(
        ..., min_length=1, description="Prior turns followed by the new question"
    )

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def check_last_message(self) -> "PipelineRequest":
        """The newest message must come from the user."""
        if self.messages[-1].role != "user":
            raise ValueError("The last message must be the user's question")
        return self

    @property
    def user_query(self) -> str:
        return self.messages[-1].content

    @property
    def history(self) -> list[ConversationMessage]:
        return list(self.messages[:-1])

    @property
    def previous_summary(self) -> str | None:
        """
        Summary carried by the previous assistant turn, if any.

        The second-to-last message holds the previous run's final summary. It may
        be plain text or a JSON object with a ``finalSummary``/``summary`` key.
        """
        if len(self.messages) < 2:
            return None
        previous = self.messages[-2]
        if previous.role != "assistant" or not previous.content.strip():
            return None
        try:
            payload = json.loads(previous.content)
        except json.JSONDecodeError:
            return previous.content
        if isinstance(payload, dict):
            for key in ("finalSummary", "summary"):
                value = payload.get(key)
                if isinstance(value, str) and value.strip():
                    return value
            return None
        return previous.content


# ============================================================================
# Stage results
# ============================================================================


class KeySubject(WireModel):
    """Subject mentioned in the question with its importance."""

    subject: str = Field(..., description="Important subject/entity from the query")
    weight: float = Field(
        ..., ge=0, le=10, description="Importance weight (0-10, 10 being most important)"
    )
    context: str = Field(..., description="Why this subject is important in the query")


class ParsedIntent(WireModel):
    """Interpretation of the user's question."""

    user_query: str = Field(..., description="The original user query")
    query_intent: str = Field(
        ..., description="What the user is trying to accomplish in simple terms"
    )
    key_subjects: list[KeySubject] = Field(
        default_factory=list,
        description="Key subjects identified in the query with importance weights",
    )
    primary_focus: str = Field(..., description="The main thing the user cares about most")
    context_influence: str | None = Field(
        None,
        description="How previous conversation context affects understanding of this query",
    )
    summary: str = Field(..., description="Brief summary of what the user is asking for")
    reasoning: str = Field(
        default="", description="Step-by-step reasoning behind this interpretation"
    )

    @field_validator("key_subjects")
    @classmethod
    def rank_subjects(cls, v: list[KeySubject]) -> list[KeySubject]:
        """Order subjects from most to least important."""
        return sorted(v, key=lambda subject: subject.weight, reverse=True)


class SqlGeneration(WireModel):
    """Structured output of the query generation stage."""

    sql_query: str | None = Field(
        None, description="The generated SQL query (null if error occurred)"
    )
    is_partial: bool | None = Field(
        None, description="Whether the SQL query is incomplete or partial"
    )
    partial_reason: str | None = Field(
        None, description="Reason why the query is partial, if applicable"
    )
    error: str | None = Field(
        None,
        description=(
            "Error message when the query cannot be generated due to schema "
            "mismatch or incompatible request"
        ),
    )
    suggested_questions: list[str] = Field(
        default_factory=list,
        description="Follow-up questions the user could ask next",
    )
    reasoning: str = Field(
        default="", description="Reasoning behind the generated query"
    )

    @field_validator("sql_query", "error", "partial_reason")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            return None
        return v


class QueryAttempt(SqlGeneration):
    """One query generation within the bounded retry loop."""

    attempt: int = Field(..., ge=1, description="Attempt number (1-based)")

    @property
    def is_semantic_failure(self) -> bool:
        """The backend declined to write a query for this question."""
        return self.error is not None and self.sql_query is None

    @property
    def is_executable(self) -> bool:
        return self.sql_query is not None

    @classmethod
    def from_generation(cls, generation: SqlGeneration, attempt: int) -> "QueryAttempt":
        return cls(attempt=attempt, **generation.model_dump())


class ExecutionOutcome(WireModel):
    """Result of running one attempt's query."""

    rows: list[dict[str, Any]] | None = Field(None, description="Result rows")
    row_count: int = Field(default=0, ge=0, description="Number of rows returned")
    error: str | None = Field(None, description="Execution error, if any")
    columns: list[str] = Field(default_factory=list, description="Result column names")
    execution_time_ms: float | None = Field(None, description="Execution time in ms")

    @property
    def succeeded(self) -> bool:
        """Sole success predicate of the retry loop."""
        return self.rows is not None and self.row_count > 0

    @classmethod
    def failure(cls, error: str) -> "ExecutionOutcome":
        return cls(rows=None, row_count=0, error=error)


class SeriesStyle(WireModel):
    """Display settings for one data series."""

    label: str = Field(..., description="Display label for the data series")
    color: ChartColor = Field(..., description="Series color")


class ChartComponent(WireModel):
    """A drawn component (bar, line, slice...) bound to a result column."""

    data_key: str = Field(..., description="Result column used for the component's values")
    fill: ChartColor = Field(..., description="Fill color of the component")
    category_key: str | None = Field(
        None, description="Result column holding category labels (pie charts)"
    )


class AxisBinding(WireModel):
    data_key: str = Field(..., description="Result column used for the axis")


class ChartVisual(WireModel):
    """One visualization specification."""

    type: Literal["chart", "graph"] = Field(..., description="Chart category identifier")
    chart_type: Literal["bar", "line", "area", "pie", "radar", "radial"] = Field(
        ..., description="Specific chart type"
    )
    data_series: dict[str, SeriesStyle] = Field(
        ...,
        min_length=1,
        description="Series configuration keyed by result column name",
    )
    components: list[ChartComponent] = Field(
        ..., min_length=1, description="Components drawn for this visual"
    )
    x_axis: AxisBinding | None = Field(None, description="X axis binding (charts only)")
    y_axis: AxisBinding | None = Field(None, description="Y axis binding (charts only)")

    @model_validator(mode="after")
    def check_kind(self) -> "ChartVisual":
        """Charts need both axes; the category follows the chart type."""
        if self.chart_type in CHART_KINDS:
            self.type = "chart"
            if self.x_axis is None or self.y_axis is None:
                raise ValueError(f"{self.chart_type} charts require xAxis and yAxis bindings")
        else:
            self.type = "graph"
        return self

    def referenced_keys(self) -> set[str]:
        """Every result column this visual binds to."""
        keys = set(self.data_series)
        for component in self.components:
            keys.add(component.data_key)
            if component.category_key:
                keys.add(component.category_key)
        for axis in (self.x_axis, self.y_axis):
            if axis is not None:
                keys.add(axis.data_key)
        return keys


class ChartPlan(WireModel):
    """Visualization plan for a successful query result."""

    visuals: list[ChartVisual] = Field(
        ...,
        min_length=1,
        description=(
            "One or more chart configurations; several are used when the data "
            "contains unrelated groups that need separate visualizations"
        ),
    )
    reasoning: str = Field(default="", description="Why these visuals fit the data")

    def unmatched_keys(self, columns: list[str]) -> dict[int, list[str]]:
        """Map visual index to the referenced keys missing from ``columns``."""
        available = set(columns)
        missing: dict[int, list[str]] = {}
        for index, visual in enumerate(self.visuals):
            unknown = sorted(visual.referenced_keys() - available)
            if unknown:
                missing[index] = unknown
        return missing


class ErrorExplanation(WireModel):
    """User-facing explanation of why every attempt failed."""

    error_reason: str = Field(
        ..., description="Markdown explanation of the failure for a non-technical user"
    )


class RunSummary(WireModel):
    """Natural-language synthesis of the whole run."""

    summary: str = Field(..., description="Markdown summary of the conversation turn")


class FinalResult(WireModel):
    """Payload of the terminal event."""

    data: list[dict[str, Any]] | None = None
    chart_config: list[ChartVisual] | None = None
    sql_query: str | None = None
    error: str | None = None
    final_summary: str | None = None
