"""
QueryPilot Pipeline Orchestrator

LangGraph-based pipeline answering one natural-language data question:
- parse_intent → generate_query → execute_query
- Bounded retry loop: failed executions send the run back to generate_query
- explain_failure once the attempt budget is spent
- generate_chart_plan after a successful execution
- summarize closes every modeled path with the terminal ``result`` event

Progress is streamed through an EventSink while the run is in flight. Every
run writes exactly one terminal event, unless it is cancelled, in which case
it writes none.
"""

import asyncio
import json
import logging
import time
from typing import Any, TypedDict

from langgraph.graph import END, StateGraph

from querypilot.config import Settings, get_settings
from querypilot.connectors.executor import QueryExecutor
from querypilot.llm.base import BaseLLMProvider
from querypilot.llm.client import GenerationClient
from querypilot.llm.factory import LLMProviderFactory
from querypilot.llm.models import LLMMessage
from querypilot.models.errors import (
    IntentParseFailure,
    MalformedGenerationError,
    SinkClosedError,
    describe_error,
)
from querypilot.models.pipeline import (
    ChartPlan,
    ErrorExplanation,
    ExecutionOutcome,
    FinalResult,
    ParsedIntent,
    PipelineRequest,
    QueryAttempt,
    RunSummary,
    SqlGeneration,
)
from querypilot.pipeline.retry import AttemptRecord, failure_context, retry_status, should_retry
from querypilot.prompts.loader import PromptLoader
from querypilot.registry.tenants import TenantRecord, TenantRegistry, YamlTenantRegistry
from querypilot.streaming.events import StreamEvent
from querypilot.streaming.sink import EventSink

logger = logging.getLogger(__name__)


# ============================================================================
# Pipeline State Schema
# ============================================================================


class QueryPipelineState(TypedDict, total=False):
    """
    State schema for one pipeline run.

    Owned by a single run; nothing in it is shared between requests.
    """

    # Input
    request: PipelineRequest
    tenant: TenantRecord
    sink: EventSink
    previous_summary: str | None

    # Intent
    intent: ParsedIntent | None

    # Retry loop
    attempts: list[AttemptRecord]
    current_attempt: QueryAttempt | None
    semantic_failure: bool
    generation_unusable: bool

    # Terminal stages
    error_explanation: str | None
    chart_plan: ChartPlan | None
    final_result: FinalResult | None


# ============================================================================
# Query Pipeline
# ============================================================================


class QueryPipeline:
    """
    LangGraph state machine for the query endpoint.

    Flow:
        1. parse_intent: Interpret the question (streams ``reasoning``)
        2. generate_query: Write a query (streams ``reasoning``)
        3. execute_query: Run it; failures loop back to generate_query
        4. explain_failure: After max_attempts failures (streams ``errorReason``)
        5. generate_chart_plan: After a success (streams ``reasoning``)
        6. summarize: Final synthesis (streams ``summary``) and terminal result

    Usage:
        pipeline = create_pipeline()
        sink = CollectingEventSink()
        result = await pipeline.run(request, sink)
    """

    def __init__(
        self,
        client: GenerationClient,
        executor: QueryExecutor,
        registry: TenantRegistry,
        prompts: PromptLoader | None = None,
        max_attempts: int = 3,
        run_deadline_seconds: float = 60.0,
        include_failure_context: bool = True,
    ):
        """
        Initialize pipeline with dependencies.

        Args:
            client: Structured generation client
            executor: Query executor for tenant data stores
            registry: Read-only tenant registry
            prompts: Prompt loader (default: bundled prompts)
            max_attempts: Query generation + execution attempts per run
            run_deadline_seconds: Upper bound on a run's duration
            include_failure_context: Show previous failed attempts to regeneration
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.client = client
        self.executor = executor
        self.registry = registry
        self.prompts = prompts or PromptLoader()
        self.max_attempts = max_attempts
        self.run_deadline_seconds = run_deadline_seconds
        self.include_failure_context = include_failure_context

        self.graph = self._build_graph()

        logger.info(
            "QueryPipeline initialized",
            extra={"max_attempts": max_attempts, "deadline_seconds": run_deadline_seconds},
        )

    def _build_graph(self):
        """
        Build LangGraph state machine.

        Returns:
            Compiled LangGraph
        """
        workflow = StateGraph(QueryPipelineState)

        workflow.add_node("parse_intent", self._run_parse_intent)
        workflow.add_node("generate_query", self._run_generate_query)
        workflow.add_node("execute_query", self._run_execute_query)
        workflow.add_node("explain_failure", self._run_explain_failure)
        workflow.add_node("generate_chart_plan", self._run_generate_chart_plan)
        workflow.add_node("summarize", self._run_summarize)

        workflow.set_entry_point("parse_intent")
        workflow.add_edge("parse_intent", "generate_query")

        workflow.add_conditional_edges(
            "generate_query",
            self._route_after_generation,
            {
                "execute": "execute_query",
                "retry": "generate_query",  # Unusable generation consumed the attempt
                "explain": "explain_failure",
                "summarize": "summarize",  # Semantic failure: nothing to execute
            },
        )
        workflow.add_conditional_edges(
            "execute_query",
            self._route_after_execution,
            {
                "chart": "generate_chart_plan",
                "retry": "generate_query",
                "explain": "explain_failure",
            },
        )
        workflow.add_edge("explain_failure", "summarize")
        workflow.add_edge("generate_chart_plan", "summarize")
        workflow.add_edge("summarize", END)

        return workflow.compile()

    # ========================================================================
    # Stage Nodes
    # ========================================================================

    async def _run_parse_intent(self, state: QueryPipelineState) -> QueryPipelineState:
        """Interpret the user's question."""
        sink = state["sink"]
        request = state["request"]
        sink.emit(StreamEvent.status("Analyzing the Query"))

        messages = self._messages(
            "pipeline/query_parsing.md",
            request,
            schema=state["tenant"].schema_prompt(),
            previous_summary=state.get("previous_summary"),
            user_query=request.user_query,
        )
        try:
            intent = await self.client.generate_streamed(
                messages, ParsedIntent, field_to_stream="reasoning", sink=sink
            )
        except MalformedGenerationError as e:
            raise IntentParseFailure(
                f"Could not interpret the question: {e.message}", context=e.context
            ) from e

        state["intent"] = intent
        sink.emit(StreamEvent.partial_result({"userQueryParsed": intent.to_wire()}))
        sink.emit(StreamEvent.status("Query analysis complete"))

        logger.info(
            f"Intent parsed: {intent.primary_focus}",
            extra={"tenant_id": request.user_id, "subjects": len(intent.key_subjects)},
        )
        return state

    async def _run_generate_query(self, state: QueryPipelineState) -> QueryPipelineState:
        """Generate the next query attempt."""
        sink = state["sink"]
        request = state["request"]
        tenant = state["tenant"]
        attempts = state["attempts"]
        attempt_number = len(attempts) + 1
        state["generation_unusable"] = False

        if attempt_number > 1:
            sink.emit(StreamEvent.status(retry_status(attempt_number, self.max_attempts)))
        sink.emit(StreamEvent.status("Generating Query"))

        failed = failure_context(attempts) if self.include_failure_context else []
        messages = self._messages(
            "pipeline/sql_generation.md",
            request,
            parsed_query=state["intent"].model_dump_json(by_alias=True, exclude={"reasoning"}),
            schema=tenant.schema_prompt(),
            dialect=tenant.dialect,
            previous_summary=state.get("previous_summary"),
            failed_attempts=failed,
        )

        try:
            generation = await self.client.generate_streamed(
                messages, SqlGeneration, field_to_stream="reasoning", sink=sink
            )
        except MalformedGenerationError as e:
            logger.warning(
                f"Attempt {attempt_number}: generated query could not be parsed: {e.message}",
                extra={"tenant_id": request.user_id, "attempt": attempt_number},
            )
            self._record_unusable_attempt(
                state,
                QueryAttempt(attempt=attempt_number),
                f"The generated query could not be parsed: {e.message}",
            )
            return state

        attempt = QueryAttempt.from_generation(generation, attempt_number)
        state["current_attempt"] = attempt
        sink.emit(StreamEvent.partial_result({"sqlResult": attempt.to_wire()}))

        if attempt.is_semantic_failure:
            logger.info(
                f"Attempt {attempt_number}: query declined: {attempt.error}",
                extra={"tenant_id": request.user_id, "attempt": attempt_number},
            )
            state["semantic_failure"] = True
            return state

        if not attempt.is_executable:
            self._record_unusable_attempt(state, attempt, "No query was generated.")
            return state

        sink.emit(StreamEvent.status("Query generated"))
        return state

    async def _run_execute_query(self, state: QueryPipelineState) -> QueryPipelineState:
        """Execute the current attempt's query."""
        sink = state["sink"]
        attempt = state["current_attempt"]
        sink.emit(StreamEvent.status("Executing Query"))

        outcome = await self.executor.execute(
            attempt.sql_query, state["tenant"].connection_target.get_secret_value()
        )
        state["attempts"].append(AttemptRecord(attempt=attempt, outcome=outcome))
        sink.emit(StreamEvent.partial_result({"dbResult": outcome.to_wire()}))

        if outcome.succeeded:
            sink.emit(StreamEvent.status(f"Data Found: Retrieved {outcome.row_count} rows."))
        else:
            logger.warning(
                f"Attempt {attempt.attempt} failed: {outcome.error or 'no rows returned'}",
                extra={"tenant_id": state["request"].user_id, "attempt": attempt.attempt},
            )
            sink.emit(StreamEvent.status("Query failed"))
        return state

    async def _run_explain_failure(self, state: QueryPipelineState) -> QueryPipelineState:
        """Explain why every attempt failed."""
        sink = state["sink"]
        request = state["request"]
        last = state["attempts"][-1]
        sink.emit(StreamEvent.status("Analyzing failure"))

        messages = self._messages(
            "pipeline/error_explanation.md",
            request,
            failed_query=last.attempt.sql_query,
            error_details=last.outcome.error or "The query ran but returned no rows.",
            previous_summary=state.get("previous_summary"),
        )
        explanation = await self.client.generate_streamed(
            messages, ErrorExplanation, field_to_stream="errorReason", sink=sink
        )
        state["error_explanation"] = explanation.error_reason
        return state

    async def _run_generate_chart_plan(self, state: QueryPipelineState) -> QueryPipelineState:
        """Plan visuals for the successful result."""
        sink = state["sink"]
        request = state["request"]
        last = state["attempts"][-1]
        sink.emit(StreamEvent.status("Generating visuals"))

        messages = self._messages(
            "pipeline/chart_config.md",
            request,
            sql_query=last.attempt.sql_query,
            columns=last.outcome.columns,
            sample_rows=json.dumps((last.outcome.rows or [])[:5]),
            query_intent=state["intent"].query_intent,
            previous_summary=state.get("previous_summary"),
        )
        plan = await self.client.generate_streamed(
            messages, ChartPlan, field_to_stream="reasoning", sink=sink
        )

        unmatched = plan.unmatched_keys(last.outcome.columns)
        if unmatched:
            logger.warning(
                f"Chart plan references unknown columns: {unmatched}",
                extra={"tenant_id": request.user_id, "columns": last.outcome.columns},
            )

        state["chart_plan"] = plan
        sink.emit(StreamEvent.partial_result({"chartResult": plan.to_wire()}))
        sink.emit(StreamEvent.status("Visuals Generated"))
        return state

    async def _run_summarize(self, state: QueryPipelineState) -> QueryPipelineState:
        """Summarize the run and write the terminal result."""
        sink = state["sink"]
        request = state["request"]
        sink.emit(StreamEvent.status("Summarizing"))

        result = self._build_result(state)
        messages = self._messages(
            "pipeline/summarization.md",
            request,
            user_query=request.user_query,
            parsed_query=state["intent"].model_dump_json(by_alias=True, exclude={"reasoning"}),
            sql_query=result.sql_query,
            db_result=self._describe_outcome(state),
            chart_config=json.dumps([visual.to_wire() for visual in result.chart_config])
            if result.chart_config
            else None,
            error_explanation=state.get("error_explanation"),
        )
        summary = await self.client.generate_streamed(
            messages, RunSummary, field_to_stream="summary", sink=sink
        )

        result.final_summary = summary.summary
        state["final_result"] = result
        sink.emit(StreamEvent.result(result.to_wire()))
        return state

    # ========================================================================
    # Routing
    # ========================================================================

    def _route_after_generation(self, state: QueryPipelineState) -> str:
        """
        Determine what follows query generation.

        Returns:
            "execute": The attempt has a query
            "summarize": The backend declined the question
            "retry": The attempt was unusable and budget remains
            "explain": The attempt was unusable and budget is spent
        """
        if state.get("semantic_failure"):
            return "summarize"

        if state.get("generation_unusable"):
            return self._retry_or_explain(state["attempts"][-1])
        return "execute"

    def _route_after_execution(self, state: QueryPipelineState) -> str:
        """
        Determine what follows execution.

        Returns:
            "chart": Rows were found
            "retry": The attempt failed and budget remains
            "explain": Max attempts exceeded
        """
        last = state["attempts"][-1]
        if last.outcome.succeeded:
            return "chart"
        return self._retry_or_explain(last)

    def _retry_or_explain(self, record: AttemptRecord) -> str:
        if should_retry(record.outcome, record.attempt.attempt, self.max_attempts):
            logger.info(
                f"Retrying query generation (attempt {record.attempt.attempt + 1}/{self.max_attempts})"
            )
            return "retry"
        logger.error(f"Max attempts ({self.max_attempts}) exceeded")
        return "explain"

    # ========================================================================
    # Helpers
    # ========================================================================

    def _messages(
        self, prompt_path: str, request: PipelineRequest, **variables: Any
    ) -> list[LLMMessage]:
        """System prompt, then the earlier turns, then the new question."""
        history = [
            LLMMessage(role=message.role, content=message.content)
            for message in request.history
            if message.content.strip()
        ]
        return [
            LLMMessage(role="system", content=self.prompts.render(prompt_path, **variables)),
            *history,
            LLMMessage(role="user", content=request.user_query),
        ]

    def _record_unusable_attempt(
        self, state: QueryPipelineState, attempt: QueryAttempt, error: str
    ) -> None:
        """Count an attempt that produced nothing executable as a failure."""
        state["current_attempt"] = attempt
        state["attempts"].append(
            AttemptRecord(attempt=attempt, outcome=ExecutionOutcome.failure(error))
        )
        state["generation_unusable"] = True
        state["sink"].emit(StreamEvent.status("Query failed"))

    def _describe_outcome(self, state: QueryPipelineState) -> str | None:
        attempts = state["attempts"]
        if not attempts:
            return None
        outcome = attempts[-1].outcome
        return f"Rows: {outcome.row_count}, Error: {outcome.error or 'None'}"

    def _build_result(self, state: QueryPipelineState) -> FinalResult:
        """Terminal payload for the path the run took."""
        if state.get("semantic_failure"):
            return FinalResult(error=state["current_attempt"].error)

        last = state["attempts"][-1]
        if last.outcome.succeeded:
            plan = state.get("chart_plan")
            return FinalResult(
                data=last.outcome.rows,
                chart_config=plan.visuals if plan else None,
                sql_query=last.attempt.sql_query,
                error=None,
            )

        return FinalResult(
            sql_query=last.attempt.sql_query,
            error=state.get("error_explanation") or last.outcome.error,
        )

    def _emit_failure(self, sink: EventSink, message: str) -> FinalResult:
        result = FinalResult(error=message, final_summary=f"Error occurred: {message}")
        sink.emit(StreamEvent.status(f"Error: {message}"))
        sink.emit(StreamEvent.error(result.to_wire()))
        return result

    # ========================================================================
    # Public Interface
    # ========================================================================

    async def run(self, request: PipelineRequest, sink: EventSink) -> FinalResult | None:
        """
        Run the pipeline for one request.

        Exactly one terminal event is written to ``sink``: ``result`` when the
        run reaches summarize, ``error`` for everything else. Cancellation
        propagates and writes nothing.

        Args:
            request: Tenant id and conversation
            sink: Destination of the run's events

        Returns:
            The terminal payload (None only if the graph ended without one)
        """
        start_time = time.time()
        log_extra = {"tenant_id": request.user_id, "messages": len(request.messages)}
        logger.info(f"Pipeline run started for '{request.user_id}'", extra=log_extra)

        deadline = asyncio.timeout(self.run_deadline_seconds)
        try:
            tenant = self.registry.lookup_tenant(request.user_id)
            initial_state: QueryPipelineState = {
                "request": request,
                "tenant": tenant,
                "sink": sink,
                "previous_summary": request.previous_summary,
                "intent": None,
                "attempts": [],
                "current_attempt": None,
                "semantic_failure": False,
                "generation_unusable": False,
                "error_explanation": None,
                "chart_plan": None,
                "final_result": None,
            }
            async with deadline:
                final_state = await self.graph.ainvoke(
                    initial_state,
                    config={"recursion_limit": 4 * self.max_attempts + 10},
                )
        except asyncio.CancelledError:
            logger.info("Pipeline run cancelled", extra=log_extra)
            raise
        except SinkClosedError:
            raise
        except TimeoutError as e:
            if not deadline.expired():
                logger.error(f"Pipeline run failed: {e}", extra=log_extra, exc_info=True)
                return self._emit_failure(sink, describe_error(e))
            logger.error(
                f"Pipeline run exceeded {self.run_deadline_seconds}s deadline", extra=log_extra
            )
            return self._emit_failure(
                sink, f"The request took longer than {self.run_deadline_seconds:g} seconds"
            )
        except Exception as e:
            logger.error(f"Pipeline run failed: {e}", extra=log_extra, exc_info=True)
            return self._emit_failure(sink, describe_error(e))

        elapsed_ms = (time.time() - start_time) * 1000
        attempts = final_state.get("attempts") or []
        logger.info(
            f"Pipeline run complete in {elapsed_ms:.0f}ms after {len(attempts)} attempt(s)",
            extra={**log_extra, "attempts": len(attempts)},
        )
        return final_state.get("final_result")


def create_pipeline(
    settings: Settings | None = None,
    registry: TenantRegistry | None = None,
    provider: BaseLLMProvider | None = None,
) -> QueryPipeline:
    """
    Create a QueryPipeline with all dependencies from settings.

    Args:
        settings: Application settings (default: cached settings)
        registry: Tenant registry (default: YAML registry from settings)
        provider: Generation backend (default: provider from settings)

    Returns:
        Initialized pipeline
    """
    config = settings or get_settings()

    if provider is None:
        provider = LLMProviderFactory.create_default_provider(config.llm)
    executor = QueryExecutor(
        timeout_seconds=config.database.statement_timeout,
        connect_timeout=config.database.connect_timeout,
        max_rows=config.database.max_rows,
    )
    if registry is None:
        registry = YamlTenantRegistry.from_file(
            config.registry.path, credentials_key=config.registry.credentials_key
        )

    return QueryPipeline(
        client=GenerationClient(provider),
        executor=executor,
        registry=registry,
        max_attempts=config.pipeline.max_attempts,
        run_deadline_seconds=config.pipeline.run_deadline_seconds,
        include_failure_context=config.pipeline.include_failure_context,
    )
