"""
Pipeline Module

LangGraph query pipeline, insights pipeline and the retry policy.
"""

from querypilot.pipeline.insights import InsightsPipeline
from querypilot.pipeline.orchestrator import QueryPipeline, QueryPipelineState, create_pipeline
from querypilot.pipeline.retry import AttemptRecord, failure_context, retry_status, should_retry

__all__ = [
    "AttemptRecord",
    "InsightsPipeline",
    "QueryPipeline",
    "QueryPipelineState",
    "create_pipeline",
    "failure_context",
    "retry_status",
    "should_retry",
]
