"""
Retry Policy

Pure decisions for the bounded query generation + execution loop, and the
record of attempts made so far.
"""

from dataclasses import dataclass
from typing import Any

from querypilot.models.pipeline import ExecutionOutcome, QueryAttempt


@dataclass(frozen=True)
class AttemptRecord:
    """A query attempt paired with what happened when it ran."""

    attempt: QueryAttempt
    outcome: ExecutionOutcome


def should_retry(outcome: ExecutionOutcome, attempt_number: int, max_attempts: int) -> bool:
    """
    Decide whether to generate another query.

    Args:
        outcome: Result of the attempt that just finished
        attempt_number: 1-based number of that attempt
        max_attempts: Attempt budget of the run

    Returns:
        True when the attempt failed and budget remains
    """
    return not outcome.succeeded and attempt_number < max_attempts


def retry_status(next_attempt: int, max_attempts: int) -> str:
    """Status text announcing a regeneration."""
    return f"Retrying (attempt {next_attempt} of {max_attempts})"


def failure_context(records: list[AttemptRecord]) -> list[dict[str, Any]]:
    """Query text and error of every failed attempt, oldest first."""
    return [
        {
            "attempt": record.attempt.attempt,
            "sql_query": record.attempt.sql_query,
            "error": record.outcome.error or "The query returned no rows.",
        }
        for record in records
        if not record.outcome.succeeded
    ]
