"""
Query Executor

One-shot SQL execution against a tenant data store.

``QueryExecutor.execute`` never raises for connection or execution failures;
they come back as an ExecutionOutcome with ``error`` set, ``rows=None`` and
``row_count=0``. Each call opens its own connection and releases it on every
exit path. Task cancellation is not a failure and always propagates.
"""

import base64
import logging
import time
import uuid
from collections.abc import Callable
from datetime import date, datetime, time as dt_time, timedelta
from decimal import Decimal
from typing import Any
from urllib.parse import urlsplit

from querypilot.connectors.base import BaseConnector, ConnectorError, redact_target
from querypilot.connectors.postgres import PostgresConnector
from querypilot.models.pipeline import ExecutionOutcome

logger = logging.getLogger(__name__)

ConnectorFactory = Callable[[str], BaseConnector]

# Registry of connectors by URL scheme
CONNECTORS: dict[str, type[BaseConnector]] = {
    "postgresql": PostgresConnector,
    "postgres": PostgresConnector,
}


def connection_scheme(connection_target: str) -> str:
    """URL scheme without driver suffix (``postgresql+asyncpg`` -> ``postgresql``)."""
    return urlsplit(connection_target).scheme.split("+", 1)[0].lower()


def to_json_safe(value: Any) -> Any:
    """Convert a driver value to a JSON-serializable one."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date, dt_time)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        raw = bytes(value)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError:
            return base64.b64encode(raw).decode("ascii")
    if isinstance(value, dict):
        return {str(key): to_json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_json_safe(item) for item in value]
    return str(value)


class QueryExecutor:
    """
    Execute generated queries against tenant data stores.

    Args:
        connector_factory: Builds a connector for a connection target
            (default: pick by URL scheme from CONNECTORS)
        timeout_seconds: Per-statement timeout
        connect_timeout: Connection establishment timeout
        max_rows: Rows kept from a single result
    """

    def __init__(
        self,
        connector_factory: ConnectorFactory | None = None,
        timeout_seconds: int = 30,
        connect_timeout: int = 10,
        max_rows: int = 5000,
    ):
        self.timeout_seconds = timeout_seconds
        self.connect_timeout = connect_timeout
        self.max_rows = max_rows
        self._connector_factory = connector_factory or self._default_connector

    def _default_connector(self, connection_target: str) -> BaseConnector:
        scheme = connection_scheme(connection_target)
        connector_cls = CONNECTORS.get(scheme)
        if connector_cls is None:
            raise ConnectorError(
                f"Unsupported connection target scheme '{scheme}'. "
                f"Supported: {sorted(CONNECTORS)}"
            )
        return connector_cls(
            connection_target,
            statement_timeout=self.timeout_seconds,
            connect_timeout=self.connect_timeout,
            max_rows=self.max_rows,
        )

    async def execute(self, query_text: str, connection_target: str) -> ExecutionOutcome:
        """
        Run one query on a dedicated connection.

        Args:
            query_text: SQL to run
            connection_target: Tenant database URL

        Returns:
            ExecutionOutcome; ``error`` is set instead of raising on failure
        """
        started = time.perf_counter()
        target = redact_target(connection_target)

        try:
            connector = self._connector_factory(connection_target)
            async with connector:
                result = await connector.execute(query_text, timeout=self.timeout_seconds)
        except ConnectorError as e:
            logger.warning(
                f"Query execution failed: {e}",
                extra={"target": target, "query": query_text[:200]},
            )
            return ExecutionOutcome.failure(str(e))
        except Exception as e:
            logger.error(
                f"Unexpected error during query execution: {e}",
                extra={"target": target},
                exc_info=True,
            )
            return ExecutionOutcome.failure(f"Query error: {e}")

        rows = [
            {column: to_json_safe(value) for column, value in row.items()} for row in result.rows
        ]
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"Query returned {result.row_count} rows in {elapsed_ms:.1f}ms",
            extra={"target": target, "row_count": result.row_count, "truncated": result.truncated},
        )
        return ExecutionOutcome(
            rows=rows,
            row_count=result.row_count,
            error=None,
            columns=result.columns,
            execution_time_ms=result.execution_time_ms,
        )
