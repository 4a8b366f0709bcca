"""
Base Database Connector

Abstract base class for tenant data store connectors. A connector owns one
dedicated connection for the duration of an ``async with`` block and runs
read queries on it.

All connectors must implement:
- connect(): Open the dedicated connection
- execute(): Run a query with a statement timeout
- close(): Release the connection (idempotent)
"""

import logging
from abc import ABC, abstractmethod
from typing import Any
from urllib.parse import urlsplit

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# ============================================================================
# Data Models
# ============================================================================


class QueryResult(BaseModel):
    """Result from query execution."""

    rows: list[dict[str, Any]] = Field(..., description="Query result rows")
    row_count: int = Field(..., description="Number of rows returned")
    columns: list[str] = Field(..., description="Column names")
    execution_time_ms: float = Field(..., description="Query execution time in ms")
    truncated: bool = Field(default=False, description="Rows were cut at max_rows")


class ConnectorError(Exception):
    """Base exception for connector errors."""

    pass


class ConnectionError(ConnectorError):
    """Error establishing or managing database connection."""

    pass


class QueryError(ConnectorError):
    """Error executing database query."""

    pass


def redact_target(connection_target: str) -> str:
    """Connection target with credentials removed, safe for logs."""
    parts = urlsplit(connection_target)
    host = parts.hostname or ""
    port = f":{parts.port}" if parts.port else ""
    return f"{parts.scheme}://{host}{port}{parts.path}"


# ============================================================================
# Base Connector
# ============================================================================


class BaseConnector(ABC):
    """
    Abstract base class for database connectors.

    Usage:
        async with PostgresConnector("postgresql://user:pw@host/db") as connector:
            result = await connector.execute("SELECT 1")
            print(f"Found {result.row_count} rows")

    The connection is released when the block exits, whether it exits
    normally, with an error, or through task cancellation.
    """

    def __init__(
        self,
        connection_target: str,
        statement_timeout: int = 30,
        connect_timeout: int = 10,
        max_rows: int = 5000,
    ):
        """
        Initialize connector.

        Args:
            connection_target: Database URL (credentials included)
            statement_timeout: Per-statement timeout in seconds
            connect_timeout: Connection establishment timeout in seconds
            max_rows: Rows kept from a single result
        """
        self.connection_target = connection_target
        self.statement_timeout = statement_timeout
        self.connect_timeout = connect_timeout
        self.max_rows = max_rows

        self._connection = None
        self._connected = False

    @abstractmethod
    async def connect(self) -> None:
        """
        Open the dedicated connection.

        Raises:
            ConnectionError: If connection fails
        """
        pass

    @abstractmethod
    async def execute(self, query: str, timeout: int | None = None) -> QueryResult:
        """
        Execute a SQL query.

        Args:
            query: SQL query string
            timeout: Statement timeout in seconds (overrides default)

        Returns:
            QueryResult with rows, columns, and metadata

        Raises:
            QueryError: If query execution fails
            ConnectionError: If not connected
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """
        Close the connection.

        Should be idempotent - safe to call multiple times.
        """
        pass

    @property
    def is_connected(self) -> bool:
        """Check if connector is connected."""
        return self._connected

    async def __aenter__(self):
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
        return False

    def __repr__(self) -> str:
        """String representation."""
        status = "connected" if self._connected else "disconnected"
        return f"<{self.__class__.__name__} {redact_target(self.connection_target)} ({status})>"
