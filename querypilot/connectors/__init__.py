"""
Database Connectors

Async connectors for tenant data stores and the never-raising QueryExecutor.

Available connectors:
- PostgresConnector: PostgreSQL (asyncpg)
"""

from querypilot.connectors.base import (
    BaseConnector,
    ConnectionError,
    ConnectorError,
    QueryError,
    QueryResult,
)
from querypilot.connectors.executor import QueryExecutor, to_json_safe
from querypilot.connectors.postgres import PostgresConnector

__all__ = [
    "BaseConnector",
    "ConnectionError",
    "ConnectorError",
    "PostgresConnector",
    "QueryError",
    "QueryExecutor",
    "QueryResult",
    "to_json_safe",
]
