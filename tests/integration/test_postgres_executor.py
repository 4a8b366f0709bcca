"""
Integration tests for QueryExecutor against a real PostgreSQL server.

These tests are skipped unless explicitly run and a database is configured.
Run with: TEST_DATABASE_URL=postgresql://... pytest tests/integration --run-integration
"""

import os

import pytest

from querypilot.connectors.executor import QueryExecutor

pytestmark = pytest.mark.integration

DATABASE_URL = os.getenv("TEST_DATABASE_URL")


@pytest.fixture
def database_url():
    if not DATABASE_URL:
        pytest.skip("TEST_DATABASE_URL is not set")
    return DATABASE_URL


@pytest.fixture
def executor():
    return QueryExecutor(timeout_seconds=5, connect_timeout=5, max_rows=10)


@pytest.mark.asyncio
async def test_select_returns_rows(executor, database_url):
    outcome = await executor.execute(
        "SELECT n, n * 2 AS doubled, now() AS at FROM generate_series(1, 3) AS n",
        database_url,
    )

    assert outcome.succeeded
    assert outcome.columns == ["n", "doubled", "at"]
    assert outcome.row_count == 3
    assert outcome.rows[2]["doubled"] == 6
    assert isinstance(outcome.rows[0]["at"], str)


@pytest.mark.asyncio
async def test_rows_are_capped(executor, database_url):
    outcome = await executor.execute("SELECT n FROM generate_series(1, 50) AS n", database_url)

    assert outcome.row_count == 10


@pytest.mark.asyncio
async def test_writes_are_rejected(executor, database_url):
    outcome = await executor.execute("CREATE TABLE querypilot_probe (id int)", database_url)

    assert not outcome.succeeded
    assert "read-only" in outcome.error


@pytest.mark.asyncio
async def test_statement_timeout(database_url):
    executor = QueryExecutor(timeout_seconds=1, connect_timeout=5)

    outcome = await executor.execute("SELECT pg_sleep(3)", database_url)

    assert not outcome.succeeded
    assert outcome.error


@pytest.mark.asyncio
async def test_unknown_relation(executor, database_url):
    outcome = await executor.execute("SELECT * FROM querypilot_missing_table", database_url)

    assert outcome.rows is None
    assert "does not exist" in outcome.error
