"""
Pytest configuration and shared fixtures.

This module provides fixtures and configuration used across all tests.
"""

import asyncio
import json
import logging
from unittest.mock import AsyncMock

import pytest

from observio.connectors.base import QueryResult

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests (requires a running ClickHouse server)",
    )


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (may require external services)"
    )
    config.addinivalue_line("markers", "slow: mark test as slow (takes more than 1 second)")
    config.addinivalue_line("markers", "unit: mark test as unit test (default)")


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless explicitly enabled."""
    if config.getoption("--run-integration"):
        return
    skip_integration = pytest.mark.skip(
        reason="Integration tests disabled (use --run-integration to enable)."
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(autouse=True)
def configure_test_logging(caplog):
    """
    Configure logging for tests.

    Sets up log capture and configures log levels.
    This fixture runs automatically for all tests.
    """
    caplog.set_level(logging.DEBUG)
    yield


# ============================================================================
# Environment and Configuration
# ============================================================================


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """
    Keep settings isolated between tests.

    Disables .env loading and the YAML file so tests only see what they set.
    """
    from observio.config import get_settings

    monkeypatch.setenv("OBSERVIO_ENV_SOURCE", "env")
    monkeypatch.delenv("OBSERVIO_CONFIG", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ============================================================================
# Mock Database Connectors
# ============================================================================


def make_result(
    rows: list[dict] | None = None,
    columns: list[str] | None = None,
    column_types: list[str] | None = None,
) -> QueryResult:
    """Build a QueryResult; columns default to the keys of the first row."""
    rows = rows or []
    if columns is None:
        columns = list(rows[0].keys()) if rows else []
    if column_types is None:
        column_types = ["String"] * len(columns)
    return QueryResult(
        rows=rows,
        row_count=len(rows),
        columns=columns,
        column_types=column_types,
        execution_time_ms=1.0,
    )


@pytest.fixture
def query_result_factory():
    """Factory for QueryResult objects."""
    return make_result


@pytest.fixture
def mock_clickhouse_connector():
    """
    Mock ClickHouse connector for testing.

    Usage:
        def test_query(mock_clickhouse_connector, query_result_factory):
            mock_clickhouse_connector.execute.return_value = query_result_factory([...])
    """
    connector = AsyncMock()
    connector.connect = AsyncMock()
    connector.close = AsyncMock()
    connector.execute = AsyncMock(return_value=make_result())

    return connector


# ============================================================================
# ASGI Clients
# ============================================================================


@pytest.fixture
def disconnecting_client():
    """
    Call an ASGI app directly with a client that hangs up early.

    The request body is delivered at once; every later receive() waits
    `disconnect_after` seconds and then reports http.disconnect. Returns the
    messages the app sent.

    Usage:
        sent = await disconnecting_client(app, "POST", "/path", {"k": "v"})
    """

    async def call(app, method, path, body=None, disconnect_after=0.05):
        payload = json.dumps(body).encode("utf-8") if body is not None else b""
        scope = {
            "type": "http",
            "asgi": {"version": "3.0", "spec_version": "2.3"},
            "http_version": "1.1",
            "method": method,
            "scheme": "http",
            "path": path,
            "raw_path": path.encode("utf-8"),
            "root_path": "",
            "query_string": b"",
            "headers": [
                (b"host", b"testserver"),
                (b"content-type", b"application/json"),
                (b"content-length", str(len(payload)).encode("latin-1")),
            ],
            "client": ("testclient", 50000),
            "server": ("testserver", 80),
        }
        pending = [{"type": "http.request", "body": payload, "more_body": False}]
        sent = []

        async def receive():
            if pending:
                return pending.pop(0)
            await asyncio.sleep(disconnect_after)
            return {"type": "http.disconnect"}

        async def send(message):
            sent.append(message)

        await app(scope, receive, send)
        return sent

    return call
