"""
Unit tests for ClickHouseConnector.

Tests the ClickHouse connector with mocked clickhouse-connect client.
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import Mock, patch

import pytest

from observio.connectors.base import ConnectionError, QueryError, QueryResult
from observio.connectors.clickhouse import ClickHouseConnector, bind_positional


@pytest.fixture
def clickhouse_config():
    """ClickHouse connection configuration."""
    return {
        "host": "localhost",
        "port": 8123,
        "database": "default",
        "user": "default",
        "password": "",
        "pool_size": 5,
        "timeout": 30,
    }


@pytest.fixture
def mock_client():
    """Mock clickhouse-connect client."""
    client = Mock()
    client.command = Mock(return_value="24.1.1.1")
    client.close = Mock()

    query_result = Mock()
    query_result.column_names = ["id", "name"]
    query_result.column_types = [
        SimpleNamespace(name="UInt64"),
        SimpleNamespace(name="LowCardinality(String)"),
    ]
    query_result.result_rows = [(1, "Alice"), (2, "Bob")]
    client.query = Mock(return_value=query_result)

    return client


class TestBindPositional:
    """Test $N placeholder rewriting."""

    def test_rewrites_placeholders_in_order(self):
        query, params = bind_positional(
            "SELECT * FROM db.t WHERE level = $1 LIMIT $2", ["ERROR", 100]
        )

        assert query == "SELECT * FROM db.t WHERE level = %(p1)s LIMIT %(p2)s"
        assert params == {"p1": "ERROR", "p2": 100}

    def test_escapes_literal_percent(self):
        query, _ = bind_positional("SELECT '100%' AS pct LIMIT $1", [10])

        assert query == "SELECT '100%%' AS pct LIMIT %(p1)s"

    def test_placeholder_reused(self):
        query, params = bind_positional("SELECT $1, $1", ["x"])

        assert query == "SELECT %(p1)s, %(p1)s"
        assert params == {"p1": "x"}

    def test_missing_value_raises(self):
        with pytest.raises(QueryError, match=r"\$2"):
            bind_positional("SELECT $1, $2", ["only-one"])


class TestInitialization:
    """Test ClickHouseConnector initialization."""

    def test_initialization(self, clickhouse_config):
        """Test connector initializes with correct config."""
        connector = ClickHouseConnector(**clickhouse_config)

        assert connector.host == "localhost"
        assert connector.port == 8123
        assert connector.database == "default"
        assert connector.user == "default"
        assert connector.pool_size == 5
        assert connector.timeout == 30
        assert connector.is_connected is False


class TestConnection:
    """Test connection management."""

    @pytest.mark.asyncio
    async def test_connect_success(self, clickhouse_config, mock_client):
        """Test successful connection."""
        with patch("clickhouse_connect.get_client", return_value=mock_client) as get_client:
            connector = ClickHouseConnector(**clickhouse_config)
            await connector.connect()

            assert connector.is_connected is True
            mock_client.command.assert_called_once_with("SELECT version()")

            kwargs = get_client.call_args.kwargs
            assert kwargs["autogenerate_session_id"] is False
            assert kwargs["username"] == "default"
            assert kwargs["pool_mgr"] is not None

    @pytest.mark.asyncio
    async def test_connect_idempotent(self, clickhouse_config, mock_client):
        """Test connecting multiple times doesn't create multiple clients."""
        with patch("clickhouse_connect.get_client", return_value=mock_client) as get_client:
            connector = ClickHouseConnector(**clickhouse_config)
            await connector.connect()
            await connector.connect()

            assert get_client.call_count == 1

    @pytest.mark.asyncio
    async def test_connect_failure(self, clickhouse_config):
        """Test connection failure raises ConnectionError."""
        with patch(
            "clickhouse_connect.get_client",
            side_effect=Exception("Connection refused"),
        ):
            connector = ClickHouseConnector(**clickhouse_config)

            with pytest.raises(ConnectionError, match="Failed to connect"):
                await connector.connect()

            assert connector.is_connected is False

    @pytest.mark.asyncio
    async def test_close(self, clickhouse_config, mock_client):
        """Test closing connection."""
        with patch("clickhouse_connect.get_client", return_value=mock_client):
            connector = ClickHouseConnector(**clickhouse_config)
            await connector.connect()
            await connector.close()

            assert connector.is_connected is False
            mock_client.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_close_without_connect(self, clickhouse_config):
        connector = ClickHouseConnector(**clickhouse_config)
        await connector.close()
        assert connector.is_connected is False


class TestQueryExecution:
    """Test query execution."""

    @pytest.mark.asyncio
    async def test_execute_simple_query(self, clickhouse_config, mock_client):
        """Test executing a simple query."""
        with patch("clickhouse_connect.get_client", return_value=mock_client):
            connector = ClickHouseConnector(**clickhouse_config)
            await connector.connect()

            result = await connector.execute("SELECT * FROM users")

            assert isinstance(result, QueryResult)
            assert result.row_count == 2
            assert result.columns == ["id", "name"]
            assert result.column_types == ["UInt64", "LowCardinality(String)"]
            assert result.rows[0] == {"id": 1, "name": "Alice"}
            assert result.rows[1] == {"id": 2, "name": "Bob"}
            assert result.execution_time_ms >= 0

    @pytest.mark.asyncio
    async def test_execute_with_named_parameters(self, clickhouse_config, mock_client):
        """Mapping params are passed through for server-side binding."""
        with patch("clickhouse_connect.get_client", return_value=mock_client):
            connector = ClickHouseConnector(**clickhouse_config)
            await connector.connect()

            params = {"database": "default"}
            query = "SELECT name FROM system.tables WHERE database = {database:String}"
            await connector.execute(query, params=params)

            args, kwargs = mock_client.query.call_args
            assert args[0] == query
            assert kwargs["parameters"] == params

    @pytest.mark.asyncio
    async def test_execute_with_positional_parameters(self, clickhouse_config, mock_client):
        """Sequence params are rewritten from $N placeholders."""
        with patch("clickhouse_connect.get_client", return_value=mock_client):
            connector = ClickHouseConnector(**clickhouse_config)
            await connector.connect()

            await connector.execute("SELECT * FROM db.t WHERE a = $1 LIMIT $2", params=["x", 10])

            args, kwargs = mock_client.query.call_args
            assert args[0] == "SELECT * FROM db.t WHERE a = %(p1)s LIMIT %(p2)s"
            assert kwargs["parameters"] == {"p1": "x", "p2": 10}

    @pytest.mark.asyncio
    async def test_execute_sets_query_settings(self, clickhouse_config, mock_client):
        with patch("clickhouse_connect.get_client", return_value=mock_client):
            connector = ClickHouseConnector(**clickhouse_config)
            await connector.connect()

            await connector.execute("SELECT 1", database="analytics")

            settings = mock_client.query.call_args.kwargs["settings"]
            assert settings["max_execution_time"] == 30
            assert settings["database"] == "analytics"
            assert settings["query_id"]

    @pytest.mark.asyncio
    async def test_execute_custom_timeout(self, clickhouse_config, mock_client):
        """Test query with custom timeout."""
        with patch("clickhouse_connect.get_client", return_value=mock_client):
            connector = ClickHouseConnector(**clickhouse_config)
            await connector.connect()

            await connector.execute("SELECT 1", timeout=60)

            settings = mock_client.query.call_args.kwargs["settings"]
            assert settings["max_execution_time"] == 60
            assert "database" not in settings

    @pytest.mark.asyncio
    async def test_execute_without_connection(self, clickhouse_config):
        """Test executing query without connection raises error."""
        connector = ClickHouseConnector(**clickhouse_config)

        with pytest.raises(ConnectionError, match="Not connected"):
            await connector.execute("SELECT 1")

    @pytest.mark.asyncio
    async def test_execute_query_error(self, clickhouse_config, mock_client):
        """Test query execution error."""
        mock_client.query = Mock(side_effect=Exception("Code: 62. Syntax error"))

        with patch("clickhouse_connect.get_client", return_value=mock_client):
            connector = ClickHouseConnector(**clickhouse_config)
            await connector.connect()

            with pytest.raises(QueryError, match="Query execution failed"):
                await connector.execute("INVALID SQL")

    @pytest.mark.asyncio
    async def test_cancelled_query_is_killed(self, clickhouse_config, mock_client):
        """Cancelling the awaiting task kills the query on the server."""
        with patch("clickhouse_connect.get_client", return_value=mock_client):
            connector = ClickHouseConnector(**clickhouse_config)
            await connector.connect()

            async def cancelled(*args, **kwargs):
                raise asyncio.CancelledError()

            query_thread = patch(
                "observio.connectors.clickhouse.asyncio.to_thread",
                new_callable=Mock,
                side_effect=[cancelled(), asyncio.sleep(0)],
            )
            with query_thread as to_thread:
                with pytest.raises(asyncio.CancelledError):
                    await connector.execute("SELECT sleep(3)")

            query_call, kill_call = to_thread.call_args_list
            query_id = query_call.kwargs["settings"]["query_id"]
            assert kill_call.args[0] is mock_client.command
            assert kill_call.args[1].startswith("KILL QUERY")
            assert kill_call.kwargs["parameters"] == {"query_id": query_id}
