"""
ClickHouse Connector

Async ClickHouse connector using clickhouse-connect for OLAP database access.

Features:
- Async query execution using asyncio.to_thread
- Positional ($1, $2) binding for statements built by the query builder
- Named {param:Type} binding for metadata queries
- Query timeout support (max_execution_time)
- Server-side cancellation (KILL QUERY) when the awaiting task is cancelled

Usage:
    connector = ClickHouseConnector(
        host="localhost",
        port=8123,
        database="default",
        user="default",
        password=""
    )

    await connector.connect()

    result = await connector.execute(
        "SELECT * FROM default.otel_logs WHERE SeverityText = $1 LIMIT $2",
        params=["ERROR", 100],
    )
    print(result.column_types)  # ['DateTime64(9)', 'LowCardinality(String)', ...]

    await connector.close()
"""

import asyncio
import logging
import re
import time
import uuid
from collections.abc import Mapping, Sequence
from typing import Any

import clickhouse_connect
from clickhouse_connect.driver import Client, httputil

from observio.connectors.base import (
    BaseConnector,
    ConnectionError,
    QueryError,
    QueryParams,
    QueryResult,
)

logger = logging.getLogger(__name__)

_POSITIONAL_PARAM = re.compile(r"\$(\d+)")


def bind_positional(query: str, params: Sequence[Any]) -> tuple[str, dict[str, Any]]:
    """
    Rewrite $N placeholders into clickhouse-connect client-side binds.

    Literal percent signs are doubled because client-side binding formats
    the statement with the % operator.

    Returns:
        Tuple of (rewritten query, named parameter dict)

    Raises:
        QueryError: If a placeholder has no matching value
    """
    values = {f"p{index}": value for index, value in enumerate(params, start=1)}

    def _placeholder(match: re.Match) -> str:
        name = f"p{match.group(1)}"
        if name not in values:
            raise QueryError(f"No value bound for placeholder ${match.group(1)}")
        return f"%({name})s"

    return _POSITIONAL_PARAM.sub(_placeholder, query.replace("%", "%%")), values


class ClickHouseConnector(BaseConnector):
    """
    ClickHouse database connector using clickhouse-connect.

    Note: clickhouse-connect is synchronous, so calls are wrapped with
    asyncio.to_thread. The HTTP client is shared across requests; its
    urllib3 pool is sized by pool_size and session ids are disabled so
    concurrent queries are allowed.
    """

    def __init__(
        self,
        host: str,
        port: int = 8123,
        database: str = "default",
        user: str = "default",
        password: str = "",
        pool_size: int = 10,
        timeout: int = 30,
        **kwargs,
    ):
        super().__init__(
            host=host,
            port=port,
            database=database,
            user=user,
            password=password,
            pool_size=pool_size,
            timeout=timeout,
            **kwargs,
        )

        self._client: Client | None = None

    async def connect(self) -> None:
        """
        Establish connection to ClickHouse.

        Raises:
            ConnectionError: If connection fails
        """
        if self._connected and self._client:
            logger.debug("Already connected, skipping connection")
            return

        try:
            logger.info(f"Connecting to ClickHouse at {self.host}:{self.port}/{self.database}")

            self._client = await asyncio.to_thread(
                clickhouse_connect.get_client,
                host=self.host,
                port=self.port,
                database=self.database,
                username=self.user,
                password=self.password,
                autogenerate_session_id=False,
                pool_mgr=httputil.get_pool_manager(maxsize=self.pool_size),
                **self.kwargs,
            )

            version = await asyncio.to_thread(self._client.command, "SELECT version()")
            logger.info(f"Connected to ClickHouse: version {version}")

            self._connected = True

        except Exception as e:
            self._client = None
            logger.error(f"ClickHouse connection failed: {e}")
            raise ConnectionError(f"Failed to connect to ClickHouse: {e}") from e

    async def execute(
        self,
        query: str,
        params: QueryParams | None = None,
        timeout: int | None = None,
        database: str | None = None,
    ) -> QueryResult:
        """
        Execute a SQL query.

        Args:
            query: SQL query. Use $1, $2 with a params sequence, or
                {name:Type} with a params mapping.
            params: Query parameters
            timeout: Query timeout in seconds (overrides default)
            database: Database to run against (overrides default)

        Returns:
            QueryResult with rows, column names and column type tags

        Raises:
            QueryError: If query fails
            ConnectionError: If not connected
        """
        if not self._connected or not self._client:
            raise ConnectionError("Not connected to database. Call connect() first.")

        if not params or isinstance(params, Mapping):
            statement, parameters = query, dict(params or {})
        else:
            statement, parameters = bind_positional(query, params)

        query_id = str(uuid.uuid4())
        settings: dict[str, Any] = {
            "max_execution_time": timeout or self.timeout,
            "query_id": query_id,
        }
        if database:
            settings["database"] = database

        start_time = time.perf_counter()

        try:
            result = await asyncio.to_thread(
                self._client.query,
                statement,
                parameters=parameters,
                settings=settings,
            )
        except asyncio.CancelledError:
            logger.info(f"Query {query_id} cancelled by caller, killing it on the server")
            await self._kill_query(query_id)
            raise
        except Exception as e:
            logger.error(f"Query failed: {e}\nQuery: {query[:200]}...")
            raise QueryError(f"Query execution failed: {e}") from e

        columns = list(result.column_names)
        column_types = [column_type.name for column_type in result.column_types]
        result_rows = [
            {col: row[i] for i, col in enumerate(columns)} for row in result.result_rows
        ]

        execution_time_ms = (time.perf_counter() - start_time) * 1000

        logger.debug(
            f"Query executed in {execution_time_ms:.2f}ms, returned {len(result_rows)} rows"
        )

        return QueryResult(
            rows=result_rows,
            row_count=len(result_rows),
            columns=columns,
            column_types=column_types,
            execution_time_ms=execution_time_ms,
        )

    async def _kill_query(self, query_id: str) -> None:
        try:
            await asyncio.to_thread(
                self._client.command,
                "KILL QUERY WHERE query_id = {query_id:String} ASYNC",
                parameters={"query_id": query_id},
            )
        except Exception as e:
            logger.warning(f"Failed to kill query {query_id}: {e}")

    async def close(self) -> None:
        """
        Close ClickHouse client and clean up resources.

        Safe to call multiple times.
        """
        if not self._client:
            logger.debug("No client to close")
            return

        try:
            await asyncio.to_thread(self._client.close)
            self._client = None
            self._connected = False
            logger.info("ClickHouse connection closed")
        except Exception as e:
            logger.error(f"Error closing connection: {e}")
            raise ConnectionError(f"Failed to close connection: {e}") from e
