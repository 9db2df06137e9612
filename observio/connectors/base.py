"""
Base Database Connector

Abstract base class for the analytical store connector. Provides a consistent
async interface for connecting to and querying the engine.

All connectors must implement:
- connect(): Establish connection with connection pooling
- execute(): Run queries with parameters, timeout and target database
- close(): Clean up connections and pools
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any

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
    column_types: list[str] = Field(
        default_factory=list,
        description="Engine-declared type tag per column (e.g. 'DateTime64(3)')",
    )
    execution_time_ms: float = Field(..., description="Query execution time in ms")


QueryParams = Sequence[Any] | Mapping[str, Any]


class ConnectorError(Exception):
    """Base exception for connector errors."""

    pass


class ConnectionError(ConnectorError):
    """Error establishing or managing database connection."""

    pass


class QueryError(ConnectorError):
    """Error executing database query."""

    pass


# ============================================================================
# Base Connector
# ============================================================================


class BaseConnector(ABC):
    """
    Abstract base class for database connectors.

    Features:
    - Async interface throughout
    - Connection pooling support
    - Query timeout configuration
    - Positional ($1, $2) and named parameter binding
    - Automatic resource cleanup

    Usage:
        connector = ClickHouseConnector(host="localhost", ...)
        await connector.connect()

        result = await connector.execute(
            "SELECT * FROM default.otel_logs WHERE SeverityText = $1 LIMIT $2",
            ["ERROR", 100],
        )
        print(f"Found {result.row_count} rows")

        await connector.close()
    """

    def __init__(
        self,
        host: str,
        port: int,
        database: str,
        user: str,
        password: str,
        pool_size: int = 10,
        timeout: int = 30,
        **kwargs,
    ):
        """
        Initialize connector.

        Args:
            host: Database host
            port: Database port
            database: Default database name
            user: Database user
            password: Database password
            pool_size: Connection pool size (default: 10)
            timeout: Query timeout in seconds (default: 30)
            **kwargs: Additional connector-specific parameters
        """
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.pool_size = pool_size
        self.timeout = timeout
        self.kwargs = kwargs

        self._connected = False

        logger.info(f"Initialized {self.__class__.__name__} for {user}@{host}:{port}/{database}")

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish database connection and create connection pool.

        Should be idempotent - calling multiple times should not create
        multiple pools.

        Raises:
            ConnectionError: If connection fails
        """
        pass

    @abstractmethod
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
            query: SQL query string. A sequence of params binds $1, $2, ...;
                a mapping binds engine-native named parameters.
            params: Query parameters (optional)
            timeout: Query timeout in seconds (overrides default)
            database: Database the statement runs against (overrides default)

        Returns:
            QueryResult with rows, columns, column types and metadata

        Raises:
            QueryError: If query execution fails
            ConnectionError: If not connected
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """
        Close database connection and clean up pool.

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
        return f"<{self.__class__.__name__} {self.user}@{self.host}:{self.port}/{self.database} ({status})>"
