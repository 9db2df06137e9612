"""
Database Connectors Module

Provides the async connector for the ClickHouse analytical store.

Available Connectors:
    - BaseConnector: Abstract base class
    - ClickHouseConnector: ClickHouse connector (clickhouse-connect)

Usage:
    from observio.connectors import ClickHouseConnector

    connector = ClickHouseConnector(
        host="localhost",
        port=8123,
        database="default",
        user="default",
        password=""
    )

    async with connector:
        result = await connector.execute("SELECT name FROM system.databases")
"""

from observio.connectors.base import (
    BaseConnector,
    ConnectionError,
    ConnectorError,
    QueryError,
    QueryParams,
    QueryResult,
)
from observio.connectors.clickhouse import ClickHouseConnector, bind_positional

__all__ = [
    "BaseConnector",
    "ClickHouseConnector",
    "bind_positional",
    "QueryParams",
    "QueryResult",
    "ConnectorError",
    "ConnectionError",
    "QueryError",
]
