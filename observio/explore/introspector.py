"""
Schema introspector.

Lists databases, tables and columns from ClickHouse's system tables. Results
are not cached; every call queries the engine again.
"""

import logging

from observio.connectors.base import BaseConnector, ConnectorError
from observio.explore.errors import ExecutionError, ValidationError
from observio.models.explore import TableField

logger = logging.getLogger(__name__)

DATABASES_QUERY = """
    SELECT name
    FROM system.databases
    WHERE name NOT IN ('system', 'INFORMATION_SCHEMA', 'information_schema')
    ORDER BY name
"""

TABLES_QUERY = """
    SELECT name
    FROM system.tables
    WHERE database = {database:String}
    ORDER BY name
"""

COLUMNS_QUERY = """
    SELECT name, type
    FROM system.columns
    WHERE database = {database:String} AND table = {table:String}
    ORDER BY name
"""


def is_identifier_column(name: str) -> bool:
    """Columns whose lowercase name contains 'id' are hidden from field lists."""
    return "id" in name.lower()


class SchemaIntrospector:
    """Reads engine metadata through a connector."""

    def __init__(self, connector: BaseConnector):
        self.connector = connector

    async def list_databases(self) -> list[str]:
        """List user databases, excluding system schemas."""
        try:
            result = await self.connector.execute(DATABASES_QUERY)
        except ConnectorError as e:
            logger.error(f"Error fetching databases from ClickHouse: {e}")
            raise ExecutionError("Could not fetch databases") from e

        return self._names(result.rows, "database")

    async def list_tables(self, database: str) -> list[str]:
        """List tables of a database."""
        if not database:
            raise ValidationError("database", "database name is required")

        try:
            result = await self.connector.execute(TABLES_QUERY, params={"database": database})
        except ConnectorError as e:
            logger.error(f"Error fetching tables for database {database}: {e}")
            raise ExecutionError("Could not fetch tables") from e

        return self._names(result.rows, "table")

    async def list_fields(self, database: str, table: str) -> list[TableField]:
        """List columns of a table, excluding identifier-like columns."""
        return [
            field
            for field in await self._columns(database, table)
            if not is_identifier_column(field.name)
        ]

    async def column_names(self, database: str, table: str) -> set[str]:
        """All column names of a table; empty if the table does not exist."""
        return {field.name for field in await self._columns(database, table)}

    async def _columns(self, database: str, table: str) -> list[TableField]:
        if not database or not table:
            raise ValidationError(
                "database" if not database else "table",
                "database and table names are required",
            )

        try:
            result = await self.connector.execute(
                COLUMNS_QUERY, params={"database": database, "table": table}
            )
        except ConnectorError as e:
            logger.error(f"Error fetching table fields for {database}.{table}: {e}")
            raise ExecutionError("Could not fetch table fields") from e

        fields = []
        for row in result.rows:
            name, type_tag = row.get("name"), row.get("type")
            if not isinstance(name, str) or not isinstance(type_tag, str):
                logger.warning(f"Skipping malformed column row for {database}.{table}: {row}")
                continue
            fields.append(TableField(name=name, type=type_tag))
        return fields

    @staticmethod
    def _names(rows: list[dict], kind: str) -> list[str]:
        names = []
        for row in rows:
            name = row.get("name")
            if not isinstance(name, str):
                logger.warning(f"Skipping malformed {kind} row: {row}")
                continue
            names.append(name)
        return names
