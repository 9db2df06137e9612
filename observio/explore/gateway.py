"""
Raw SQL gateway.

Accepts free-text SQL, rejects statements that start with a mutating keyword,
and runs the rest verbatim through the row decoder.

The check is a prefix blocklist, not a parser: leading comments or a CTE
wrapping a mutation get through. Restrict the engine user's grants for a
real read-only guarantee.
"""

import logging

from observio.connectors.base import BaseConnector, ConnectorError
from observio.explore.decoder import DecodedResult, RowDecoder
from observio.explore.errors import ExecutionError, ValidationError

logger = logging.getLogger(__name__)

BLOCKED_STATEMENT_PREFIXES = (
    "drop",
    "delete",
    "truncate",
    "alter",
    "create",
    "insert",
    "update",
)

READ_ONLY_MESSAGE = "Only SELECT queries are allowed"


def is_read_only(query: str) -> bool:
    """True unless the trimmed, lowercased statement starts with a blocked keyword."""
    return not query.strip().lower().startswith(BLOCKED_STATEMENT_PREFIXES)


class RawSQLGateway:
    """Runs caller-supplied read statements."""

    def __init__(self, connector: BaseConnector, decoder: RowDecoder | None = None):
        self.connector = connector
        self.decoder = decoder or RowDecoder()

    async def execute(self, database: str, query: str) -> DecodedResult:
        """
        Execute a read-only statement against a database.

        Raises:
            ValidationError: Missing input or a blocked statement
            ExecutionError: If the engine rejects or fails the statement
        """
        if not database:
            raise ValidationError("database", "Database is required")
        if not query.strip():
            raise ValidationError("query", "Query is required")
        if not is_read_only(query):
            logger.warning(f"Rejected non-read statement on database {database}")
            raise ValidationError("query", READ_ONLY_MESSAGE)

        logger.info(f"Executing raw SQL query on database {database}: {query}")

        try:
            result = await self.connector.execute(query, database=database)
        except ConnectorError as e:
            logger.error(f"Error executing raw SQL query: {e}")
            raise ExecutionError("Failed to execute query") from e

        decoded = self.decoder.decode(result)
        logger.info(f"Successfully executed raw SQL query, returning {decoded.total} rows")
        return decoded
