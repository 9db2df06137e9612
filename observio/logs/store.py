"""
Log store.

Reads OpenTelemetry log rows from ClickHouse with optional level, component
and body-pattern filters. All filters are case-insensitive and bound as
parameters.
"""

import logging

from pydantic import ValidationError as PydanticValidationError

from observio.connectors.base import BaseConnector, ConnectorError
from observio.explore.errors import ExecutionError
from observio.models.logs import LogEntry

logger = logging.getLogger(__name__)

DEFAULT_LOGS_TABLE = "otel_logs"
TOP_LOGS_LIMIT = 100

_SELECT_LOGS = """
    SELECT
        toString(rowNumberInAllBlocks()) AS line_id,
        toString(Timestamp) AS timestamp,
        SeverityText AS level,
        ServiceName AS component,
        ResourceAttributes['process.pid'] AS pid,
        Body AS content,
        toString(cityHash64(Body)) AS event_id,
        Body AS raw_message
    FROM {table}
    WHERE 1=1
"""


class LogStore:
    """Query access to the logs table."""

    def __init__(self, connector: BaseConnector, table: str = DEFAULT_LOGS_TABLE):
        self.connector = connector
        self.table = table

    def build_query(
        self,
        limit: int = TOP_LOGS_LIMIT,
        offset: int = 0,
        level: str = "",
        component: str = "",
        pattern: str = "",
    ) -> tuple[str, list]:
        """Build the logs statement and its positional arguments."""
        query = _SELECT_LOGS.format(table=self.table)
        args: list = []

        if level:
            args.append(level)
            query += f" AND lower(SeverityText) = lower(${len(args)})"

        if component:
            args.append(f"%{component}%")
            query += f" AND lower(ServiceName) LIKE lower(${len(args)})"

        if pattern:
            args.append(f"%{pattern}%")
            query += f" AND lower(Body) LIKE lower(${len(args)})"

        query += " ORDER BY Timestamp DESC"

        if limit > 0:
            args.append(limit)
            query += f" LIMIT ${len(args)}"

        if offset > 0:
            args.append(offset)
            query += f" OFFSET ${len(args)}"

        return query, args

    async def get_logs(
        self,
        limit: int = TOP_LOGS_LIMIT,
        offset: int = 0,
        level: str = "",
        component: str = "",
        pattern: str = "",
    ) -> list[LogEntry]:
        """
        Fetch log rows, newest first.

        Raises:
            ExecutionError: If the engine query fails
        """
        query, args = self.build_query(limit, offset, level, component, pattern)

        try:
            result = await self.connector.execute(query, params=args)
        except ConnectorError as e:
            logger.error(f"Error fetching logs from ClickHouse: {e}")
            raise ExecutionError("Could not fetch logs") from e

        entries = []
        for row in result.rows:
            try:
                entries.append(
                    LogEntry(
                        line_id=row["line_id"],
                        timestamp=row["timestamp"],
                        level=row["level"],
                        component=row["component"],
                        pid=row.get("pid") or "",
                        content=row["content"],
                        event_id=row.get("event_id") or None,
                        raw_message=row["raw_message"],
                    )
                )
            except (KeyError, PydanticValidationError) as e:
                logger.warning(f"Error scanning log row: {e}")
                continue

        return entries

    async def get_top_logs(self) -> list[LogEntry]:
        """The newest 100 log rows, unfiltered."""
        return await self.get_logs(limit=TOP_LOGS_LIMIT, offset=0)
