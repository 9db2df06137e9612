"""Log browsing over the OpenTelemetry logs table."""

from observio.logs.store import DEFAULT_LOGS_TABLE, TOP_LOGS_LIMIT, LogStore

__all__ = ["DEFAULT_LOGS_TABLE", "TOP_LOGS_LIMIT", "LogStore"]
