"""
Log Models

A log line as stored in the OpenTelemetry logs table.
"""

from pydantic import BaseModel, ConfigDict, Field


class LogEntry(BaseModel):
    """Log row returned by the logs endpoints."""

    line_id: str = Field(..., alias="lineId")
    timestamp: str
    level: str
    component: str
    pid: str = ""
    content: str
    event_id: str | None = Field(default=None, alias="eventId")
    raw_message: str = Field(..., alias="rawMessage")

    model_config = ConfigDict(populate_by_name=True)
