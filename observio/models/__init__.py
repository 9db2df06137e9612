"""
Observio Models Module

Pydantic models for type-safe data validation throughout the application.

Available Models:
    Explore Models:
        - ExploreRequest / ExploreResponse: Structured query in, rows out
        - TableField: Column name and engine type tag
        - RawSQLRequest / RawSQLResponse: Read-only free-text SQL
        - AutocompleteRequest / AutocompleteSuggestion / AutocompleteResponse

    Log Models:
        - LogEntry: A row of the OpenTelemetry logs table

    API Models:
        - ErrorResponse, HealthResponse, ReadinessResponse
"""

from observio.models.api import ErrorResponse, HealthResponse, ReadinessResponse
from observio.models.explore import (
    AutocompleteRequest,
    AutocompleteResponse,
    AutocompleteSuggestion,
    DatabasesResponse,
    ExploreOptionsResponse,
    ExploreRequest,
    ExploreResponse,
    RawSQLRequest,
    RawSQLResponse,
    TableField,
    TableFieldsResponse,
    TablesResponse,
)
from observio.models.logs import LogEntry

__all__ = [
    "AutocompleteRequest",
    "AutocompleteResponse",
    "AutocompleteSuggestion",
    "DatabasesResponse",
    "ErrorResponse",
    "ExploreOptionsResponse",
    "ExploreRequest",
    "ExploreResponse",
    "HealthResponse",
    "LogEntry",
    "RawSQLRequest",
    "RawSQLResponse",
    "ReadinessResponse",
    "TableField",
    "TableFieldsResponse",
    "TablesResponse",
]
