"""
Explore Module

Query-builder backend: schema introspection, structured query construction,
type-aware row decoding, raw read-only SQL and SQL autocomplete.

Usage:
    from observio.explore import ExploreService

    service = ExploreService(connector)
    databases = await service.get_databases()
    response = await service.execute_query(
        ExploreRequest(database="default", table="otel_logs", aggregate="count")
    )
"""

from observio.explore.autocomplete import AutocompleteEngine
from observio.explore.decoder import DecodedResult, DecodeMode, RowDecoder, strategy_for
from observio.explore.errors import DecodeError, ExecutionError, ExploreError, ValidationError
from observio.explore.gateway import RawSQLGateway, is_read_only
from observio.explore.introspector import SchemaIntrospector
from observio.explore.query_builder import BuiltQuery, QueryBuilder, validate_explore_request
from observio.explore.service import ExploreService

__all__ = [
    "AutocompleteEngine",
    "BuiltQuery",
    "DecodeError",
    "DecodeMode",
    "DecodedResult",
    "ExecutionError",
    "ExploreError",
    "ExploreService",
    "QueryBuilder",
    "RawSQLGateway",
    "RowDecoder",
    "SchemaIntrospector",
    "ValidationError",
    "is_read_only",
    "strategy_for",
    "validate_explore_request",
]
