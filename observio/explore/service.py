"""
Explore service.

Business logic behind the /explore endpoints: schema discovery, structured
queries, raw SQL and autocomplete. Identifiers in structured queries are
checked against the table's real columns before they are interpolated.
"""

import logging

from observio.connectors.base import BaseConnector, ConnectorError
from observio.explore.autocomplete import AutocompleteEngine
from observio.explore.decoder import DecodedResult, DecodeMode, RowDecoder
from observio.explore.errors import ExecutionError, ValidationError
from observio.explore.gateway import RawSQLGateway
from observio.explore.introspector import SchemaIntrospector
from observio.explore.query_builder import (
    AGGREGATES,
    DEFAULT_LIMIT,
    FILTER_OPERATORS,
    MAX_LIMIT,
    QueryBuilder,
    normalize_aggregate,
    validate_explore_request,
)
from observio.models.explore import (
    AutocompleteSuggestion,
    ExploreRequest,
    ExploreResponse,
    TableField,
)

logger = logging.getLogger(__name__)


class ExploreService:
    """
    Provides explore functionality over a single connector.

    Args:
        connector: Connected engine connector
        default_limit: Row limit applied when a request asks for 0
        max_limit: Largest limit a request may ask for
        decode_mode: 'typed' (canonical) or 'generic' pass-through
        validate_identifiers: Check identifiers against the table's columns
    """

    def __init__(
        self,
        connector: BaseConnector,
        default_limit: int = DEFAULT_LIMIT,
        max_limit: int = MAX_LIMIT,
        decode_mode: DecodeMode | str = DecodeMode.TYPED,
        validate_identifiers: bool = True,
    ):
        self.connector = connector
        self.validate_identifiers = validate_identifiers
        self.introspector = SchemaIntrospector(connector)
        self.builder = QueryBuilder(default_limit=default_limit, max_limit=max_limit)
        self.decoder = RowDecoder(mode=decode_mode)
        self.gateway = RawSQLGateway(connector, self.decoder)
        self.autocomplete = AutocompleteEngine(self.introspector)

    async def get_databases(self) -> list[str]:
        logger.info("Fetching databases from ClickHouse")
        databases = await self.introspector.list_databases()
        logger.info(f"Successfully fetched {len(databases)} databases")
        return databases

    async def get_tables(self, database: str) -> list[str]:
        logger.info(f"Fetching tables for database: {database}")
        tables = await self.introspector.list_tables(database)
        logger.info(f"Successfully fetched {len(tables)} tables for database {database}")
        return tables

    async def get_table_fields(self, database: str, table: str) -> list[TableField]:
        """Fields of a table, excluding identifier-like columns."""
        logger.info(f"Fetching fields for table: {database}.{table}")
        fields = await self.introspector.list_fields(database, table)
        logger.info(f"Successfully fetched {len(fields)} fields for table {database}.{table}")
        return fields

    async def execute_query(self, req: ExploreRequest) -> ExploreResponse:
        """
        Validate, build, run and decode a structured explore query.

        Raises:
            ValidationError: Invalid request or unknown table/column
            ExecutionError: Engine failure
        """
        validate_explore_request(req, self.builder.max_limit)

        if self.validate_identifiers:
            await self._check_identifiers(req)

        built = self.builder.build(req)

        logger.info(
            f"Executing explore query for {req.database}.{req.table} "
            f"with aggregate: {req.aggregate}"
        )

        try:
            result = await self.connector.execute(built.sql, params=built.args)
        except ConnectorError as e:
            logger.error(f"Error executing explore query: {e}")
            raise ExecutionError("Could not execute query") from e

        decoded = self.decoder.decode(result)
        logger.info(f"Query executed successfully, returned {decoded.total} rows")

        return ExploreResponse(columns=decoded.columns, data=decoded.rows, total=decoded.total)

    async def execute_sql(self, database: str, query: str) -> DecodedResult:
        return await self.gateway.execute(database, query)

    async def suggest(
        self, database: str, query: str, position: int
    ) -> list[AutocompleteSuggestion]:
        if not database:
            raise ValidationError("database", "Database is required")
        logger.info(f"Getting autocomplete suggestions for database: {database}")
        return await self.autocomplete.suggest(database, query, position)

    def available_aggregates(self) -> list[str]:
        return list(AGGREGATES)

    def available_filter_operations(self) -> list[str]:
        return list(FILTER_OPERATORS)

    async def _check_identifiers(self, req: ExploreRequest) -> None:
        columns = await self.introspector.column_names(req.database, req.table)
        if not columns:
            raise ValidationError("table", f"unknown table: {req.database}.{req.table}")

        referenced = [("fields", name) for name in req.fields]
        referenced += [("groupBy", name) for name in req.group_by]
        if req.order_by:
            referenced.append(("orderBy", req.order_by))
        if req.filter_by:
            referenced.append(("filterBy", req.filter_by))

        aliases = set()
        aggregate = normalize_aggregate(req.aggregate)
        if aggregate == "count":
            aliases.add("count")
        elif aggregate in AGGREGATES and req.fields:
            aliases.add(f"{aggregate}_{req.fields[0]}")

        for field_name, column in referenced:
            if field_name == "orderBy" and column in aliases:
                continue
            if column not in columns:
                raise ValidationError(
                    field_name, f"unknown column {column!r} in {req.database}.{req.table}"
                )
