"""
Explore Routes

Schema discovery, structured queries, read-only raw SQL and autocomplete.
"""

import logging

from fastapi import APIRouter, HTTPException, status

from observio.explore.service import ExploreService
from observio.models.explore import (
    AutocompleteRequest,
    AutocompleteResponse,
    DatabasesResponse,
    ExploreOptionsResponse,
    ExploreRequest,
    ExploreResponse,
    RawSQLRequest,
    RawSQLResponse,
    TableFieldsResponse,
    TablesResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/explore")


def _get_service() -> ExploreService:
    from observio.api.main import app_state

    service = app_state.get("explore_service")
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="ClickHouse is unavailable",
        )
    return service


@router.get("/databases", response_model=DatabasesResponse)
async def list_databases() -> DatabasesResponse:
    """List user databases (system databases excluded)."""
    service = _get_service()
    return DatabasesResponse(databases=await service.get_databases())


@router.get("/databases/{database}/tables", response_model=TablesResponse)
async def list_tables(database: str) -> TablesResponse:
    service = _get_service()
    return TablesResponse(tables=await service.get_tables(database))


@router.get("/databases/{database}/tables/{table}/fields", response_model=TableFieldsResponse)
async def list_table_fields(database: str, table: str) -> TableFieldsResponse:
    """List the fields of a table, without identifier-like columns."""
    service = _get_service()
    return TableFieldsResponse(fields=await service.get_table_fields(database, table))


@router.get("/options", response_model=ExploreOptionsResponse)
async def explore_options() -> ExploreOptionsResponse:
    """Aggregates and filter operations the query endpoint accepts."""
    service = _get_service()
    return ExploreOptionsResponse(
        aggregates=service.available_aggregates(),
        filter_operations=service.available_filter_operations(),
    )


@router.post("/query", response_model=ExploreResponse)
async def execute_query(payload: ExploreRequest) -> ExploreResponse:
    """Run a structured explore query."""
    service = _get_service()
    return await service.execute_query(payload)


@router.post(
    "/autocomplete",
    response_model=AutocompleteResponse,
    response_model_exclude_none=True,
)
async def autocomplete(payload: AutocompleteRequest) -> AutocompleteResponse:
    """Suggest keywords, tables and columns for the word under the cursor."""
    service = _get_service()
    suggestions = await service.suggest(payload.database, payload.query, payload.position)
    return AutocompleteResponse(suggestions=suggestions)


@router.post("/execute-sql", response_model=RawSQLResponse)
async def execute_sql(payload: RawSQLRequest) -> RawSQLResponse:
    """Run a read-only SQL statement."""
    service = _get_service()
    result = await service.execute_sql(payload.database, payload.query)
    logger.info(f"Raw SQL returned {result.total} rows ({result.skipped} skipped)")
    return RawSQLResponse(
        columns=result.columns,
        rows=result.rows,
        total=result.total,
        query=payload.query,
    )
