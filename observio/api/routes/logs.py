"""
Logs Routes

Browse the OpenTelemetry logs table, newest first.
"""

import logging

from fastapi import APIRouter, HTTPException, status

from observio.logs.store import TOP_LOGS_LIMIT, LogStore
from observio.models.logs import LogEntry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/logs")


def _get_store() -> LogStore:
    from observio.api.main import app_state

    store = app_state.get("log_store")
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="ClickHouse is unavailable",
        )
    return store


def _parse_limit(raw: str | None) -> int:
    """Missing, malformed or non-positive limits fall back to 100."""
    try:
        limit = int(raw) if raw is not None else TOP_LOGS_LIMIT
    except ValueError:
        return TOP_LOGS_LIMIT
    return limit if limit > 0 else TOP_LOGS_LIMIT


def _parse_offset(raw: str | None) -> int:
    try:
        offset = int(raw) if raw is not None else 0
    except ValueError:
        return 0
    return max(offset, 0)


@router.get("", response_model=list[LogEntry], response_model_exclude_none=True)
@router.get(
    "/", response_model=list[LogEntry], response_model_exclude_none=True, include_in_schema=False
)
async def get_logs(
    level: str = "",
    component: str = "",
    pattern: str = "",
    limit: str | None = None,
    offset: str | None = None,
) -> list[LogEntry]:
    """
    Filtered log rows.

    Args:
        level: Severity, matched case-insensitively
        component: Substring of the service name
        pattern: Substring of the log body
        limit: Page size (default 100)
        offset: Rows to skip (default 0)
    """
    store = _get_store()
    logs = await store.get_logs(
        limit=_parse_limit(limit),
        offset=_parse_offset(offset),
        level=level,
        component=component,
        pattern=pattern,
    )
    logger.info(f"Returning {len(logs)} log rows")
    return logs


@router.get("/top100", response_model=list[LogEntry], response_model_exclude_none=True)
async def get_top_logs() -> list[LogEntry]:
    """The newest 100 log rows."""
    store = _get_store()
    return await store.get_top_logs()
