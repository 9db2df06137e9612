"""
Explore query builder.

Turns a structured ExploreRequest into a parameterized SQL statement plus a
positional argument list. Values (filter value, limit) are always bound as
$N placeholders; identifiers are interpolated as given, so callers must check
them against the schema first (see ExploreService).

Usage:
    builder = QueryBuilder(default_limit=1000, max_limit=10000)
    built = builder.build(
        ExploreRequest(database="default", table="otel_logs", aggregate="count")
    )
    built.sql   # 'SELECT COUNT(*) AS count FROM default.otel_logs LIMIT $1'
    built.args  # [1000]
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from observio.explore.errors import ValidationError
from observio.models.explore import ExploreRequest

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 1000
MAX_LIMIT = 10000

NO_AGGREGATE = "none"

# aggregate name -> SQL function; count takes no field
AGGREGATES: dict[str, str] = {
    "count": "COUNT",
    "sum": "SUM",
    "avg": "AVG",
    "min": "MIN",
    "max": "MAX",
}

# filter operation -> SQL operator
FILTER_OPERATORS: dict[str, str] = {
    "eq": "=",
    "ne": "!=",
    "gt": ">",
    "lt": "<",
    "gte": ">=",
    "lte": "<=",
    "like": "LIKE",
}

ORDER_DIRECTIONS = ("asc", "desc")


@dataclass(frozen=True)
class BuiltQuery:
    """A SQL statement with $1..$n placeholders and their values in order."""

    sql: str
    args: list[Any] = field(default_factory=list)


def normalize_aggregate(aggregate: str | None) -> str:
    value = (aggregate or "").strip().lower()
    return value or NO_AGGREGATE


def has_filter(req: ExploreRequest) -> bool:
    return bool(req.filter_by and req.filter_op and req.filter_val)


def validate_explore_request(req: ExploreRequest, max_limit: int = MAX_LIMIT) -> None:
    """
    Validate an explore request.

    Raises:
        ValidationError: naming the offending field
    """
    if not req.database.strip():
        raise ValidationError("database", "database is required")
    if not req.table.strip():
        raise ValidationError("table", "table is required")

    for name in req.fields:
        if not name.strip():
            raise ValidationError("fields", "field names cannot be empty")
    for name in req.group_by:
        if not name.strip():
            raise ValidationError("groupBy", "group by field names cannot be empty")

    aggregate = normalize_aggregate(req.aggregate)
    if aggregate != NO_AGGREGATE:
        if aggregate not in AGGREGATES:
            raise ValidationError("aggregate", f"invalid aggregate function: {req.aggregate}")
        if aggregate != "count" and not req.fields:
            raise ValidationError(
                "fields", f"fields are required for aggregate function: {aggregate}"
            )

    filter_parts = {
        "filterBy": req.filter_by,
        "filterOp": req.filter_op,
        "filterVal": req.filter_val,
    }
    provided = [name for name, value in filter_parts.items() if value]
    if provided and len(provided) != len(filter_parts):
        missing = next(name for name, value in filter_parts.items() if not value)
        raise ValidationError(
            missing, "filterBy, filterOp and filterVal must be provided together"
        )
    if req.filter_op and req.filter_op not in FILTER_OPERATORS:
        raise ValidationError("filterOp", f"invalid filter operation: {req.filter_op}")

    if req.order_dir and req.order_dir.lower() not in ORDER_DIRECTIONS:
        raise ValidationError(
            "orderDir", f"invalid order direction: {req.order_dir} (must be 'asc' or 'desc')"
        )

    if req.limit < 0:
        raise ValidationError("limit", "limit cannot be negative")
    if req.limit > max_limit:
        raise ValidationError("limit", f"limit cannot exceed {max_limit} rows")


class QueryBuilder:
    """Builds parameterized SELECT statements from explore requests."""

    def __init__(self, default_limit: int = DEFAULT_LIMIT, max_limit: int = MAX_LIMIT):
        self.default_limit = default_limit
        self.max_limit = max_limit

    def build(self, req: ExploreRequest) -> BuiltQuery:
        """
        Build the statement for an explore request.

        Clause order is fixed: SELECT, FROM, WHERE, GROUP BY, ORDER BY, LIMIT.

        Raises:
            ValidationError: If the request is invalid or uses an unsupported
                aggregate or filter operation
        """
        validate_explore_request(req, self.max_limit)

        args: list[Any] = []
        sql = f"SELECT {self._select_clause(req)} FROM {req.database}.{req.table}"

        if has_filter(req):
            operator = FILTER_OPERATORS.get(req.filter_op)
            if operator is None:
                raise ValidationError("filterOp", f"unsupported filter operation: {req.filter_op}")
            value = f"%{req.filter_val}%" if req.filter_op == "like" else req.filter_val
            args.append(value)
            sql += f" WHERE {req.filter_by} {operator} ${len(args)}"

        if req.group_by:
            sql += f" GROUP BY {', '.join(req.group_by)}"

        if req.order_by:
            direction = "DESC" if req.order_dir.lower() == "desc" else "ASC"
            sql += f" ORDER BY {req.order_by} {direction}"

        args.append(req.limit if req.limit > 0 else self.default_limit)
        sql += f" LIMIT ${len(args)}"

        logger.debug(f"Built explore query: {sql} with args: {args}")
        return BuiltQuery(sql=sql, args=args)

    def _select_clause(self, req: ExploreRequest) -> str:
        aggregate = normalize_aggregate(req.aggregate)

        if aggregate == NO_AGGREGATE:
            return ", ".join(req.fields) if req.fields else "*"

        function = AGGREGATES.get(aggregate)
        if function is None:
            raise ValidationError("aggregate", f"unsupported aggregate function: {req.aggregate}")

        if aggregate == "count":
            columns = ["COUNT(*) AS count"]
        else:
            target = req.fields[0]
            columns = [f"{function}({target}) AS {aggregate}_{target}"]

        columns.extend(req.group_by)
        return ", ".join(columns)
