"""
Explore Models

Pydantic models for schema discovery, structured explore queries, raw SQL
and autocomplete. Wire names are camelCase to match the query-builder UI.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

SuggestionKind = Literal["keyword", "table", "column"]


class TableField(BaseModel):
    """A column of a table as reported by the engine."""

    name: str = Field(..., description="Column name")
    type: str = Field(..., description="Engine type tag (e.g. 'LowCardinality(String)')")


class ExploreRequest(BaseModel):
    """
    Structured description of an explore query.

    Fields are kept as plain strings so that unsupported enum values reach
    the explore validator and come back as a named ValidationError.
    """

    database: str = Field(default="", description="Database name (required)")
    table: str = Field(default="", description="Table name (required)")
    fields: list[str] = Field(
        default_factory=list, description="Columns to select; empty selects all"
    )
    aggregate: str = Field(
        default="none", description="Aggregate: none, count, sum, avg, min, max"
    )
    group_by: list[str] = Field(default_factory=list, alias="groupBy")
    order_by: str | None = Field(default=None, alias="orderBy")
    order_dir: str = Field(default="asc", alias="orderDir", description="asc or desc")
    filter_by: str | None = Field(default=None, alias="filterBy")
    filter_op: str | None = Field(
        default=None, alias="filterOp", description="eq, ne, gt, lt, gte, lte, like"
    )
    filter_val: str | None = Field(default=None, alias="filterVal")
    limit: int = Field(default=0, description="Row limit; 0 applies the server default")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "database": "default",
                "table": "otel_logs",
                "fields": ["Duration"],
                "aggregate": "avg",
                "groupBy": ["ServiceName"],
                "orderBy": "ServiceName",
                "orderDir": "asc",
                "filterBy": "SeverityText",
                "filterOp": "eq",
                "filterVal": "ERROR",
                "limit": 100,
            }
        },
    )

    @field_validator("fields", "group_by", mode="before")
    @classmethod
    def null_list_to_empty(cls, v: Any) -> Any:
        if v is None:
            return []
        return v

    @field_validator("aggregate", "order_dir", mode="before")
    @classmethod
    def null_enum_to_default(cls, v: Any, info) -> Any:
        if v is None:
            return "none" if info.field_name == "aggregate" else "asc"
        return v

    @field_validator("filter_val", mode="before")
    @classmethod
    def stringify_filter_value(cls, v: Any) -> Any:
        """Accept numeric filter values from the UI."""
        if isinstance(v, bool):
            return str(v).lower()
        if isinstance(v, int | float):
            return str(v)
        return v

    @field_validator("limit", mode="before")
    @classmethod
    def null_limit_to_zero(cls, v: Any) -> Any:
        if v is None:
            return 0
        return v

    @classmethod
    def for_table(cls, database: str, table: str) -> "ExploreRequest":
        """Request every column of a table with the server default limit."""
        return cls(database=database, table=table, fields=[], order_dir="asc", limit=0)


class ExploreResponse(BaseModel):
    """Result of an explore query."""

    columns: list[str] = Field(..., description="Returned column names, in order")
    data: list[dict[str, Any]] = Field(..., description="Rows keyed by column name")
    total: int = Field(..., description="Number of rows in data")


class DatabasesResponse(BaseModel):
    databases: list[str]


class TablesResponse(BaseModel):
    tables: list[str]


class TableFieldsResponse(BaseModel):
    fields: list[TableField]


class ExploreOptionsResponse(BaseModel):
    """Aggregates and filter operations accepted by the explore endpoint."""

    aggregates: list[str]
    filter_operations: list[str] = Field(..., alias="filterOperations")

    model_config = ConfigDict(populate_by_name=True)


class RawSQLRequest(BaseModel):
    """Free-text read-only statement."""

    database: str = Field(default="", description="Database the statement runs against")
    query: str = Field(default="", description="SQL statement")


class RawSQLResponse(BaseModel):
    columns: list[str]
    rows: list[dict[str, Any]]
    total: int
    query: str


class AutocompleteRequest(BaseModel):
    """Partial SQL text plus the cursor offset into it."""

    database: str = Field(default="", description="Database used for table/column lookups")
    query: str = Field(default="", description="SQL text typed so far")
    position: int = Field(default=0, description="Cursor offset into query")


class AutocompleteSuggestion(BaseModel):
    """A single autocomplete suggestion."""

    text: str = Field(..., description="Text to insert")
    kind: SuggestionKind = Field(..., alias="type", description="keyword, table or column")
    description: str | None = Field(default=None, description="Human-readable hint")

    model_config = ConfigDict(populate_by_name=True)


class AutocompleteResponse(BaseModel):
    suggestions: list[AutocompleteSuggestion]
