"""
Unit tests for the explore query builder.

Covers request validation and the generated SQL / argument list.
"""

import pytest

from observio.explore.errors import ValidationError
from observio.explore.query_builder import (
    QueryBuilder,
    normalize_aggregate,
    validate_explore_request,
)
from observio.models.explore import ExploreRequest


@pytest.fixture
def builder():
    return QueryBuilder(default_limit=1000, max_limit=10000)


def request(**overrides) -> ExploreRequest:
    payload = {"database": "default", "table": "otel_logs"}
    payload.update(overrides)
    return ExploreRequest.model_validate(payload)


class TestSelectClause:
    """Test SELECT list generation."""

    def test_select_all_with_default_limit(self, builder):
        built = builder.build(request())

        assert built.sql == "SELECT * FROM default.otel_logs LIMIT $1"
        assert built.args == [1000]

    def test_select_fields(self, builder):
        built = builder.build(request(fields=["Timestamp", "Body"], limit=50))

        assert built.sql == "SELECT Timestamp, Body FROM default.otel_logs LIMIT $1"
        assert built.args == [50]

    def test_count(self, builder):
        built = builder.build(request(aggregate="count"))

        assert built.sql == "SELECT COUNT(*) AS count FROM default.otel_logs LIMIT $1"
        assert built.args == [1000]

    def test_count_ignores_fields(self, builder):
        built = builder.build(request(aggregate="count", fields=["Body"]))

        assert built.sql.startswith("SELECT COUNT(*) AS count FROM")

    @pytest.mark.parametrize("aggregate", ["sum", "avg", "min", "max"])
    def test_numeric_aggregates_alias_first_field(self, builder, aggregate):
        built = builder.build(request(aggregate=aggregate, fields=["Duration", "Other"]))

        function = aggregate.upper()
        assert built.sql == (
            f"SELECT {function}(Duration) AS {aggregate}_Duration FROM default.otel_logs LIMIT $1"
        )

    def test_aggregate_is_case_insensitive(self, builder):
        built = builder.build(request(aggregate="AVG", fields=["Duration"]))

        assert "AVG(Duration) AS avg_Duration" in built.sql

    def test_group_by_columns_join_select_list(self, builder):
        built = builder.build(
            request(aggregate="count", groupBy=["ServiceName", "SeverityText"])
        )

        assert built.sql == (
            "SELECT COUNT(*) AS count, ServiceName, SeverityText FROM default.otel_logs"
            " GROUP BY ServiceName, SeverityText LIMIT $1"
        )


class TestClauses:
    """Test WHERE / ORDER BY / LIMIT generation."""

    def test_eq_filter_binds_value_verbatim(self, builder):
        built = builder.build(request(filterBy="SeverityText", filterOp="eq", filterVal="ERROR"))

        assert built.sql == "SELECT * FROM default.otel_logs WHERE SeverityText = $1 LIMIT $2"
        assert built.args == ["ERROR", 1000]

    def test_like_filter_wraps_value(self, builder):
        built = builder.build(request(filterBy="Body", filterOp="like", filterVal="timeout"))

        assert "WHERE Body LIKE $1" in built.sql
        assert built.args[0] == "%timeout%"

    @pytest.mark.parametrize(
        "op,operator",
        [("ne", "!="), ("gt", ">"), ("lt", "<"), ("gte", ">="), ("lte", "<=")],
    )
    def test_comparison_operators(self, builder, op, operator):
        built = builder.build(request(filterBy="Duration", filterOp=op, filterVal="10"))

        assert f"WHERE Duration {operator} $1" in built.sql
        assert built.args == ["10", 1000]

    def test_numeric_filter_value_is_accepted(self, builder):
        built = builder.build(request(filterBy="Duration", filterOp="gt", filterVal=250))

        assert built.args[0] == "250"

    def test_order_by(self, builder):
        built = builder.build(request(orderBy="Timestamp", orderDir="desc", limit=10))

        assert built.sql == "SELECT * FROM default.otel_logs ORDER BY Timestamp DESC LIMIT $1"
        assert built.args == [10]

    def test_order_dir_defaults_to_asc(self, builder):
        built = builder.build(request(orderBy="Timestamp"))

        assert "ORDER BY Timestamp ASC" in built.sql

    def test_full_clause_order(self, builder):
        built = builder.build(
            request(
                fields=["Duration"],
                aggregate="avg",
                groupBy=["ServiceName"],
                orderBy="ServiceName",
                orderDir="asc",
                filterBy="SeverityText",
                filterOp="eq",
                filterVal="ERROR",
                limit=100,
            )
        )

        assert built.sql == (
            "SELECT AVG(Duration) AS avg_Duration, ServiceName FROM default.otel_logs"
            " WHERE SeverityText = $1 GROUP BY ServiceName ORDER BY ServiceName ASC LIMIT $2"
        )
        assert built.args == ["ERROR", 100]

    def test_placeholders_match_args(self, builder):
        built = builder.build(request(filterBy="a", filterOp="eq", filterVal="b", limit=5))

        assert built.sql.count("$") == len(built.args)


class TestValidation:
    """Test request validation errors."""

    @pytest.mark.parametrize("field", ["database", "table"])
    def test_database_and_table_required(self, builder, field):
        with pytest.raises(ValidationError) as exc_info:
            builder.build(request(**{field: ""}))

        assert exc_info.value.field == field

    def test_unknown_aggregate(self, builder):
        with pytest.raises(ValidationError, match="invalid aggregate") as exc_info:
            builder.build(request(aggregate="median", fields=["Duration"]))

        assert exc_info.value.field == "aggregate"

    def test_numeric_aggregate_requires_fields(self, builder):
        with pytest.raises(ValidationError, match="fields are required") as exc_info:
            builder.build(request(aggregate="sum"))

        assert exc_info.value.field == "fields"

    def test_partial_filter_names_missing_part(self, builder):
        with pytest.raises(ValidationError) as exc_info:
            builder.build(request(filterBy="SeverityText", filterOp="eq"))

        assert exc_info.value.field == "filterVal"

    def test_filter_value_alone_is_rejected(self, builder):
        with pytest.raises(ValidationError) as exc_info:
            builder.build(request(filterVal="ERROR"))

        assert exc_info.value.field == "filterBy"

    def test_unknown_filter_operation(self, builder):
        with pytest.raises(ValidationError, match="invalid filter operation") as exc_info:
            builder.build(request(filterBy="a", filterOp="regex", filterVal="b"))

        assert exc_info.value.field == "filterOp"

    def test_invalid_order_direction(self, builder):
        with pytest.raises(ValidationError) as exc_info:
            builder.build(request(orderBy="Timestamp", orderDir="sideways"))

        assert exc_info.value.field == "orderDir"

    def test_negative_limit(self, builder):
        with pytest.raises(ValidationError, match="negative"):
            builder.build(request(limit=-1))

    def test_limit_above_ceiling(self, builder):
        with pytest.raises(ValidationError, match="cannot exceed 10000"):
            builder.build(request(limit=10001))

    def test_limit_at_ceiling_is_allowed(self, builder):
        built = builder.build(request(limit=10000))

        assert built.args == [10000]

    def test_empty_field_name(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_explore_request(request(fields=["Body", " "]))

        assert exc_info.value.field == "fields"

    def test_empty_group_by_name(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_explore_request(request(groupBy=[""]))

        assert exc_info.value.field == "groupBy"

    def test_null_lists_and_enums_use_defaults(self, builder):
        built = builder.build(
            request(fields=None, groupBy=None, aggregate=None, orderDir=None, limit=None)
        )

        assert built.sql == "SELECT * FROM default.otel_logs LIMIT $1"
        assert built.args == [1000]


class TestHelpers:
    def test_normalize_aggregate(self):
        assert normalize_aggregate(None) == "none"
        assert normalize_aggregate("") == "none"
        assert normalize_aggregate(" Count ") == "count"

    def test_for_table_uses_server_default_limit(self, builder):
        built = builder.build(ExploreRequest.for_table("default", "otel_logs"))

        assert built.sql == "SELECT * FROM default.otel_logs LIMIT $1"
        assert built.args == [1000]
