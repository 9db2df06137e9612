"""
SQL autocomplete engine.

Suggests keywords, tables and columns for the token under the cursor. Context
is inferred lexically:

- tables are offered once 'from' or 'join' appears before the cursor
- columns come from the first token after the first 'from' in the query

This is a heuristic, not a parser. Aliases, multiple joined tables,
subqueries and 'from' inside identifiers (e.g. 'from_date') are not
understood.
"""

import logging

from observio.explore.errors import ExploreError
from observio.explore.introspector import SchemaIntrospector
from observio.models.explore import AutocompleteSuggestion

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 20

SQL_KEYWORDS = (
    "SELECT", "FROM", "WHERE", "GROUP BY", "ORDER BY", "HAVING", "LIMIT", "OFFSET",
    "JOIN", "LEFT JOIN", "RIGHT JOIN", "INNER JOIN", "OUTER JOIN", "FULL JOIN",
    "ON", "AND", "OR", "NOT", "IN", "LIKE", "BETWEEN", "IS", "NULL", "TRUE", "FALSE",
    "COUNT", "SUM", "AVG", "MIN", "MAX", "DISTINCT", "AS", "ASC", "DESC",
)  # fmt: skip

_TABLE_TOKEN_TRAILER = ";,)"


def _is_word_char(char: str) -> bool:
    return char == "_" or (char.isascii() and char.isalnum())


def word_at_position(query: str, position: int) -> str:
    """Return the identifier-like token around the cursor ('' if out of range)."""
    if position < 0 or position > len(query):
        return ""

    start = position
    while start > 0 and _is_word_char(query[start - 1]):
        start -= 1

    end = position
    while end < len(query) and _is_word_char(query[end]):
        end += 1

    return query[start:end]


def should_suggest_tables(query: str, position: int) -> bool:
    """True when 'from' or 'join' appears anywhere before the cursor."""
    before_cursor = query[: max(0, min(position, len(query)))].lower()
    return "from" in before_cursor or "join" in before_cursor


def table_from_query(query: str) -> str:
    """The first whitespace-delimited token after the first 'from', or ''."""
    index = query.lower().find("from")
    if index == -1:
        return ""

    words = query[index + len("from") :].split()
    if not words:
        return ""
    return words[0].rstrip(_TABLE_TOKEN_TRAILER)


def _matches(candidate: str, prefix: str) -> bool:
    return candidate.lower().startswith(prefix.lower())


class AutocompleteEngine:
    """Computes suggestions from scratch on every call."""

    def __init__(self, introspector: SchemaIntrospector, limit: int = MAX_SUGGESTIONS):
        self.introspector = introspector
        self.limit = limit

    async def suggest(
        self, database: str, query: str, position: int
    ) -> list[AutocompleteSuggestion]:
        """
        Suggest completions for the token at position.

        Order is keywords, then tables, then columns, truncated to the limit.
        Introspection failures skip the affected pass.
        """
        word = word_at_position(query, position)

        suggestions = [
            AutocompleteSuggestion(text=keyword, kind="keyword", description="SQL keyword")
            for keyword in SQL_KEYWORDS
            if _matches(keyword, word)
        ]

        if should_suggest_tables(query, position):
            suggestions.extend(await self._table_suggestions(database, word))

        table_token = table_from_query(query)
        if table_token:
            suggestions.extend(await self._column_suggestions(database, table_token, word))

        return suggestions[: self.limit]

    async def _table_suggestions(self, database: str, word: str) -> list[AutocompleteSuggestion]:
        try:
            tables = await self.introspector.list_tables(database)
        except ExploreError as e:
            logger.debug(f"Skipping table suggestions for {database}: {e}")
            return []

        return [
            AutocompleteSuggestion(
                text=table, kind="table", description=f"Table in {database} database"
            )
            for table in tables
            if _matches(table, word)
        ]

    async def _column_suggestions(
        self, database: str, table_token: str, word: str
    ) -> list[AutocompleteSuggestion]:
        table_database, _, table = table_token.rpartition(".")
        table_database = table_database or database

        try:
            fields = await self.introspector.list_fields(table_database, table)
        except ExploreError as e:
            logger.debug(f"Skipping column suggestions for {table_database}.{table}: {e}")
            return []

        return [
            AutocompleteSuggestion(
                text=field.name,
                kind="column",
                description=f"Column ({field.type}) in {table_database}.{table}",
            )
            for field in fields
            if _matches(field.name, word)
        ]
