"""
Explore error taxonomy.

- ValidationError: bad request input; reported to the caller as a 400
- ExecutionError: engine failure; the caller sees an opaque message, the
  chained cause is logged server-side only
- DecodeError: a single row could not be decoded; the row is skipped
"""

from typing import Any


class ExploreError(Exception):
    """
    Base exception for explore errors.

    Attributes:
        message: Error description safe to return to the caller
        context: Additional context for debugging
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)


class ValidationError(ExploreError):
    """Missing or invalid request field, or a disallowed statement."""

    def __init__(self, field: str, message: str, context: dict[str, Any] | None = None):
        self.field = field
        super().__init__(message, context={"field": field, **(context or {})})


class ExecutionError(ExploreError):
    """Engine connection or query failure."""

    pass


class DecodeError(ExploreError):
    """A value could not be decoded for its declared engine type."""

    def __init__(self, column: str, type_tag: str, message: str):
        self.column = column
        self.type_tag = type_tag
        super().__init__(
            f"column {column!r} ({type_tag}): {message}",
            context={"column": column, "type_tag": type_tag},
        )
