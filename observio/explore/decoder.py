"""
Row decoder.

Normalizes engine values into a small set of JSON-safe kinds, chosen by the
column's declared engine type tag (not by the runtime value):

    DateTime / DateTime64(..) / DateTime(tz) / Date / Date32 -> RFC3339 str
    String / FixedString(N)                                  -> str
    Int8..Int64                                              -> int (int64)
    UInt8..UInt64                                            -> int (uint64)
    Float32 / Float64                                        -> float
    Bool                                                     -> bool
    UUID                                                     -> str
    Array(..)                                                -> JSON str
    Map(..)                                                  -> dict[str, str]
    anything else                                            -> str

Nullable(..) and LowCardinality(..) wrappers are unwrapped before lookup.
A row whose values cannot be decoded is skipped and logged; a failure while
iterating the result itself aborts with ExecutionError.
"""

import json
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from observio.connectors.base import QueryResult
from observio.explore.errors import DecodeError, ExecutionError

logger = logging.getLogger(__name__)

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1
UINT64_MAX = 2**64 - 1

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

_WRAPPERS = ("Nullable(", "LowCardinality(")


class DecodeMode(str, Enum):
    """Decode policy: typed dispatch on the type tag, or raw pass-through."""

    TYPED = "typed"
    GENERIC = "generic"


class ValueKind(str, Enum):
    """Transport-safe kinds a decoded value can take."""

    STRING = "string"
    INT64 = "int64"
    UINT64 = "uint64"
    FLOAT64 = "float64"
    BOOL = "bool"
    TIMESTAMP = "timestamp"
    STRING_MAP = "string_map"


@dataclass(frozen=True)
class DecodeStrategy:
    """Decode function for one engine type family."""

    kind: ValueKind
    decode: Callable[[Any], Any]


@dataclass
class DecodedResult:
    """Decoded columns and rows; skipped counts rows dropped by DecodeError."""

    columns: list[str]
    rows: list[dict[str, Any]] = field(default_factory=list)
    skipped: int = 0

    @property
    def total(self) -> int:
        return len(self.rows)


# ============================================================================
# Value decoders
# ============================================================================


def format_rfc3339(value: datetime) -> str:
    """Format as RFC3339 with second precision; UTC is written as 'Z'."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    text = value.replace(microsecond=0).isoformat()
    if text.endswith("+00:00"):
        return text[: -len("+00:00")] + "Z"
    return text


def decode_timestamp(value: Any) -> str | None:
    """Zero/unset timestamps (None or the Unix epoch) decode to None."""
    if value is None:
        return None
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        moment = datetime(value.year, value.month, value.day, tzinfo=UTC)
    elif isinstance(value, str):
        moment = datetime.fromisoformat(value)
    else:
        raise TypeError(f"expected a datetime, got {type(value).__name__}")

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    if moment == _EPOCH:
        return None
    return format_rfc3339(moment)


def decode_string(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bytes | bytearray):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, str):
        return value
    return str(value)


def _to_int(value: Any) -> int:
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"non-integral value {value!r}")
    return int(value)


def decode_int64(value: Any) -> int | None:
    if value is None:
        return None
    number = _to_int(value)
    if not INT64_MIN <= number <= INT64_MAX:
        raise ValueError(f"{number} is outside the int64 range")
    return number


def decode_uint64(value: Any) -> int | None:
    if value is None:
        return None
    number = _to_int(value)
    if not 0 <= number <= UINT64_MAX:
        raise ValueError(f"{number} is outside the uint64 range")
    return number


def decode_float64(value: Any) -> float | None:
    if value is None:
        return None
    return float(value)


def decode_bool(value: Any) -> bool | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    raise ValueError(f"expected a boolean, got {value!r}")


def _json_default(value: Any) -> Any:
    if isinstance(value, bytes | bytearray):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, datetime):
        return format_rfc3339(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return str(value)


def decode_array(value: Any) -> str | None:
    """Arrays are returned in serialized (JSON) form, not element-wise."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return json.dumps(list(value), default=_json_default, ensure_ascii=False)


def decode_string_map(value: Any) -> dict[str, str]:
    """A missing map decodes to {}, never to None."""
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise TypeError(f"expected a map, got {type(value).__name__}")
    return {
        decode_string(key): "" if item is None else decode_string(item)
        for key, item in value.items()
    }


def passthrough(value: Any) -> Any:
    """Generic mode: only byte sequences are converted (to str)."""
    if isinstance(value, bytes | bytearray):
        return bytes(value).decode("utf-8", errors="replace")
    return value


# ============================================================================
# Type tag dispatch
# ============================================================================

TIMESTAMP = DecodeStrategy(ValueKind.TIMESTAMP, decode_timestamp)
STRING = DecodeStrategy(ValueKind.STRING, decode_string)
INT64 = DecodeStrategy(ValueKind.INT64, decode_int64)
UINT64 = DecodeStrategy(ValueKind.UINT64, decode_uint64)
FLOAT64 = DecodeStrategy(ValueKind.FLOAT64, decode_float64)
BOOL = DecodeStrategy(ValueKind.BOOL, decode_bool)
UUID = DecodeStrategy(ValueKind.STRING, decode_string)
ARRAY = DecodeStrategy(ValueKind.STRING, decode_array)
STRING_MAP = DecodeStrategy(ValueKind.STRING_MAP, decode_string_map)
FALLBACK = DecodeStrategy(ValueKind.STRING, decode_string)

_EXACT_TAGS: dict[str, DecodeStrategy] = {
    "DateTime": TIMESTAMP,
    "Date": TIMESTAMP,
    "Date32": TIMESTAMP,
    "String": STRING,
    "Int8": INT64,
    "Int16": INT64,
    "Int32": INT64,
    "Int64": INT64,
    "UInt8": UINT64,
    "UInt16": UINT64,
    "UInt32": UINT64,
    "UInt64": UINT64,
    "Float32": FLOAT64,
    "Float64": FLOAT64,
    "Bool": BOOL,
    "UUID": UUID,
}

# checked in order after an exact match fails
_PREFIX_TAGS: tuple[tuple[str, DecodeStrategy], ...] = (
    ("DateTime64", TIMESTAMP),
    ("DateTime(", TIMESTAMP),
    ("FixedString", STRING),
    ("Array(", ARRAY),
    ("Map(", STRING_MAP),
)


def unwrap_type_tag(type_tag: str) -> str:
    """Strip Nullable(..) and LowCardinality(..) wrappers."""
    tag = type_tag.strip()
    changed = True
    while changed:
        changed = False
        for wrapper in _WRAPPERS:
            if tag.startswith(wrapper) and tag.endswith(")"):
                tag = tag[len(wrapper) : -1].strip()
                changed = True
    return tag


def strategy_for(type_tag: str) -> DecodeStrategy:
    """Select the decode strategy for an engine type tag."""
    tag = unwrap_type_tag(type_tag)
    strategy = _EXACT_TAGS.get(tag)
    if strategy is not None:
        return strategy
    for prefix, candidate in _PREFIX_TAGS:
        if tag.startswith(prefix):
            return candidate
    return FALLBACK


class RowDecoder:
    """Decodes a QueryResult into JSON-safe rows."""

    def __init__(self, mode: DecodeMode | str = DecodeMode.TYPED):
        self.mode = DecodeMode(mode)

    def decode(self, result: QueryResult) -> DecodedResult:
        """
        Decode every row of a result.

        Raises:
            ExecutionError: If iterating the result fails
        """
        return self.decode_rows(result.columns, result.column_types, result.rows)

    def decode_rows(
        self,
        columns: list[str],
        column_types: list[str],
        rows: Iterable[Mapping[str, Any] | tuple],
    ) -> DecodedResult:
        decoders = self._decoders(columns, column_types)
        decoded = DecodedResult(columns=list(columns))

        iterator = iter(rows)
        row_number = 0
        while True:
            try:
                raw = next(iterator)
            except StopIteration:
                break
            except Exception as e:
                logger.error(f"Error iterating result rows: {e}")
                raise ExecutionError("Could not read query results") from e

            row_number += 1
            try:
                decoded.rows.append(self._decode_row(raw, columns, column_types, decoders))
            except DecodeError as e:
                decoded.skipped += 1
                logger.warning(f"Skipping row {row_number}: {e}")

        if decoded.skipped:
            logger.info(f"Decoded {decoded.total} rows, skipped {decoded.skipped}")
        return decoded

    def _decoders(self, columns: list[str], column_types: list[str]) -> list[Callable]:
        if self.mode is DecodeMode.GENERIC:
            return [passthrough] * len(columns)
        tags = list(column_types) + [""] * (len(columns) - len(column_types))
        return [strategy_for(tag).decode for tag in tags[: len(columns)]]

    @staticmethod
    def _decode_row(
        raw: Mapping[str, Any] | tuple,
        columns: list[str],
        column_types: list[str],
        decoders: list[Callable],
    ) -> dict[str, Any]:
        row: dict[str, Any] = {}
        for index, column in enumerate(columns):
            type_tag = column_types[index] if index < len(column_types) else "unknown"
            try:
                value = raw[column] if isinstance(raw, Mapping) else raw[index]
                row[column] = decoders[index](value)
            except (KeyError, IndexError, TypeError, ValueError, OverflowError) as e:
                raise DecodeError(column, type_tag, str(e)) from e
        return row
