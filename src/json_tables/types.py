"""Value kinds and coercion helpers for record fields."""

from __future__ import annotations

import math
import re
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Union

# A record field value. Records never nest: lists hold primitives only.
Value = Union[None, bool, int, float, str, list]

Record = dict[str, Any]

_INTEGER_RE = re.compile(r"^[+-]?\d+$")
_DECIMAL_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")
_TIMESTAMP_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:\.\d+)?(?:Z|[+-]\d{2}:\d{2})?$")


class ValueKind(Enum):
    """The closed set of value kinds a record field can hold."""

    NULL = "null"
    BOOL = "bool"
    NUMBER = "number"
    TEXT = "text"
    TIMESTAMP = "timestamp"
    LIST = "list"


def value_kind(value: Any) -> ValueKind:
    """Classify a native value into its ValueKind.

    Raises:
        TypeError: If the value is not a storable field value.
    """
    if value is None:
        return ValueKind.NULL
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return ValueKind.BOOL
    if isinstance(value, (int, float)):
        return ValueKind.NUMBER
    if isinstance(value, str):
        if _TIMESTAMP_RE.match(value):
            return ValueKind.TIMESTAMP
        return ValueKind.TEXT
    if isinstance(value, (list, tuple)):
        return ValueKind.LIST
    raise TypeError(f"Unsupported field value of type {type(value).__name__}")


def to_number(value: Any, default: float | int | None = math.nan) -> float | int | None:
    """Coerce a value to a number.

    Booleans become 0/1, numeric strings are parsed, timestamps become
    epoch milliseconds. ``None`` and anything unconvertible yield
    ``default``.
    """
    try:
        kind = value_kind(value)
    except TypeError:
        return default
    if kind is ValueKind.NULL:
        return default
    if kind is ValueKind.BOOL:
        return int(value)
    if kind is ValueKind.NUMBER:
        return value
    if kind is ValueKind.TIMESTAMP:
        return parse_timestamp_millis(value)
    if kind is ValueKind.TEXT:
        text = value.strip()
        if text == "":
            return 0
        if _INTEGER_RE.match(text):
            return int(text)
        if _DECIMAL_RE.match(text):
            return float(text)
    return default


def is_nan(value: Any) -> bool:
    """Return whether value is a float NaN."""
    return isinstance(value, float) and math.isnan(value)


def normalize_number(value: float | int) -> float | int:
    """Collapse integral floats to int so they serialize as 15, not 15.0."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def values_equal(a: Any, b: Any) -> bool:
    """Strict equality between two field values.

    Values of different kinds are never equal (``True`` does not equal
    ``1`` and ``"1"`` does not equal ``1``). Numbers compare by value
    regardless of int/float representation.
    """
    if isinstance(a, dict) or isinstance(b, dict):
        return a == b
    kind_a = value_kind(a)
    kind_b = value_kind(b)
    text_kinds = (ValueKind.TEXT, ValueKind.TIMESTAMP)
    if kind_a in text_kinds and kind_b in text_kinds:
        return a == b
    if kind_a is not kind_b:
        return False
    if kind_a is ValueKind.LIST:
        return len(a) == len(b) and all(values_equal(x, y) for x, y in zip(a, b))
    return a == b


def to_storable(value: Any) -> Any:
    """Convert a bound parameter into a storable field value.

    Datetimes become ISO-8601 UTC strings with millisecond precision (naive
    ones are taken as UTC), dates become midnight UTC, decimals become
    numbers and tuples become lists. Other values are returned unchanged.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        utc = value.astimezone(timezone.utc)
        return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    if isinstance(value, date):
        return to_storable(datetime(value.year, value.month, value.day, tzinfo=timezone.utc))
    if isinstance(value, Decimal):
        if not value.is_finite():
            return None
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, (list, tuple)):
        return [to_storable(v) for v in value]
    return value


def clone_value(value: Any) -> Any:
    """Copy list values so records never share mutable state."""
    if isinstance(value, (list, tuple)):
        return [clone_value(v) for v in value]
    if isinstance(value, dict):
        return dict(value)
    return value


def now_iso() -> str:
    """Current instant as an ISO-8601 UTC string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def now_millis() -> int:
    """Current instant as epoch milliseconds."""
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def parse_timestamp_millis(text: str) -> float | int:
    """Convert an ISO-8601 timestamp string to epoch milliseconds."""
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return math.nan
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)
