"""Generic Row value domain.

Every value coming off a cursor is classified into one ValueKind and then
converted to its JSON form by a converter registered for that kind. The
converter table covers every kind, so serialization never falls through to
str() on an unknown object: unsupported driver types fail with ScanError.
"""

from __future__ import annotations

import base64
import ipaddress
import math
import uuid
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from psycopg.types.multirange import Multirange
from psycopg.types.range import Range

from postgres_mcp.core.exceptions import ScanError

if TYPE_CHECKING:
    from collections.abc import Callable


class ValueKind(StrEnum):
    NULL = "null"
    BOOL = "bool"
    INT = "int"
    FLOAT = "float"
    STRING = "string"
    TIMESTAMP = "timestamp"
    BYTES = "bytes"
    NESTED = "nested"


# Scalars rendered through their canonical text form.
_TEXTUAL_TYPES: tuple[type, ...] = (
    str,
    uuid.UUID,
    timedelta,
    ipaddress.IPv4Address,
    ipaddress.IPv6Address,
    ipaddress.IPv4Interface,
    ipaddress.IPv6Interface,
    ipaddress.IPv4Network,
    ipaddress.IPv6Network,
)


def classify(value: Any) -> ValueKind:
    """Return the kind of a driver value. Raises ScanError for unsupported types."""
    if value is None:
        return ValueKind.NULL
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return ValueKind.BOOL
    if isinstance(value, int):
        return ValueKind.INT
    if isinstance(value, (float, Decimal)):
        return ValueKind.FLOAT
    if isinstance(value, _TEXTUAL_TYPES):
        return ValueKind.STRING
    if isinstance(value, (datetime, date, time)):
        return ValueKind.TIMESTAMP
    if isinstance(value, (bytes, bytearray, memoryview)):
        return ValueKind.BYTES
    if isinstance(value, (dict, list, tuple, Range, Multirange)):
        return ValueKind.NESTED
    msg = f"Unsupported column value of type {type(value).__name__}"
    raise ScanError(msg)


def _convert_float(value: float | Decimal) -> Any:
    if isinstance(value, Decimal):
        if not value.is_finite():
            return str(value)
        if value.as_tuple().exponent >= 0:
            return int(value)
        return float(value)
    if not math.isfinite(value):
        return str(value)
    return value


def _convert_string(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, timedelta):
        return _iso_duration(value)
    return str(value)


def _iso_duration(value: timedelta) -> str:
    """ISO 8601 duration, e.g. P1DT2H30M or -PT0.5S.

    psycopg loads intervals with months as 30 days and years as 365 days, so
    only D, H, M and S appear.
    """
    sign = "-" if value < timedelta(0) else ""
    value = abs(value)
    hours, rest = divmod(value.seconds, 3600)
    minutes, seconds = divmod(rest, 60)

    date_part = f"{value.days}D" if value.days else ""
    time_part = ""
    if hours:
        time_part += f"{hours}H"
    if minutes:
        time_part += f"{minutes}M"
    if seconds or value.microseconds:
        time_part += f"{seconds}.{value.microseconds:06d}".rstrip("0").rstrip(".") + "S"

    if not date_part and not time_part:
        return "PT0S"
    return f"{sign}P{date_part}" + (f"T{time_part}" if time_part else "")


def _convert_timestamp(value: datetime | date | time) -> str:
    return value.isoformat()


def _convert_bytes(value: bytes | bytearray | memoryview) -> str:
    return base64.b64encode(bytes(value)).decode("ascii")


def _convert_nested(value: Any) -> Any:
    if isinstance(value, Range):
        if value.isempty:
            return {"empty": True}
        return {
            "lower": to_json_value(value.lower),
            "upper": to_json_value(value.upper),
            "bounds": value.bounds,
        }
    if isinstance(value, dict):
        return {str(k): to_json_value(v) for k, v in value.items()}
    return [to_json_value(v) for v in value]


_CONVERTERS: dict[ValueKind, Callable[[Any], Any]] = {
    ValueKind.NULL: lambda v: None,
    ValueKind.BOOL: bool,
    ValueKind.INT: int,
    ValueKind.FLOAT: _convert_float,
    ValueKind.STRING: _convert_string,
    ValueKind.TIMESTAMP: _convert_timestamp,
    ValueKind.BYTES: _convert_bytes,
    ValueKind.NESTED: _convert_nested,
}


def to_json_value(value: Any) -> Any:
    """Convert a driver value into a JSON-serializable value."""
    return _CONVERTERS[classify(value)](value)
