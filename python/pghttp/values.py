"""Conversion of Python values into the text form Postgres expects.

The output follows node-postgres' ``prepareValue`` so that queries sent over
HTTP see exactly the parameters a socket client would have sent.
"""

from __future__ import annotations

import json
import math
from collections.abc import Sequence
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any

from pghttp.errors import InvalidUsage

_BINARY = (bytes, bytearray, memoryview)


def prepare_value(value: Any, _seen: tuple[int, ...] = ()) -> str | None:
    """Normalize one query parameter.

    Example:
        >>> prepare_value([1, None, "a\\"b"])
        '{"1",NULL,"a\\\\"b"}'
        >>> prepare_value(True)
        'true'
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return _float_to_string(value)
    if isinstance(value, (int, str)):
        return str(value)
    if isinstance(value, _BINARY):
        return "\\x" + bytes(value).hex()
    if isinstance(value, datetime):
        return datetime_to_string(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, time):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return array_string(value)
    if hasattr(value, "to_postgres"):
        if id(value) in _seen:
            raise InvalidUsage(f"circular reference detected while preparing {type(value).__name__!r} for query")
        return prepare_value(value.to_postgres(), (*_seen, id(value)))
    if isinstance(value, dict):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return str(value)


def prepare_params(params: Sequence[Any]) -> tuple[str | None, ...]:
    return tuple(prepare_value(param) for param in params)


def array_string(values: Sequence[Any]) -> str:
    """Render a (possibly nested) sequence as a Postgres array literal."""
    parts = []
    for item in values:
        if item is None:
            parts.append("NULL")
        elif isinstance(item, (list, tuple)):
            parts.append(array_string(item))
        elif isinstance(item, _BINARY):
            parts.append("\\\\x" + bytes(item).hex())
        else:
            parts.append(_escape_element(prepare_value(item)))
    return "{" + ",".join(parts) + "}"


def _escape_element(text: str | None) -> str:
    if text is None:
        return "NULL"
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _float_to_string(value: float) -> str:
    """Format like JavaScript's ``Number.prototype.toString``.

    ``repr`` already gives the shortest round-tripping digits; only the
    placement of the decimal point and the exponent notation differ.
    """
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "0"

    sign = "-" if value < 0 else ""
    _, digit_tuple, exponent = Decimal(repr(abs(value))).as_tuple()
    digits = "".join(map(str, digit_tuple)).rstrip("0")
    exponent += len(digit_tuple) - len(digits)
    # Position of the decimal point relative to the start of ``digits``.
    point = exponent + len(digits)

    if len(digits) <= point <= 21:
        text = digits + "0" * (point - len(digits))
    elif 0 < point <= 21:
        text = f"{digits[:point]}.{digits[point:]}"
    elif -6 < point <= 0:
        text = "0." + "0" * -point + digits
    else:
        mantissa = digits if len(digits) == 1 else f"{digits[0]}.{digits[1:]}"
        power = point - 1
        text = f"{mantissa}e{'+' if power >= 0 else '-'}{abs(power)}"
    return sign + text


def datetime_to_string(value: datetime) -> str:
    """Format as ``YYYY-MM-DDTHH:MM:SS.mmm+HH:MM``.

    Naive datetimes are taken to be local time, the way a JavaScript ``Date``
    is rendered by node-postgres.
    """
    offset = value.utcoffset()
    if offset is None:
        value = value.astimezone()
        offset = value.utcoffset() or timedelta(0)
    minutes = int(offset.total_seconds()) // 60
    sign = "-" if minutes < 0 else "+"
    minutes = abs(minutes)
    return (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
        f"T{value.hour:02d}:{value.minute:02d}:{value.second:02d}.{value.microsecond // 1000:03d}"
        f"{sign}{minutes // 60:02d}:{minutes % 60:02d}"
    )
