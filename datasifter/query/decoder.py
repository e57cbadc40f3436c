"""Text rendering of typed query result values.

Result cells arrive as whatever Python type the driver produced. Each
cell is tried against a fixed precedence of representations and the
first that accepts it renders the text written to the export:

    text, 32-bit integer, 64-bit integer, 32-bit float, 64-bit float,
    arbitrary-precision decimal

The order is a heuristic rather than a type mapping. A binary value that
happens to be valid UTF-8 is rendered as text before anything more
specific is considered. A value no representation accepts (NULL, booleans,
dates, ...) raises DecodeError for the row being exported.

The 32-bit float attempt is chosen by value, not by the column's declared
type: both drivers hand back a Python float for REAL and DOUBLE columns
alike. Any double that is exactly representable in binary32 is therefore
rendered with the shortest binary32 digits, e.g. 0.10000000149011612
becomes "0.1", which parses back to a different double.
"""

import math
import struct
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Sequence

from datasifter.exceptions import DecodeError

INT32_MIN, INT32_MAX = -(2**31), 2**31 - 1
INT64_MIN, INT64_MAX = -(2**63), 2**63 - 1


@dataclass(frozen=True)
class DecodeAttempt:
    """One representation: returns the rendered text, or None if it does not apply."""

    name: str
    decode: Callable[[Any], str | None]


def _as_text(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        try:
            return bytes(value).decode("utf-8")
        except UnicodeDecodeError:
            return None
    return None


def _is_integer(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _as_int32(value: Any) -> str | None:
    if _is_integer(value) and INT32_MIN <= value <= INT32_MAX:
        return str(value)
    return None


def _as_int64(value: Any) -> str | None:
    if _is_integer(value) and INT64_MIN <= value <= INT64_MAX:
        return str(value)
    return None


def _round_float32(value: float) -> float:
    return struct.unpack("<f", struct.pack("<f", value))[0]


def _render_special(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    return "inf" if value > 0 else "-inf"


def _render_plain(digits: str) -> str:
    """Positional notation without exponent or trailing zeros."""
    return format(Decimal(digits).normalize(), "f")


def _shortest_float32(value: float) -> str:
    """Fewest significant digits that still round-trip through binary32."""
    for precision in range(1, 10):
        candidate = f"{value:.{precision}g}"
        try:
            if _round_float32(float(candidate)) == value:
                return candidate
        except OverflowError:
            continue
    return repr(value)


def _as_float32(value: Any) -> str | None:
    if not isinstance(value, float):
        return None
    if not math.isfinite(value):
        return _render_special(value)
    try:
        if _round_float32(value) != value:
            return None
    except OverflowError:
        return None
    return _render_plain(_shortest_float32(value))


def _as_float64(value: Any) -> str | None:
    if not isinstance(value, float):
        return None
    if not math.isfinite(value):
        return _render_special(value)
    return _render_plain(repr(value))


def _as_decimal(value: Any) -> str | None:
    if isinstance(value, Decimal) and value.is_finite():
        return format(value, "f")
    return None


DECODE_PRECEDENCE: tuple[DecodeAttempt, ...] = (
    DecodeAttempt("text", _as_text),
    DecodeAttempt("int32", _as_int32),
    DecodeAttempt("int64", _as_int64),
    DecodeAttempt("float32", _as_float32),
    DecodeAttempt("float64", _as_float64),
    DecodeAttempt("decimal", _as_decimal),
)


def decode_value(value: Any, column: str = "?") -> str:
    """
    Render one result cell as text.

    String cells are returned as the same object, unchanged.

    Args:
        value: Cell value as produced by the driver
        column: Column name, used in the error

    Returns:
        Text form of the value

    Raises:
        DecodeError: If no representation accepts the value
    """
    for attempt in DECODE_PRECEDENCE:
        decoded = attempt.decode(value)
        if decoded is not None:
            return decoded

    type_name = "NULL" if value is None else type(value).__name__
    raise DecodeError(column, type_name)


def decode_row(values: Sequence[Any], columns: Sequence[str]) -> list[str]:
    """Render every cell of a row, in column order."""
    return [decode_value(value, column) for value, column in zip(values, columns)]
