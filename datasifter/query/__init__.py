"""Query execution and result decoding."""

from datasifter.query.decoder import (
    DECODE_PRECEDENCE,
    DecodeAttempt,
    decode_row,
    decode_value,
)
from datasifter.query.executor import QueryExecutor, ResultCursor

__all__ = [
    "QueryExecutor",
    "ResultCursor",
    "DecodeAttempt",
    "DECODE_PRECEDENCE",
    "decode_value",
    "decode_row",
]
