"""Custom exceptions for datasifter."""

from pathlib import Path
from typing import Any

STATEMENT_PREVIEW_LENGTH = 200


def _preview(sql: str) -> str:
    """Shorten a statement for error context."""
    sql = " ".join(sql.split())
    if len(sql) > STATEMENT_PREVIEW_LENGTH:
        return sql[:STATEMENT_PREVIEW_LENGTH] + "..."
    return sql


class DataSifterError(Exception):
    """Base exception for all datasifter errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }


class ConfigurationError(DataSifterError):
    """Configuration-related errors."""

    pass


class InputError(DataSifterError):
    """Operator input that cannot be acted upon."""

    def __init__(self, value: str, expected: list[str]) -> None:
        super().__init__(
            f"Unrecognised choice: {value!r} (expected one of {', '.join(expected)})",
            value=value,
            expected=expected,
        )


class DatasetNotFoundError(DataSifterError):
    """Input dataset file does not exist."""

    def __init__(self, path: Path) -> None:
        super().__init__(f"Specified CSV file {path} does not exist", path=str(path))


class ParseError(DataSifterError):
    """Source dataset could not be parsed."""

    pass


class MissingHeaderError(ParseError):
    """Source dataset has no header record."""

    def __init__(self, source: str) -> None:
        super().__init__(f"No header record found in {source}", source=source)


class FieldCountMismatchError(ParseError):
    """A record's field count differs from the header's."""

    def __init__(self, line: int, expected: int, actual: int) -> None:
        super().__init__(
            f"Field list must match: line {line} has {actual} fields, header has {expected}",
            line=line,
            expected=expected,
            actual=actual,
        )


class MalformedRecordError(ParseError):
    """A record is not valid delimited text."""

    def __init__(self, line: int, details: str) -> None:
        super().__init__(f"Malformed record at line {line}: {details}", line=line, details=details)


class StoreConnectionError(DataSifterError):
    """Connection to the relational store failed."""

    def __init__(self, details: str) -> None:
        super().__init__(f"Unable to connect to database: {details}", details=details)


class ConnectionPoolExhaustedError(StoreConnectionError):
    """No pooled connection became free within the wait policy."""

    def __init__(self, capacity: int, timeout: float) -> None:
        DataSifterError.__init__(
            self,
            f"Connection pool exhausted: all {capacity} connections in use after {timeout}s",
            capacity=capacity,
            timeout=timeout,
        )


class QueryError(DataSifterError):
    """Statement rejected by the store."""

    def __init__(self, message: str, statement: str | None = None) -> None:
        super().__init__(
            message,
            statement=_preview(statement) if statement is not None else None,
        )


class TableProvisionError(QueryError):
    """Destination table could not be dropped or created."""

    pass


class InsertError(QueryError):
    """An ingestion insert was rejected."""

    pass


class QueryExecutionError(QueryError):
    """The operator's query failed."""

    pass


class DecodeError(DataSifterError):
    """A result value matches none of the known representations."""

    def __init__(self, column: str, type_name: str) -> None:
        super().__init__(
            f"No determinable value for column {column!r} of type {type_name}",
            column=column,
            type_name=type_name,
        )


class PreconditionError(DataSifterError):
    """An operation's precondition does not hold."""

    pass


class OutputExistsError(PreconditionError):
    """Export destination already exists."""

    def __init__(self, path: Path) -> None:
        super().__init__(
            f"Output file already exists: {path}. Delete existing file first",
            path=str(path),
        )


def get_exit_code(error: Exception) -> int:
    """Map exception to process exit status."""
    status_map = {
        ParseError: 65,
        DecodeError: 65,
        InputError: 64,
        DatasetNotFoundError: 66,
        StoreConnectionError: 69,
        QueryError: 70,
        OutputExistsError: 73,
        PreconditionError: 73,
        ConfigurationError: 78,
    }

    for exc_type, status in status_map.items():
        if isinstance(error, exc_type):
            return status

    return 1
