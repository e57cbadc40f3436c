"""Destination table schema derived from the dataset header."""

from dataclasses import dataclass
from typing import Iterable, Sequence

from datasifter.db.pool import PooledConnection
from datasifter.exceptions import InsertError, TableProvisionError
from datasifter.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Schema:
    """
    Ordered column names taken verbatim from the header record.

    Names are neither validated nor deduplicated; the store reports
    anything it cannot accept when the table is created.
    """

    columns: tuple[str, ...]

    @classmethod
    def from_header(cls, record: Iterable[str]) -> "Schema":
        return cls(tuple(record))

    def __len__(self) -> int:
        return len(self.columns)

    def column_list(self) -> str:
        """Column names joined by commas, in header order."""
        return ", ".join(self.columns)

    def drop_table_statement(self, table: str) -> str:
        return f"DROP TABLE IF EXISTS {table}"

    def create_table_statement(self, table: str, column_length: int) -> str:
        columns = ", ".join(
            f"{name} VARCHAR({column_length}) NOT NULL" for name in self.columns
        )
        return f"CREATE TABLE {table} ({columns})"

    def insert_statement(self, table: str, fields: Sequence[str]) -> str:
        """
        INSERT for one row with every field embedded as a quoted literal.

        Fields are not escaped.
        """
        values = ", ".join(f"'{value}'" for value in fields)
        return f"INSERT INTO {table} ({self.column_list()}) VALUES ({values})"


async def provision_table(
    conn: PooledConnection,
    schema: Schema,
    table: str,
    column_length: int = 256,
) -> None:
    """
    Drop any previous destination table and create it anew.

    Args:
        conn: Borrowed connection
        schema: Columns for the new table
        table: Destination table name
        column_length: Declared VARCHAR capacity of each column

    Raises:
        TableProvisionError: If the store rejects the drop or the create
    """
    await conn.execute(schema.drop_table_statement(table), error_cls=TableProvisionError)
    await conn.execute(
        schema.create_table_statement(table, column_length),
        error_cls=TableProvisionError,
    )
    logger.info("Provisioned table", table=table, columns=len(schema))


async def insert_row(
    conn: PooledConnection, schema: Schema, table: str, fields: Sequence[str]
) -> int:
    """Insert a single row; returns the affected row count."""
    return await conn.execute(
        schema.insert_statement(table, fields), error_cls=InsertError
    )
