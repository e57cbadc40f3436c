"""Dataset ingestion for datasifter.

This module derives the destination schema from a dataset header,
provisions the table, and loads rows concurrently through the pool.
"""

from datasifter.ingestion.reader import CsvSource, Row
from datasifter.ingestion.scheduler import (
    IngestionHandle,
    IngestionReport,
    IngestionScheduler,
    start_ingestion,
)
from datasifter.ingestion.schema import Schema, insert_row, provision_table

__all__ = [
    "CsvSource",
    "Row",
    "Schema",
    "provision_table",
    "insert_row",
    "IngestionScheduler",
    "IngestionReport",
    "IngestionHandle",
    "start_ingestion",
]
