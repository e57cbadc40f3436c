"""Concurrent row ingestion and the barrier that waits for it.

Each data row becomes one independent insert unit: borrow a pooled
connection, run a single INSERT, give the connection back. Units are
dispatched without waiting on each other; a semaphore sized to the pool
capacity keeps at most that many in flight and holds back the reader
when all slots are taken.

A failing unit does not cancel its siblings. Every dispatched unit runs
to completion, and only then is the first failure (in completion order)
raised.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import AsyncIterator

from datasifter.db.pool import ConnectionPool
from datasifter.exceptions import FieldCountMismatchError
from datasifter.ingestion.reader import CsvSource, Row
from datasifter.ingestion.schema import Schema, insert_row
from datasifter.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class IngestionReport:
    """Outcome of a fully successful ingestion."""

    table: str
    rows: int
    duration_seconds: float


class IngestionScheduler:
    """
    Fan rows out into concurrent insert units.

    Example:
        scheduler = IngestionScheduler(pool, schema, table="data")
        report = await scheduler.run(source.records())
    """

    def __init__(
        self,
        pool: ConnectionPool,
        schema: Schema,
        table: str,
        max_in_flight: int | None = None,
    ):
        """
        Initialize scheduler.

        Args:
            pool: Connection pool shared by all units
            schema: Column layout every row must match
            table: Destination table
            max_in_flight: Concurrent unit cap (defaults to pool capacity)
        """
        self.pool = pool
        self.schema = schema
        self.table = table
        self.max_in_flight = max_in_flight or pool.capacity

    async def run(self, rows: AsyncIterator[Row]) -> IngestionReport:
        """
        Insert every row and wait for all units to finish.

        Args:
            rows: Lazy sequence of parsed rows

        Returns:
            IngestionReport with the number of rows inserted

        Raises:
            ParseError: If the source is malformed or a row has the wrong
                field count; raised after in-flight units finish
            QueryError: First insert rejected by the store
            StoreConnectionError: First unit that could not get a connection
        """
        start_time = time.time()
        slots = asyncio.Semaphore(self.max_in_flight)
        pending: set[asyncio.Task] = set()
        failures: list[BaseException] = []
        dispatched = 0

        def settle(unit: asyncio.Task) -> None:
            slots.release()
            pending.discard(unit)
            if not unit.cancelled() and unit.exception() is not None:
                failures.append(unit.exception())

        abort: Exception | None = None
        try:
            async for row in rows:
                if len(row.fields) != len(self.schema):
                    raise FieldCountMismatchError(
                        row.line, len(self.schema), len(row.fields)
                    )
                await slots.acquire()
                unit = asyncio.create_task(self._insert(row))
                unit.add_done_callback(settle)
                pending.add(unit)
                dispatched += 1
        except Exception as e:
            abort = e

        if pending:
            await asyncio.wait(set(pending))

        duration = time.time() - start_time

        if abort is not None:
            logger.error(
                "Ingestion aborted",
                table=self.table,
                dispatched=dispatched,
                failed_units=len(failures),
                error=str(abort),
            )
            raise abort

        if failures:
            logger.error(
                "Ingestion failed",
                table=self.table,
                dispatched=dispatched,
                failed_units=len(failures),
                error=str(failures[0]),
            )
            raise failures[0]

        logger.info(
            "Ingestion complete",
            table=self.table,
            rows=dispatched,
            duration_seconds=round(duration, 3),
        )
        return IngestionReport(table=self.table, rows=dispatched, duration_seconds=duration)

    async def _insert(self, row: Row) -> int:
        """One unit: borrow a connection and insert a single row."""
        async with self.pool.acquire() as conn:
            return await insert_row(conn, self.schema, self.table, row.fields)


class IngestionHandle:
    """
    Background ingestion, awaited once before the query runs.

    `wait()` is the completion barrier: it returns only after every
    insert unit has finished and re-raises the ingestion's failure.
    """

    def __init__(self, task: asyncio.Task, schema: Schema):
        self._task = task
        self.schema = schema

    @property
    def done(self) -> bool:
        return self._task.done()

    async def wait(self) -> IngestionReport:
        return await self._task

    async def drain(self) -> BaseException | None:
        """
        Let ingestion run to completion without raising.

        For callers that are already failing for another reason and must
        not release the pool under running units.

        Returns:
            The ingestion's failure, or None if it succeeded
        """
        await asyncio.wait({self._task})
        if self._task.cancelled():
            return asyncio.CancelledError()
        return self._task.exception()


def start_ingestion(
    pool: ConnectionPool,
    source: CsvSource,
    schema: Schema,
    table: str,
) -> IngestionHandle:
    """
    Spawn ingestion of the remaining source records as a background task.

    The source must already be positioned past its header; it is closed
    when ingestion ends, successfully or not.
    """

    async def ingest() -> IngestionReport:
        try:
            scheduler = IngestionScheduler(pool, schema, table)
            return await scheduler.run(source.records())
        finally:
            await source.close()

    task = asyncio.create_task(ingest(), name=f"ingest:{table}")
    logger.debug("Started background ingestion", table=table, source=str(source.path))
    return IngestionHandle(task, schema)
