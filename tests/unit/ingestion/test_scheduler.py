"""Tests for concurrent ingestion and the completion barrier."""

import asyncio
from contextlib import asynccontextmanager

import pytest

from datasifter.exceptions import FieldCountMismatchError, InsertError
from datasifter.ingestion.reader import CsvSource, Row
from datasifter.ingestion.scheduler import (
    IngestionHandle,
    IngestionScheduler,
    start_ingestion,
)
from datasifter.ingestion.schema import Schema, provision_table


class RecordingConnection:
    """Connection double that records statements and can fail on demand."""

    def __init__(self, pool: "RecordingPool"):
        self.pool = pool

    async def execute(self, sql, error_cls=InsertError):
        self.pool.in_flight += 1
        self.pool.max_in_flight = max(self.pool.max_in_flight, self.pool.in_flight)
        try:
            delay = self.pool.delays.get(sql, self.pool.default_delay)
            await asyncio.sleep(delay)
            self.pool.executed.append(sql)
            if sql in self.pool.failing:
                raise error_cls(f"rejected: {sql}", statement=sql)
            return 1
        finally:
            self.pool.in_flight -= 1


class RecordingPool:
    """Pool double with a fixed capacity."""

    def __init__(self, capacity: int = 2, default_delay: float = 0.01):
        self.capacity = capacity
        self.default_delay = default_delay
        self.delays: dict[str, float] = {}
        self.failing: set[str] = set()
        self.executed: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    @asynccontextmanager
    async def acquire(self):
        yield RecordingConnection(self)


def insert_for(values: list[str]) -> str:
    return SCHEMA.insert_statement("data", values)


SCHEMA = Schema.from_header(["id", "name"])


async def rows_from(records: list[list[str]]):
    for line, fields in enumerate(records, start=2):
        yield Row(line=line, fields=fields)


class TestIngestionScheduler:
    """Test insert fan-out."""

    async def test_every_row_is_inserted(self):
        pool = RecordingPool()
        records = [[str(i), f"user{i}"] for i in range(10)]

        report = await IngestionScheduler(pool, SCHEMA, "data").run(rows_from(records))

        assert report.rows == 10
        assert report.table == "data"
        assert sorted(pool.executed) == sorted(insert_for(r) for r in records)

    async def test_empty_dataset(self):
        pool = RecordingPool()

        report = await IngestionScheduler(pool, SCHEMA, "data").run(rows_from([]))

        assert report.rows == 0
        assert pool.executed == []

    async def test_concurrency_bounded_by_pool_capacity(self):
        pool = RecordingPool(capacity=3)
        records = [[str(i), "x"] for i in range(20)]

        await IngestionScheduler(pool, SCHEMA, "data").run(rows_from(records))

        assert pool.max_in_flight == 3

    async def test_explicit_in_flight_cap(self):
        pool = RecordingPool(capacity=5)
        records = [[str(i), "x"] for i in range(10)]

        await IngestionScheduler(pool, SCHEMA, "data", max_in_flight=1).run(rows_from(records))

        assert pool.max_in_flight == 1

    async def test_failure_does_not_cancel_siblings(self):
        pool = RecordingPool(capacity=2)
        records = [[str(i), "x"] for i in range(8)]
        pool.failing.add(insert_for(records[1]))

        with pytest.raises(InsertError):
            await IngestionScheduler(pool, SCHEMA, "data").run(rows_from(records))

        assert len(pool.executed) == 8
        assert pool.in_flight == 0

    async def test_first_failure_in_completion_order_is_raised(self):
        pool = RecordingPool(capacity=4)
        slow, fast = ["1", "slow"], ["2", "fast"]
        pool.failing.update({insert_for(slow), insert_for(fast)})
        pool.delays[insert_for(slow)] = 0.1
        pool.delays[insert_for(fast)] = 0.0

        with pytest.raises(InsertError) as exc_info:
            await IngestionScheduler(pool, SCHEMA, "data").run(rows_from([slow, fast]))

        assert "fast" in exc_info.value.message

    async def test_field_count_mismatch_aborts_after_in_flight_units(self):
        pool = RecordingPool(capacity=4, default_delay=0.05)
        records = [["1", "a"], ["2", "b"], ["3", "c", "extra"], ["4", "d"]]

        with pytest.raises(FieldCountMismatchError) as exc_info:
            await IngestionScheduler(pool, SCHEMA, "data").run(rows_from(records))

        assert exc_info.value.context == {"line": 4, "expected": 2, "actual": 3}
        assert sorted(pool.executed) == sorted([insert_for(records[0]), insert_for(records[1])])
        assert pool.in_flight == 0

    async def test_too_few_fields_is_also_fatal(self):
        pool = RecordingPool()

        with pytest.raises(FieldCountMismatchError):
            await IngestionScheduler(pool, SCHEMA, "data").run(rows_from([["1"]]))

        assert pool.executed == []


class TestIngestionHandle:
    """Test the background task and its barrier."""

    async def test_wait_returns_report(self):
        pool = RecordingPool()

        async def run():
            return await IngestionScheduler(pool, SCHEMA, "data").run(
                rows_from([["1", "a"], ["2", "b"]])
            )

        handle = IngestionHandle(asyncio.create_task(run()), SCHEMA)
        report = await handle.wait()

        assert handle.done
        assert report.rows == 2
        assert len(pool.executed) == 2

    async def test_wait_reraises_failure(self):
        pool = RecordingPool()
        pool.failing.add(insert_for(["1", "a"]))

        async def run():
            return await IngestionScheduler(pool, SCHEMA, "data").run(rows_from([["1", "a"]]))

        handle = IngestionHandle(asyncio.create_task(run()), SCHEMA)

        with pytest.raises(InsertError):
            await handle.wait()

    async def test_drain_waits_without_raising(self):
        pool = RecordingPool(default_delay=0.02)
        pool.failing.add(insert_for(["2", "b"]))

        async def run():
            return await IngestionScheduler(pool, SCHEMA, "data").run(
                rows_from([["1", "a"], ["2", "b"], ["3", "c"]])
            )

        handle = IngestionHandle(asyncio.create_task(run()), SCHEMA)
        failure = await handle.drain()

        assert handle.done
        assert isinstance(failure, InsertError)
        assert len(pool.executed) == 3
        assert pool.in_flight == 0

    async def test_drain_after_success(self):
        pool = RecordingPool()

        async def run():
            return await IngestionScheduler(pool, SCHEMA, "data").run(rows_from([["1", "a"]]))

        handle = IngestionHandle(asyncio.create_task(run()), SCHEMA)

        assert await handle.drain() is None
        assert (await handle.wait()).rows == 1

    async def test_start_ingestion_loads_sqlite_in_background(self, pool, write_csv):
        path = write_csv([["id", "name"], *[[str(i), f"n{i}"] for i in range(25)]])
        source = CsvSource(path, chunk_size=4)
        await source.open()
        schema = await source.read_header()

        async with pool.acquire() as conn:
            await provision_table(conn, schema, "data")

        handle = start_ingestion(pool, source, schema, "data")
        report = await handle.wait()

        assert report.rows == 25
        async with pool.acquire() as conn:
            result = await conn.stream("SELECT COUNT(*) AS n FROM data")
            count = [row.n async for row in result][0]
        assert count == 25

    async def test_start_ingestion_closes_source_on_failure(self, pool, write_csv):
        path = write_csv([["a", "b"], ["1", "2", "3"]])
        source = CsvSource(path)
        await source.open()
        schema = await source.read_header()

        async with pool.acquire() as conn:
            await provision_table(conn, schema, "data")

        handle = start_ingestion(pool, source, schema, "data")

        with pytest.raises(FieldCountMismatchError):
            await handle.wait()
        assert source._file is None
