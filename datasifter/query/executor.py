"""Operator query execution against the destination table."""

import time
from contextlib import AsyncExitStack
from typing import Any

from sqlalchemy import exc
from sqlalchemy.engine import Row as ResultRow
from sqlalchemy.ext.asyncio import AsyncResult

from datasifter.db.pool import ConnectionPool
from datasifter.exceptions import QueryExecutionError
from datasifter.logging_config import get_logger

logger = get_logger(__name__)


class ResultCursor:
    """
    Forward-only, single-consumer stream of result rows.

    The cursor holds its pooled connection until it is exhausted, closed,
    or fails; whichever comes first releases it.

    Usage:
        async with await executor.execute("SELECT * FROM data") as cursor:
            async for row in cursor:
                ...
    """

    def __init__(self, result: AsyncResult, resources: AsyncExitStack, sql: str):
        self._result = result
        self._resources = resources
        self.sql = sql
        self.rows_read = 0
        self._closed = False
        self._start_time = time.time()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def columns(self) -> list[str]:
        """Column names reported by the store for this result."""
        return list(self._result.keys())

    def __aiter__(self) -> "ResultCursor":
        return self

    async def __anext__(self) -> ResultRow:
        if self._closed:
            raise StopAsyncIteration

        try:
            row = await self._result.fetchone()
        except exc.SQLAlchemyError as e:
            await self.close()
            raise QueryExecutionError(f"Fetching results failed: {e}", statement=self.sql) from e

        if row is None:
            await self.close()
            raise StopAsyncIteration

        self.rows_read += 1
        return row

    async def close(self) -> None:
        """Discard any unread rows and release the connection."""
        if self._closed:
            return
        self._closed = True
        try:
            await self._result.close()
        finally:
            await self._resources.aclose()
            logger.debug(
                "Result cursor closed",
                rows_read=self.rows_read,
                elapsed_seconds=round(time.time() - self._start_time, 3),
            )

    async def __aenter__(self) -> "ResultCursor":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


class QueryExecutor:
    """
    Run operator-supplied SQL and hand back a lazy cursor.

    The statement is passed to the store verbatim; it is neither validated
    nor retried.

    Usage:
        executor = QueryExecutor(pool)
        cursor = await executor.execute("SELECT * FROM data")
    """

    def __init__(self, pool: ConnectionPool) -> None:
        self.pool = pool

    async def execute(self, sql: str) -> ResultCursor:
        """
        Execute SQL query and return a cursor over its rows.

        Args:
            sql: SQL query string

        Returns:
            ResultCursor bound to one pooled connection

        Raises:
            QueryExecutionError: If the store rejects the statement
            StoreConnectionError: If no connection can be obtained
        """
        logger.info("Executing query", query=" ".join(sql.split()))

        resources = AsyncExitStack()
        try:
            conn = await resources.enter_async_context(self.pool.acquire())
            result = await conn.stream(sql, error_cls=QueryExecutionError)
        except BaseException:
            await resources.aclose()
            raise

        return ResultCursor(result, resources, sql)
