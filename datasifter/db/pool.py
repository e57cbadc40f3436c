"""Bounded connection pool over the async SQLAlchemy engine."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import exc, text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, AsyncResult
from sqlalchemy.sql.elements import TextClause

from datasifter.config import Settings
from datasifter.db.base import create_engine, dispose_engine
from datasifter.exceptions import (
    ConnectionPoolExhaustedError,
    QueryError,
    StoreConnectionError,
)

logger = logging.getLogger(__name__)


def literal_statement(sql: str) -> TextClause:
    """
    Wrap raw SQL so that nothing in it is read as a bind parameter.

    Statements here are assembled from dataset fields or typed by the
    operator; a ``:name`` inside them is data, not a placeholder.
    """
    return text(sql.replace(":", "\\:"))


class PooledConnection:
    """
    A connection borrowed from `ConnectionPool`.

    Every statement commits on its own (autocommit isolation).
    """

    def __init__(self, conn: AsyncConnection) -> None:
        self._conn = conn

    async def execute(
        self, sql: str, error_cls: type[QueryError] = QueryError
    ) -> int:
        """
        Execute a statement that returns no rows.

        Args:
            sql: SQL statement
            error_cls: QueryError subclass raised on rejection

        Returns:
            Affected row count as reported by the driver

        Raises:
            QueryError: If the store rejects the statement
        """
        try:
            result = await self._conn.execute(literal_statement(sql))
        except exc.SQLAlchemyError as e:
            raise error_cls(f"Statement rejected: {_driver_message(e)}", statement=sql) from e
        return result.rowcount

    async def stream(
        self, sql: str, error_cls: type[QueryError] = QueryError
    ) -> AsyncResult:
        """
        Execute a query with a server-side cursor.

        Rows are fetched from the store as they are pulled from the result.

        Raises:
            QueryError: If the store rejects the statement
        """
        try:
            return await self._conn.stream(literal_statement(sql))
        except exc.SQLAlchemyError as e:
            raise error_cls(f"Query rejected: {_driver_message(e)}", statement=sql) from e


def _driver_message(error: exc.SQLAlchemyError) -> str:
    """Underlying driver message without SQLAlchemy's statement dump."""
    if isinstance(error, exc.DBAPIError) and error.orig is not None:
        return str(error.orig)
    return str(error).split("\n", 1)[0]


class ConnectionPool:
    """
    Shared handle to a bounded set of store connections.

    Acquisition suspends while every connection is borrowed; the pool's
    own timeout turns an indefinite wait into ConnectionPoolExhaustedError.

    Usage:
        pool = ConnectionPool.from_settings(settings)

        async with pool.acquire() as conn:
            await conn.execute("DROP TABLE IF EXISTS data")

        await pool.close()
    """

    def __init__(self, engine: AsyncEngine, capacity: int, timeout: float) -> None:
        """
        Initialize connection pool.

        Args:
            engine: Async engine configured with a bounded queue pool
            capacity: Most connections the engine will hand out at once
            timeout: Seconds the engine waits for a free connection
        """
        self.engine = engine
        self.capacity = capacity
        self.timeout = timeout
        self._closed = False

        logger.debug(
            "Initialized connection pool",
            extra={"capacity": capacity, "timeout": timeout},
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "ConnectionPool":
        """Create the engine and wrap it."""
        return cls(
            create_engine(settings),
            capacity=settings.pool_capacity,
            timeout=settings.db_pool_timeout,
        )

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[PooledConnection]:
        """
        Borrow a connection for the duration of the block.

        Raises:
            ConnectionPoolExhaustedError: If no connection frees up in time
            StoreConnectionError: If the store refuses the connection
        """
        if self._closed:
            raise StoreConnectionError("connection pool is closed")

        try:
            conn = await self.engine.connect()
        except exc.TimeoutError as e:
            logger.error(f"Connection pool exhausted: {self.capacity} in use")
            raise ConnectionPoolExhaustedError(self.capacity, self.timeout) from e
        except (exc.SQLAlchemyError, OSError) as e:
            raise StoreConnectionError(str(e).split("\n", 1)[0]) from e

        try:
            await conn.execution_options(isolation_level="AUTOCOMMIT")
            logger.debug("Acquired connection from pool")
            yield PooledConnection(conn)
        finally:
            await conn.close()
            logger.debug("Released connection back to pool")

    async def close(self) -> None:
        """
        Close all connections in pool.

        This method should be called when shutting down the application
        to properly clean up resources.
        """
        if self._closed:
            return

        self._closed = True
        await dispose_engine(self.engine)
