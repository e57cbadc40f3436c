"""Relational store access.

This package provides async connectivity for SQLite and PostgreSQL through
a bounded connection pool.

Example usage:
    ```python
    from datasifter.config import get_settings
    from datasifter.db import ConnectionPool

    pool = ConnectionPool.from_settings(get_settings())

    async with pool.acquire() as conn:
        await conn.execute("DROP TABLE IF EXISTS data")

    await pool.close()
    ```
"""

from datasifter.db.base import check_connection, create_engine, dispose_engine
from datasifter.db.pool import ConnectionPool, PooledConnection, literal_statement

__all__ = [
    "create_engine",
    "check_connection",
    "dispose_engine",
    "ConnectionPool",
    "PooledConnection",
    "literal_statement",
]
