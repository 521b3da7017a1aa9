"""PostgreSQL pool handle for postgres-mcp.

Wraps a psycopg v3 async connection pool. One Database is created at
startup and passed explicitly to every tool; nothing looks it up globally.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import psycopg
from psycopg_pool import AsyncConnectionPool, PoolTimeout

from postgres_mcp.core.exceptions import (
    NetworkError,
    PoolNotInitializedError,
    TimeoutError,
    TransactionError,
)
from postgres_mcp.core.logging import get_logger
from postgres_mcp.core.marshal import marshal_result
from postgres_mcp.core.monitoring import query_span

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from postgres_mcp.core.config import ServerConfig

_SERVER_INFO_SQL = """
SELECT
    version() AS version,
    current_database() AS database,
    current_user AS "user",
    pg_postmaster_start_time() AS started_at
"""


class Database:
    """Long-lived handle around an AsyncConnectionPool of autocommit connections."""

    def __init__(self, config: ServerConfig) -> None:
        self.config = config
        self._pool: AsyncConnectionPool[Any] | None = None

    async def __aenter__(self) -> Database:
        await self.open()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    @property
    def is_open(self) -> bool:
        return self._pool is not None and not self._pool.closed

    async def open(self) -> None:
        """Open the pool and wait until min_size connections are ready."""
        if self.is_open:
            return

        log = get_logger("database")
        pool: AsyncConnectionPool[Any] = AsyncConnectionPool(
            conninfo=self.config.dsn,
            min_size=self.config.pool_min_size,
            max_size=self.config.pool_max_size,
            timeout=self.config.pool_timeout,
            kwargs=self.config.connection_kwargs(),
            name="postgres-mcp",
            open=False,
        )
        try:
            await pool.open(wait=True, timeout=self.config.pool_timeout)
        except (PoolTimeout, psycopg.OperationalError) as e:
            await pool.close()
            msg = f"Connection failed to {self.config.redacted_dsn}: {e}"
            raise NetworkError(msg) from e

        self._pool = pool
        log.info(
            "pool opened",
            min_size=self.config.pool_min_size,
            max_size=self.config.pool_max_size,
        )

    async def close(self) -> None:
        """Close the pool. Safe to call more than once."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            get_logger("database").info("pool closed")

    def _require_pool(self) -> AsyncConnectionPool[Any]:
        if not self.is_open:
            raise PoolNotInitializedError("database not connected")
        assert self._pool is not None
        return self._pool

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[psycopg.AsyncConnection[Any]]:
        """Check out an autocommit connection for the duration of the block."""
        pool = self._require_pool()
        try:
            async with pool.connection() as conn:
                yield conn
        except PoolTimeout as e:
            msg = f"Timed out waiting for a connection after {self.config.pool_timeout}s"
            raise TimeoutError(msg) from e

    @asynccontextmanager
    async def rollback_only(self) -> AsyncIterator[psycopg.AsyncConnection[Any]]:
        """Yield a connection inside a transaction that is always rolled back."""
        async with self.connection() as conn:
            try:
                await conn.execute("BEGIN")
            except psycopg.Error as e:
                msg = f"failed to begin transaction: {e}"
                raise TransactionError(msg) from e
            try:
                yield conn
            finally:
                await _rollback_quietly(conn)

    async def ping(self) -> None:
        """Round trip a trivial statement. Raises NetworkError on failure."""
        try:
            async with self.connection() as conn, conn.cursor() as cur:
                with query_span("SELECT 1"):
                    await cur.execute("SELECT 1")
                    await cur.fetchone()
        except psycopg.Error as e:
            msg = f"Failed to connect to database: {e}"
            raise NetworkError(msg) from e

    async def server_info(self) -> dict[str, Any]:
        """Server version, database, user and start time."""
        try:
            async with self.connection() as conn, conn.cursor() as cur:
                with query_span(_SERVER_INFO_SQL):
                    await cur.execute(_SERVER_INFO_SQL)
                    result = await marshal_result(cur)
        except psycopg.Error as e:
            msg = f"Database error: {e}"
            raise NetworkError(msg) from e
        return result.rows[0] if result.rows else {}


async def _rollback_quietly(conn: psycopg.AsyncConnection[Any]) -> None:
    # Best effort: a dropped connection is discarded by the pool anyway.
    try:
        await conn.execute("ROLLBACK")
    except psycopg.Error as e:
        get_logger("database").debug("rollback failed", error=str(e))
