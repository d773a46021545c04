"""DuckDB-backed query log store."""

import asyncio
import hashlib
import logging
import time
from pathlib import Path
from typing import Any

import duckdb

from querywatch.config import Settings
from querywatch.exceptions import ConnectionPoolExhaustedError, StoreError, StoreTimeoutError
from querywatch.querylog.builder import SQLQuery
from querywatch.store.pool import DuckDBConnectionPool
from querywatch.store.schema import create_query_log_table, load_query_log

logger = logging.getLogger(__name__)


def hash_query(sql: str) -> str:
    """Short SHA-256 of the normalized SQL text, used to correlate log lines."""
    normalized = " ".join(sql.lower().split())
    return hashlib.sha256(normalized.encode()).hexdigest()[:16]


class DuckDBLogStore:
    """
    Execute query log SQL against a DuckDB database.

    Every statement runs on a pooled cursor in a thread executor under a
    deadline. When the deadline passes, or the awaiting task is cancelled,
    the running statement is interrupted before the cursor goes back to
    the pool.

    Usage:
        store = DuckDBLogStore.from_settings(get_settings())
        await store.initialize()
        rows = await store.fetch_all(query, operation="query_logs")
        await store.close()
    """

    def __init__(
        self,
        database_path: str,
        table: str = "query_log",
        pool_size: int = 10,
        memory_limit: str = "1GB",
        threads: int = 4,
        read_only: bool = False,
        query_timeout_seconds: float = 70.0,
        pool_timeout: float = 10.0,
    ) -> None:
        self.database_path = database_path
        self.table = table
        self.read_only = read_only
        self.query_timeout_seconds = query_timeout_seconds
        self.pool = DuckDBConnectionPool(
            database_path=database_path,
            max_connections=pool_size,
            memory_limit=memory_limit,
            threads=threads,
            read_only=read_only,
            acquire_timeout=pool_timeout,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "DuckDBLogStore":
        return cls(
            database_path=settings.store_path,
            table=settings.query_log_table,
            pool_size=settings.store_pool_size,
            memory_limit=settings.store_memory_limit,
            threads=settings.store_threads,
            read_only=settings.store_read_only,
            query_timeout_seconds=settings.store_query_timeout_seconds,
            pool_timeout=settings.store_pool_timeout_seconds,
        )

    async def initialize(self, create_schema: bool = True) -> None:
        """
        Open the database and, unless read-only, create the log table.

        Raises:
            StoreError: If the database cannot be opened
        """
        if not self.read_only and not self.database_path.startswith(":memory:"):
            Path(self.database_path).parent.mkdir(parents=True, exist_ok=True)

        try:
            await self.pool.initialize()
            if create_schema and not self.read_only:
                loop = asyncio.get_running_loop()
                await loop.run_in_executor(
                    None, create_query_log_table, self.pool.root, self.table
                )
        except duckdb.Error as e:
            raise StoreError("open_store", str(e)) from e

        logger.info(
            "Log store ready",
            extra={"path": self.database_path, "table": self.table},
        )

    async def close(self) -> None:
        await self.pool.close()

    @staticmethod
    def _run(conn: duckdb.DuckDBPyConnection, query: SQLQuery) -> list[tuple[Any, ...]]:
        return conn.execute(query.sql, list(query.params)).fetchall()

    @staticmethod
    async def _settle(future: asyncio.Future) -> None:
        """Wait for an interrupted statement to unwind."""
        await asyncio.wait([future])
        if not future.cancelled():
            future.exception()

    async def _execute(
        self,
        conn: duckdb.DuckDBPyConnection,
        query: SQLQuery,
        operation: str,
        query_hash: str,
    ) -> list[tuple[Any, ...]]:
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(None, self._run, conn, query)
        try:
            return await asyncio.wait_for(
                asyncio.shield(future), timeout=self.query_timeout_seconds
            )
        except asyncio.TimeoutError:
            conn.interrupt()
            await self._settle(future)
            logger.error(
                "Store query timeout",
                extra={
                    "operation": operation,
                    "query_hash": query_hash,
                    "timeout_seconds": self.query_timeout_seconds,
                },
            )
            raise StoreTimeoutError(operation, self.query_timeout_seconds) from None
        except asyncio.CancelledError:
            conn.interrupt()
            await self._settle(future)
            raise
        except duckdb.Error as e:
            logger.error(
                f"Store query failed: {e}",
                extra={"operation": operation, "query_hash": query_hash},
            )
            raise StoreError(operation, str(e)) from e

    async def fetch_all(self, query: SQLQuery, operation: str) -> list[tuple[Any, ...]]:
        """
        Run a query and return every row.

        Args:
            query: SQL text and positional parameters
            operation: Operation name used in logs and error messages

        Returns:
            List of row tuples

        Raises:
            StoreTimeoutError: If the query exceeds ``query_timeout_seconds``
            StoreError: If the statement fails
            ConnectionPoolExhaustedError: If no cursor becomes available
        """
        start_time = time.time()
        query_hash = hash_query(query.sql)

        logger.debug(
            "Executing store query",
            extra={"operation": operation, "query_hash": query_hash},
        )

        try:
            async with self.pool.acquire() as conn:
                rows = await self._execute(conn, query, operation, query_hash)
        except ConnectionPoolExhaustedError as e:
            raise ConnectionPoolExhaustedError(
                self.pool.max_connections, operation=operation
            ) from e

        logger.debug(
            "Store query finished",
            extra={
                "operation": operation,
                "query_hash": query_hash,
                "row_count": len(rows),
                "execution_time": time.time() - start_time,
            },
        )
        return rows

    async def ping(self) -> None:
        """
        Check the store answers a trivial query.

        Raises:
            StoreError: If the store is unreachable
        """
        await self.fetch_all(SQLQuery("SELECT 1"), operation="health_check")

    async def load(self, path: Path) -> int:
        """
        Append a query log export to the log table.

        Raises:
            UnsupportedFormatError: If the export format is not supported
            StoreError: If DuckDB rejects the file
        """
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(
                None, load_query_log, self.pool.root, path, self.table
            )
        except duckdb.Error as e:
            raise StoreError("load_query_log", str(e)) from e
