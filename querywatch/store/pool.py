"""Cursor pool over a single DuckDB database."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import duckdb

from querywatch.exceptions import ConnectionPoolExhaustedError

logger = logging.getLogger(__name__)


class DuckDBConnectionPool:
    """
    Bounded pool of DuckDB cursors.

    A DuckDB database file can be opened once per process, so the pool keeps
    one root connection and hands out cursors created from it. Each cursor
    is an independent connection to the same database and may run a
    statement on its own executor thread. Cursors are created lazily up to
    ``max_connections``; when all are busy, ``acquire`` waits up to
    ``acquire_timeout`` seconds for one to come back.

    Usage:
        pool = DuckDBConnectionPool(":memory:", max_connections=4)
        await pool.initialize()

        async with pool.acquire() as conn:
            rows = conn.execute("SELECT 1").fetchall()

        await pool.close()
    """

    def __init__(
        self,
        database_path: str,
        max_connections: int = 10,
        memory_limit: str = "1GB",
        threads: int = 4,
        read_only: bool = False,
        acquire_timeout: float = 10.0,
    ) -> None:
        """
        Args:
            database_path: DuckDB database file, or ":memory:"
            max_connections: Upper bound on cursors handed out at once
            memory_limit: DuckDB memory limit, e.g. "512MB"
            threads: DuckDB worker threads per statement
            read_only: Open the database file read-only
            acquire_timeout: Seconds to wait for a free cursor
        """
        self.database_path = database_path
        self.max_connections = max_connections
        self.memory_limit = memory_limit
        self.threads = threads
        self.read_only = read_only
        self.acquire_timeout = acquire_timeout

        self._root: duckdb.DuckDBPyConnection | None = None
        self._idle: asyncio.Queue[duckdb.DuckDBPyConnection] = asyncio.Queue(
            maxsize=max_connections
        )
        self._created = 0
        self._create_lock = asyncio.Lock()
        self._closed = False

    async def initialize(self, min_connections: int = 1) -> None:
        """
        Open the database and create ``min_connections`` idle cursors.

        Raises:
            ConnectionPoolExhaustedError: If the pool was already closed
            duckdb.Error: If the database cannot be opened
        """
        if self._closed:
            raise ConnectionPoolExhaustedError(self.max_connections)

        if self._root is None:
            loop = asyncio.get_running_loop()
            self._root = await loop.run_in_executor(None, self._open_root)

        while self._created < min(min_connections, self.max_connections):
            self._idle.put_nowait(await self._new_cursor())

        logger.debug(
            "DuckDB pool ready",
            extra={
                "path": self.database_path,
                "idle": self._idle.qsize(),
                "max_connections": self.max_connections,
            },
        )

    def _open_root(self) -> duckdb.DuckDBPyConnection:
        conn = duckdb.connect(self.database_path, read_only=self.read_only)
        try:
            conn.execute(f"SET memory_limit='{self.memory_limit}'")
            conn.execute(f"SET threads={int(self.threads)}")
            conn.execute("SET enable_progress_bar=false")
        except duckdb.Error:
            conn.close()
            raise
        return conn

    async def _new_cursor(self) -> duckdb.DuckDBPyConnection:
        loop = asyncio.get_running_loop()
        cursor = await loop.run_in_executor(None, self.root.cursor)
        self._created += 1
        logger.debug("Opened cursor %d/%d", self._created, self.max_connections)
        return cursor

    @property
    def root(self) -> duckdb.DuckDBPyConnection:
        """Root connection, used for schema management and loading."""
        if self._root is None:
            raise ConnectionPoolExhaustedError(self.max_connections)
        return self._root

    async def _take(self) -> duckdb.DuckDBPyConnection:
        try:
            return self._idle.get_nowait()
        except asyncio.QueueEmpty:
            pass

        async with self._create_lock:
            if self._created < self.max_connections:
                return await self._new_cursor()

        try:
            return await asyncio.wait_for(self._idle.get(), timeout=self.acquire_timeout)
        except asyncio.TimeoutError:
            logger.error(
                "DuckDB pool exhausted",
                extra={"max_connections": self.max_connections, "timeout": self.acquire_timeout},
            )
            raise ConnectionPoolExhaustedError(self.max_connections) from None

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[duckdb.DuckDBPyConnection]:
        """
        Borrow a cursor for the duration of the block.

        Raises:
            ConnectionPoolExhaustedError: If the pool is closed or no cursor
                frees up within ``acquire_timeout``
        """
        if self._closed or self._root is None:
            raise ConnectionPoolExhaustedError(self.max_connections)

        conn = await self._take()
        try:
            yield conn
        finally:
            if self._closed:
                conn.close()
            else:
                self._idle.put_nowait(conn)

    async def close(self) -> None:
        """Close idle cursors and the root connection. Idempotent."""
        if self._closed:
            return
        self._closed = True

        closed = 0
        while not self._idle.empty():
            conn = self._idle.get_nowait()
            try:
                conn.close()
                closed += 1
            except duckdb.Error as e:
                logger.warning("Error closing cursor: %s", e)

        if self._root is not None:
            self._root.close()
            self._root = None

        logger.info("DuckDB pool closed", extra={"cursors_closed": closed})

    @property
    def available_connections(self) -> int:
        """Idle cursors ready to be acquired."""
        return self._idle.qsize()

    @property
    def total_connections(self) -> int:
        """Cursors created so far."""
        return self._created

    @property
    def is_closed(self) -> bool:
        return self._closed
