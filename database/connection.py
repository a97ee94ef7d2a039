"""SQLite connection pool over aiosqlite.

The default pool holds one connection: SQLite allows a single writer, and
routing every statement through one connection linearizes writes so that
the status re-read inside a draw transaction is sufficient to make draws
exactly-once.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from core.constants import DatabaseDefaults
from core.exceptions import ConnectionPoolError
from core.logger import get_logger

logger = get_logger(__name__)


class OptimizedSQLitePool:
    """Fixed-size pool of autocommit aiosqlite connections."""

    def __init__(
        self,
        database_path: str,
        pool_size: int = DatabaseDefaults.POOL_SIZE,
        busy_timeout_ms: int = DatabaseDefaults.BUSY_TIMEOUT,
    ) -> None:
        self.database_path = Path(database_path)
        self.pool_size = max(1, pool_size)
        self.busy_timeout_ms = busy_timeout_ms
        self._connections: list[aiosqlite.Connection] = []
        self._idle: asyncio.Queue[aiosqlite.Connection] = asyncio.Queue()
        self._lock = asyncio.Lock()
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def init_pool(self) -> None:
        async with self._lock:
            if self._initialized:
                return

            try:
                self.database_path.parent.mkdir(parents=True, exist_ok=True)
                for _ in range(self.pool_size):
                    conn = await self._open_connection()
                    self._connections.append(conn)
                    self._idle.put_nowait(conn)
            except Exception as exc:
                await self._close_all()
                raise ConnectionPoolError(f"Cannot open database {self.database_path}: {exc}") from exc

            self._initialized = True
            logger.info(f"Database pool ready: {self.database_path} ({self.pool_size} connection(s))")

    async def close(self) -> None:
        async with self._lock:
            await self._close_all()
            self._initialized = False

    async def _close_all(self) -> None:
        while self._connections:
            conn = self._connections.pop()
            await conn.close()
        self._idle = asyncio.Queue()

    async def _open_connection(self) -> aiosqlite.Connection:
        # isolation_level=None: transactions are opened explicitly
        conn = await aiosqlite.connect(self.database_path.as_posix(), isolation_level=None)
        conn.row_factory = aiosqlite.Row
        try:
            await self._apply_pragma(conn)
        except Exception:
            await conn.close()
            raise
        return conn

    async def _replace(self, conn: aiosqlite.Connection) -> None:
        """Swap a connection whose state is unknown for a fresh one."""
        if conn in self._connections:
            self._connections.remove(conn)
        try:
            await conn.close()
        except Exception as exc:
            logger.warning(f"Error closing broken connection: {exc}")
        try:
            fresh = await self._open_connection()
        except Exception as exc:
            raise ConnectionPoolError(f"Cannot reopen database {self.database_path}: {exc}") from exc
        self._connections.append(fresh)
        self._idle.put_nowait(fresh)
        logger.warning("Replaced a database connection after a failed rollback")

    async def _apply_pragma(self, conn: aiosqlite.Connection) -> None:
        await conn.execute("PRAGMA journal_mode=WAL")
        await conn.execute("PRAGMA synchronous=NORMAL")
        await conn.execute("PRAGMA foreign_keys=ON")
        await conn.execute("PRAGMA temp_store=MEMORY")
        await conn.execute(f"PRAGMA busy_timeout={self.busy_timeout_ms}")

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        if not self._initialized:
            await self.init_pool()
        conn = await self._idle.get()
        try:
            yield conn
        finally:
            self._idle.put_nowait(conn)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Hold one connection inside ``BEGIN IMMEDIATE`` ... ``COMMIT``.

        Any exception raised in the block rolls the transaction back and
        propagates. Callers must not use the pool again until the block
        exits, or they will wait for their own connection.

        BEGIN and COMMIT run under the same guard as the block, so a caller
        cancelled mid-statement never hands back a connection with an open
        transaction. A connection that cannot be rolled back is replaced.
        """
        if not self._initialized:
            await self.init_pool()
        conn = await self._idle.get()
        reusable = True
        try:
            await conn.execute("BEGIN IMMEDIATE")
            yield conn
            await conn.commit()
        except BaseException:
            try:
                # Unconditional: a cancelled BEGIN may still be pending on
                # the worker thread, and the rollback is queued behind it.
                await conn.rollback()
            except asyncio.CancelledError:
                # The rollback was already queued before the cancellation
                raise
            except Exception as exc:
                logger.error(f"Rollback failed: {exc}")
                reusable = False
            raise
        finally:
            if reusable:
                self._idle.put_nowait(conn)
            else:
                await self._replace(conn)
