"""Base repository pattern for database operations."""

from __future__ import annotations

import sqlite3
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, List, Optional, Sequence, TypeVar

import aiosqlite

from core.exceptions import RepositoryError

from .connection import OptimizedSQLitePool

R = TypeVar('R', bound='BaseRepository')


class BaseRepository:
    """Common database operations.

    A repository is either bound to the pool, where each call borrows a
    connection for one statement, or to the connection of an open
    transaction (see :meth:`transaction`), where every call joins that
    transaction.
    """

    def __init__(self, pool: OptimizedSQLitePool, conn: Optional[aiosqlite.Connection] = None) -> None:
        self.pool = pool
        self._conn = conn

    @property
    def in_transaction(self) -> bool:
        return self._conn is not None

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[aiosqlite.Connection]:
        if self._conn is not None:
            yield self._conn
            return
        async with self.pool.connection() as conn:
            yield conn

    @asynccontextmanager
    async def transaction(self: R) -> AsyncIterator[R]:
        """Run the block atomically with a repository bound to the transaction.

        Nested calls join the outer transaction. Failures of BEGIN, COMMIT
        or ROLLBACK surface as :class:`RepositoryError`.
        """
        if self._conn is not None:
            yield self
            return
        try:
            async with self.pool.transaction() as conn:
                yield type(self)(self.pool, conn)
        except sqlite3.Error as exc:
            raise RepositoryError(str(exc)) from exc

    async def execute(self, query: str, params: Sequence[Any] = ()) -> int:
        """Execute a statement and return the number of affected rows."""
        try:
            async with self._connection() as conn:
                cursor = await conn.execute(query, params)
                return cursor.rowcount
        except sqlite3.Error as exc:
            raise RepositoryError(str(exc)) from exc

    async def insert(self, query: str, params: Sequence[Any] = ()) -> int:
        """Execute an INSERT and return the new row id."""
        try:
            async with self._connection() as conn:
                cursor = await conn.execute(query, params)
                return cursor.lastrowid
        except sqlite3.Error as exc:
            raise RepositoryError(str(exc)) from exc

    async def execute_many(self, query: str, params: Sequence[Sequence[Any]]) -> None:
        """Execute a statement once per parameter set."""
        if not params:
            return
        try:
            async with self._connection() as conn:
                await conn.executemany(query, params)
        except sqlite3.Error as exc:
            raise RepositoryError(str(exc)) from exc

    async def fetch_one(self, query: str, params: Sequence[Any] = ()) -> Optional[aiosqlite.Row]:
        """Fetch a single row."""
        try:
            async with self._connection() as conn:
                cursor = await conn.execute(query, params)
                return await cursor.fetchone()
        except sqlite3.Error as exc:
            raise RepositoryError(str(exc)) from exc

    async def fetch_all(self, query: str, params: Sequence[Any] = ()) -> List[aiosqlite.Row]:
        """Fetch all rows."""
        try:
            async with self._connection() as conn:
                cursor = await conn.execute(query, params)
                return list(await cursor.fetchall())
        except sqlite3.Error as exc:
            raise RepositoryError(str(exc)) from exc

    async def fetch_value(self, query: str, params: Sequence[Any] = ()) -> Optional[Any]:
        """Fetch a single value from a single row."""
        row = await self.fetch_one(query, params)
        return row[0] if row else None

    async def fetch_column(self, query: str, params: Sequence[Any] = ()) -> List[Any]:
        """Fetch first column from all rows."""
        rows = await self.fetch_all(query, params)
        return [row[0] for row in rows]
