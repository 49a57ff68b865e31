"""Embedded relational engine over SQLite (aiosqlite).

One connection per engine. aiosqlite runs the blocking sqlite3 calls on
its own worker thread and queues them, so statements from interleaved
tasks execute one at a time. Writes hold a lock from statement to commit
(or rollback) so one task never commits or rolls back another's write.
"""

from __future__ import annotations

import asyncio
import sqlite3
from pathlib import Path
from typing import Any, Iterable, Sequence

import aiosqlite

from polystore.adapters.outbound.relational_engine import RelationalEngine, WriteResult
from polystore.adapters.outbound.sql_dialect import SQLITE
from polystore.domain.entities import DEFAULT_SCHEMA, Record, TableSchema
from polystore.domain.value_objects import EngineKind
from polystore.ports.inbound import BackendError, ConstraintViolationError, EngineClosedError

MEMORY_PATH = ":memory:"


class SqliteEngine(RelationalEngine):
    """StorageEngine over a SQLite database file."""

    dialect = SQLITE

    def __init__(
        self,
        path: str | Path,
        schema: Iterable[TableSchema] = DEFAULT_SCHEMA,
    ) -> None:
        """Initialize the engine.

        Args:
            path: Database file path, or ":memory:".
            schema: Declared tables.
        """
        super().__init__(schema)
        self._path = path if str(path) == MEMORY_PATH else Path(path)
        self._conn: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

    @property
    def kind(self) -> EngineKind:
        return EngineKind.EMBEDDED_RELATIONAL

    @property
    def path(self) -> str | Path:
        return self._path

    async def _connect(self) -> None:
        if isinstance(self._path, Path):
            self._path.parent.mkdir(parents=True, exist_ok=True)
        try:
            conn = await aiosqlite.connect(str(self._path))
        except sqlite3.Error as e:
            raise BackendError(f"Cannot open SQLite database {self._path}: {e}") from e
        conn.row_factory = aiosqlite.Row
        self._conn = conn

    async def _disconnect(self) -> None:
        if self._conn is not None:
            conn, self._conn = self._conn, None
            await conn.close()

    def _connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise EngineClosedError("SQLite connection is closed")
        return self._conn

    async def _fetch(self, sql: str, params: Sequence[Any]) -> list[Record]:
        conn = self._connection()
        try:
            async with conn.execute(sql, tuple(params)) as cursor:
                rows = await cursor.fetchall()
        except sqlite3.Error as e:
            raise BackendError(str(e)) from e
        return [dict(row) for row in rows]

    async def _execute(self, sql: str, params: Sequence[Any]) -> WriteResult:
        conn = self._connection()
        async with self._write_lock:
            try:
                async with conn.execute(sql, tuple(params)) as cursor:
                    result = WriteResult(lastrowid=cursor.lastrowid, rowcount=cursor.rowcount)
                await conn.commit()
            except sqlite3.IntegrityError as e:
                await conn.rollback()
                raise ConstraintViolationError(str(e)) from e
            except sqlite3.Error as e:
                await conn.rollback()
                raise BackendError(str(e)) from e
        return result
