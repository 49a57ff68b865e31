"""Networked relational engine over MySQL (aiomysql).

Connections come from an aiomysql pool opened at init() and closed at
close(). Every statement runs in autocommit mode on a connection borrowed
for that statement only, so there is no cross-call transaction.
"""

from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Any, Awaitable, Callable, Iterable, Mapping, Sequence

import aiomysql

from polystore.adapters.outbound.relational_engine import RelationalEngine, WriteResult
from polystore.adapters.outbound.sql_dialect import MYSQL
from polystore.domain.entities import DEFAULT_SCHEMA, Record, TableSchema
from polystore.domain.value_objects import EngineKind
from polystore.infrastructure.config import NetworkedRelationalConfig
from polystore.ports.inbound import BackendError, ConstraintViolationError, EngineClosedError

PoolFactory = Callable[..., Awaitable[Any]]


class MySQLEngine(RelationalEngine):
    """StorageEngine over a MySQL server."""

    dialect = MYSQL

    def __init__(
        self,
        config: NetworkedRelationalConfig,
        schema: Iterable[TableSchema] = DEFAULT_SCHEMA,
        pool_factory: PoolFactory = aiomysql.create_pool,
    ) -> None:
        """Initialize the engine.

        Args:
            config: Connection parameters.
            schema: Declared tables.
            pool_factory: Coroutine function creating the pool (aiomysql.create_pool).
        """
        super().__init__(schema)
        self._config = config
        self._pool_factory = pool_factory
        self._pool: Any = None

    @property
    def kind(self) -> EngineKind:
        return EngineKind.NETWORKED_RELATIONAL

    async def _connect(self) -> None:
        cfg = self._config
        try:
            self._pool = await self._pool_factory(
                host=cfg.host,
                port=cfg.port,
                user=cfg.username,
                password=cfg.password.get_secret_value(),
                db=cfg.database,
                minsize=cfg.pool_min_size,
                maxsize=cfg.pool_max_size,
                connect_timeout=cfg.connect_timeout_seconds,
                autocommit=True,
                charset="utf8mb4",
                cursorclass=aiomysql.DictCursor,
            )
        except (aiomysql.Error, OSError, asyncio.TimeoutError) as e:
            raise BackendError(
                f"Cannot connect to MySQL at {cfg.host}:{cfg.port}/{cfg.database}: {e}"
            ) from e

        self._logger.info(
            "mysql_pool_opened",
            host=cfg.host,
            port=cfg.port,
            database=cfg.database,
            maxsize=cfg.pool_max_size,
        )

    async def _disconnect(self) -> None:
        if self._pool is not None:
            pool, self._pool = self._pool, None
            pool.close()
            await pool.wait_closed()

    def _require_pool(self) -> Any:
        if self._pool is None:
            raise EngineClosedError("MySQL pool is closed")
        return self._pool

    async def _fetch(self, sql: str, params: Sequence[Any]) -> list[Record]:
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.cursor() as cursor:
                    await cursor.execute(sql, tuple(params) or None)
                    rows = await cursor.fetchall()
        except aiomysql.Error as e:
            raise BackendError(str(e)) from e
        return list(rows)

    async def _execute(self, sql: str, params: Sequence[Any]) -> WriteResult:
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.cursor() as cursor:
                    await cursor.execute(sql, tuple(params) or None)
                    return WriteResult(lastrowid=cursor.lastrowid, rowcount=cursor.rowcount)
        except aiomysql.IntegrityError as e:
            raise ConstraintViolationError(str(e)) from e
        except aiomysql.Error as e:
            raise BackendError(str(e)) from e

    def _decode_row(self, row: Mapping[str, Any]) -> Record:
        """DECIMAL columns arrive as Decimal; records carry plain floats."""
        return {
            key: float(value) if isinstance(value, Decimal) else value
            for key, value in row.items()
        }
