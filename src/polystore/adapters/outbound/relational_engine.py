"""Shared implementation of the contract over a SQL database.

Subclasses supply the connection lifecycle and two primitives, ``_fetch``
(rows as dicts) and ``_execute`` (last insert id and affected-row count),
with driver errors already translated:

    integrity errors        -> ConstraintViolationError
    any other driver error  -> BackendError

Tables are declared up front (TableSchema) and created idempotently at
init(). Reads of undeclared tables behave as reads of an absent table;
writes to them raise UnknownTableError.

Identifiers come from the database's auto-increment. Unlike the snapshot
engine there is no id scan and no lock: the database serializes inserts.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from polystore.adapters.outbound.sql_dialect import SqlDialect, encode_value
from polystore.domain.entities import (
    DEFAULT_SCHEMA,
    Criteria,
    Record,
    TableSchema,
    without_id,
)
from polystore.domain.value_objects import (
    ID_FIELD,
    EngineKind,
    RecordId,
    id_key,
    is_supplied_id,
    numeric_id,
)
from polystore.infrastructure.logging import get_logger
from polystore.ports.inbound import (
    BackendError,
    ConstraintViolationError,
    DuplicateIdError,
    EngineClosedError,
    UnknownTableError,
)


@dataclass(frozen=True)
class WriteResult:
    """Outcome of a write statement."""

    lastrowid: int | None
    rowcount: int


class RelationalEngine(ABC):
    """Base class for SQL-backed storage engines."""

    dialect: SqlDialect

    def __init__(self, schema: Iterable[TableSchema] = DEFAULT_SCHEMA) -> None:
        """Initialize the engine. No I/O happens until init().

        Args:
            schema: Declared tables (default: users, products, orders).
        """
        self._schema: dict[str, TableSchema] = {table.name: table for table in schema}
        self._open = False
        self._logger = get_logger(__name__, engine=self.kind.value)

    @property
    @abstractmethod
    def kind(self) -> EngineKind:
        ...

    @property
    def tables(self) -> list[str]:
        """Names of the declared tables."""
        return list(self._schema)

    @property
    def is_open(self) -> bool:
        return self._open

    # -------------------------------------------------------------------------
    # Driver primitives
    # -------------------------------------------------------------------------

    @abstractmethod
    async def _connect(self) -> None:
        """Open the connection or pool."""
        ...

    @abstractmethod
    async def _disconnect(self) -> None:
        """Close the connection or pool."""
        ...

    @abstractmethod
    async def _fetch(self, sql: str, params: Sequence[Any]) -> list[Record]:
        """Run a query and return its rows as dicts."""
        ...

    @abstractmethod
    async def _execute(self, sql: str, params: Sequence[Any]) -> WriteResult:
        """Run a write statement and commit it."""
        ...

    def _decode_row(self, row: Mapping[str, Any]) -> Record:
        """Convert driver values to plain record values."""
        return dict(row)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def init(self) -> None:
        """Connect and create every declared table."""
        if self._open:
            return

        await self._connect()
        try:
            for table in self._schema.values():
                await self._execute(self.dialect.create_table(table), ())
        except BaseException:
            await self._disconnect()
            raise

        self._open = True
        self._logger.info("engine_initialized", tables=self.tables)

    async def close(self) -> None:
        if not self._open:
            return
        self._open = False
        await self._disconnect()
        self._logger.info("engine_closed")

    # -------------------------------------------------------------------------
    # Contract
    # -------------------------------------------------------------------------

    async def find_all(self, table: str) -> list[Record]:
        self._require_open()
        if table not in self._schema:
            return []
        rows = await self._fetch(self.dialect.select_all(table), ())
        return [self._decode_row(row) for row in rows]

    async def find_by_id(self, table: str, record_id: RecordId) -> Record | None:
        self._require_open()
        bound = self._bind_id(record_id)
        if table not in self._schema:
            return None
        rows = await self._fetch(self.dialect.select_by_id(table), (bound,))
        return self._decode_row(rows[0]) if rows else None

    async def create(self, table: str, data: Mapping[str, Any]) -> Record:
        self._require_open()
        self._require_table(table)

        supplied = data.get(ID_FIELD)
        if is_supplied_id(supplied):
            if await self.find_by_id(table, supplied) is not None:
                self._logger.error("duplicate_id_rejected", table=table, id=supplied)
                raise DuplicateIdError(table, supplied)
            fields = {**without_id(data), ID_FIELD: self._bind_id(supplied)}
        else:
            fields = without_id(data)

        columns = list(fields)
        try:
            result = await self._execute(
                self.dialect.insert(table, columns),
                [encode_value(fields[column]) for column in columns],
            )
        except ConstraintViolationError:
            # Lost a race against a concurrent insert of the same id
            if is_supplied_id(supplied) and await self.find_by_id(table, supplied) is not None:
                raise DuplicateIdError(table, supplied) from None
            raise

        new_id = fields[ID_FIELD] if ID_FIELD in fields else result.lastrowid
        record = await self.find_by_id(table, new_id)
        if record is None:
            raise BackendError(f"Inserted row {new_id} in {table} could not be read back")
        return record

    async def update(
        self,
        table: str,
        record_id: RecordId,
        partial: Mapping[str, Any],
    ) -> Record | None:
        self._require_open()
        bound = self._bind_id(record_id)
        if table not in self._schema:
            return None

        fields = without_id(partial)
        if fields:
            columns = list(fields)
            await self._execute(
                self.dialect.update(table, columns),
                [*(encode_value(fields[column]) for column in columns), bound],
            )

        return await self.find_by_id(table, record_id)

    async def delete(self, table: str, record_id: RecordId) -> bool:
        self._require_open()
        bound = self._bind_id(record_id)
        if table not in self._schema:
            return False
        result = await self._execute(self.dialect.delete(table), (bound,))
        return result.rowcount > 0

    async def find_by(self, table: str, criteria: Criteria) -> list[Record]:
        self._require_open()
        if table not in self._schema:
            return []
        sql, params = self.dialect.select_where(self._schema[table], criteria)
        rows = await self._fetch(sql, params)
        return [self._decode_row(row) for row in rows]

    async def find_one(self, table: str, criteria: Criteria) -> Record | None:
        self._require_open()
        if table not in self._schema:
            return None
        sql, params = self.dialect.select_where(self._schema[table], criteria, limit=1)
        rows = await self._fetch(sql, params)
        return self._decode_row(rows[0]) if rows else None

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _require_open(self) -> None:
        if not self._open:
            raise EngineClosedError(f"{self.kind.value} engine is not open")

    def _require_table(self, table: str) -> None:
        if table not in self._schema:
            raise UnknownTableError(f"Table {table!r} is not declared in the schema")

    @staticmethod
    def _bind_id(record_id: RecordId) -> RecordId:
        """Integer-like ids bind as integers; others bind verbatim."""
        id_key(record_id)
        number = numeric_id(record_id)
        return number if number is not None else record_id
