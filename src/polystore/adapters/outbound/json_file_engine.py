"""File-snapshot storage engine.

The whole dataset lives in memory as ``{table: [record, ...]}`` and is
mirrored on disk as one JSON snapshot. There is no append log: every
mutation rewrites the entire snapshot.

Write path (create, update, delete, clear_table, clear_all_data):
    1. Acquire the snapshot lock.
    2. Build the next state copy-on-write (the current state is untouched).
    3. Rewrite the snapshot file in a worker thread.
    4. Install the next state as the in-memory state.
    5. Release the lock.

Identifier generation (max numeric id + 1) happens inside the lock, so
interleaved creates on the same table cannot hand out the same id.
Readers never take the lock and only ever see durable state.

Records cross the engine boundary as deep copies in both directions, so
nested lists and mappings are never shared with callers.

Thread Safety:
    Not thread-safe. Use from a single event loop.

References:
    - DESIGN.md (File-snapshot engine)
    - DESIGN.md (Concurrency)
"""

from __future__ import annotations

import asyncio
import copy
import time
from pathlib import Path
from typing import Any, Mapping

from polystore.adapters.outbound.json_snapshot_store import JsonSnapshotStore
from polystore.domain.entities import Criteria, Record, merge_record, with_id
from polystore.domain.services import filter_records
from polystore.domain.value_objects import (
    ID_FIELD,
    EngineKind,
    RecordId,
    id_key,
    ids_equal,
    is_supplied_id,
    numeric_id,
)
from polystore.infrastructure.logging import get_logger
from polystore.infrastructure.metrics import MetricsRegistry, get_metrics
from polystore.ports.inbound import DuplicateIdError, EngineClosedError
from polystore.ports.outbound import Snapshot, SnapshotStore


class JsonFileEngine:
    """StorageEngine over a single JSON snapshot file.

    Attributes:
        path: Path to the snapshot file.
    """

    def __init__(
        self,
        path: str | Path | None = None,
        *,
        indent: int = 2,
        store: SnapshotStore | None = None,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        """Initialize the engine. No I/O happens until init().

        Args:
            path: Snapshot file path (ignored when ``store`` is given).
            indent: JSON indentation for the snapshot.
            store: Snapshot store to use instead of a JsonSnapshotStore.
            metrics: Metrics registry (default: global registry).
        """
        if store is None:
            if path is None:
                raise ValueError("JsonFileEngine needs a path or a store")
            store = JsonSnapshotStore(path, indent=indent)
        self._store = store
        self._metrics = metrics or get_metrics()
        self._data: Snapshot = {}
        self._lock = asyncio.Lock()
        self._open = False
        self._logger = get_logger(__name__, engine=self.kind.value)

    @property
    def kind(self) -> EngineKind:
        return EngineKind.FILE

    @property
    def path(self) -> Path:
        """Path to the snapshot file."""
        return self._store.path

    @property
    def is_open(self) -> bool:
        """Whether init() has completed and close() has not been called."""
        return self._open

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def init(self) -> None:
        """Load the snapshot, or create an empty one so the file always exists."""
        async with self._lock:
            await asyncio.to_thread(self._store.prepare)

            if await asyncio.to_thread(self._store.exists):
                self._data = await asyncio.to_thread(self._store.load)
            else:
                await self._commit({})

            self._open = True

        self._logger.info(
            "engine_initialized",
            path=str(self.path),
            tables=len(self._data),
            records=sum(len(rows) for rows in self._data.values()),
        )

    async def close(self) -> None:
        """Flush the in-memory state one last time and close."""
        async with self._lock:
            if not self._open:
                return
            await self._write(self._data)
            self._open = False

        self._logger.info("engine_closed", path=str(self.path))

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def find_all(self, table: str) -> list[Record]:
        self._require_open()
        return [copy.deepcopy(record) for record in self._rows(table)]

    async def find_by_id(self, table: str, record_id: RecordId) -> Record | None:
        self._require_open()
        id_key(record_id)
        matches = [r for r in self._rows(table) if ids_equal(r.get(ID_FIELD), record_id)]

        if len(matches) > 1:
            self._logger.warning(
                "duplicate_id_found", table=table, id=record_id, count=len(matches)
            )

        return copy.deepcopy(matches[0]) if matches else None

    async def find_by(self, table: str, criteria: Criteria) -> list[Record]:
        self._require_open()
        return [copy.deepcopy(record) for record in filter_records(self._rows(table), criteria)]

    async def find_one(self, table: str, criteria: Criteria) -> Record | None:
        self._require_open()
        for record in filter_records(self._rows(table), criteria):
            return copy.deepcopy(record)
        return None

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def create(self, table: str, data: Mapping[str, Any]) -> Record:
        async with self._lock:
            self._require_open()
            rows = self._rows(table)

            supplied = data.get(ID_FIELD)
            if is_supplied_id(supplied):
                id_key(supplied)  # rejects None-like, bool and container ids
                if self._index_of(rows, supplied) is not None:
                    self._logger.error("duplicate_id_rejected", table=table, id=supplied)
                    raise DuplicateIdError(table, supplied)
                record_id: RecordId = supplied
            else:
                record_id = self._next_id(rows)

            record = with_id(copy.deepcopy(dict(data)), record_id)
            await self._commit({**self._data, table: [*rows, record]})

        return copy.deepcopy(record)

    async def update(
        self,
        table: str,
        record_id: RecordId,
        partial: Mapping[str, Any],
    ) -> Record | None:
        async with self._lock:
            self._require_open()
            id_key(record_id)
            rows = self._rows(table)

            index = self._index_of(rows, record_id)
            if index is None:
                return None

            merged = merge_record(rows[index], copy.deepcopy(dict(partial)))
            next_rows = list(rows)
            next_rows[index] = merged
            await self._commit({**self._data, table: next_rows})

        return copy.deepcopy(merged)

    async def delete(self, table: str, record_id: RecordId) -> bool:
        async with self._lock:
            self._require_open()
            id_key(record_id)
            rows = self._rows(table)

            remaining = [r for r in rows if not ids_equal(r.get(ID_FIELD), record_id)]
            if len(remaining) == len(rows):
                return False

            await self._commit({**self._data, table: remaining})

        return True

    async def clear_table(self, table: str) -> None:
        """Remove every record of ``table``. Absent tables are left alone."""
        async with self._lock:
            self._require_open()
            if table not in self._data:
                return
            await self._commit({**self._data, table: []})

        self._logger.info("table_cleared", table=table)

    async def clear_all_data(self) -> None:
        """Reset the snapshot to no tables at all."""
        async with self._lock:
            self._require_open()
            await self._commit({})

        self._logger.info("all_data_cleared")

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _require_open(self) -> None:
        if not self._open:
            raise EngineClosedError(f"Snapshot engine at {self.path} is not open")

    def _rows(self, table: str) -> list[Record]:
        return self._data.get(table, [])

    @staticmethod
    def _index_of(rows: list[Record], record_id: RecordId) -> int | None:
        for index, record in enumerate(rows):
            if ids_equal(record.get(ID_FIELD), record_id):
                return index
        return None

    @staticmethod
    def _next_id(rows: list[Record]) -> int:
        """Max numeric id + 1. Ids that are not integer-like count as 0."""
        highest = 0
        for record in rows:
            value = numeric_id(record.get(ID_FIELD))
            if value is not None and value > highest:
                highest = value
        return highest + 1

    async def _write(self, snapshot: Snapshot) -> None:
        start = time.perf_counter()
        size = await asyncio.to_thread(self._store.write, snapshot)
        elapsed = time.perf_counter() - start

        self._metrics.snapshot_writes_total.inc()
        self._metrics.snapshot_bytes.set(size)
        self._metrics.snapshot_write_latency_seconds.observe(elapsed)
        self._logger.debug("snapshot_written", bytes=size, seconds=round(elapsed, 6))

    async def _commit(self, snapshot: Snapshot) -> None:
        """Persist ``snapshot`` and install it as the in-memory state.

        The worker thread cannot be interrupted, so a cancelled caller
        still waits for the write to land before memory is updated to match.
        """
        write = asyncio.ensure_future(self._write(snapshot))
        try:
            await asyncio.shield(write)
        except asyncio.CancelledError:
            await asyncio.wait({write})
            if not write.cancelled() and write.exception() is None:
                self._data = snapshot
            raise
        self._data = snapshot
