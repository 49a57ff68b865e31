"""Storage Engine port - the CRUD contract every engine implements.

Controllers and services call these operations through the handle handed
out by the engine manager and never learn which engine is behind it.
Every operation is a coroutine scoped to one named table.

Soft negative results are reserved for absence of data:
    - find_by_id / find_one / update return None when nothing matches
    - delete returns False when the id does not exist
    - find_all / find_by return [] when nothing matches

Every other failure is raised as a StorageError subclass (or, for the
snapshot engine, the OSError from the file system).

A ``record_id`` that cannot be an identifier (None, a bool, a container)
is a caller bug, not an absent record: find_by_id, update, delete and
create with such an id raise TypeError on every engine.

References:
    - DESIGN.md (Storage contract)
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Any, Mapping, Protocol

from polystore.domain.entities import Criteria, Record
from polystore.domain.value_objects import EngineKind, RecordId


class StorageEngine(Protocol):
    """Protocol for a persistence engine.

    Lifecycle:
        init() must complete before any other call. After close() the
        engine raises EngineClosedError until init() is called again.

    Concurrency:
        Engines are used from one event loop. Operations may interleave
        at await points; engines guarantee that interleaved calls never
        violate identifier uniqueness within a table.

    Transactions:
        None across calls. Two related mutations are two independent
        operations in every engine.
    """

    @property
    @abstractmethod
    def kind(self) -> EngineKind:
        """Which engine this is."""
        ...

    @abstractmethod
    async def init(self) -> None:
        """Open files or connections and create the declared schema.

        Raises:
            StorageError: If the medium cannot be opened.
        """
        ...

    @abstractmethod
    async def find_all(self, table: str) -> list[Record]:
        """Return every record of ``table`` ([] if the table is absent)."""
        ...

    @abstractmethod
    async def find_by_id(self, table: str, record_id: RecordId) -> Record | None:
        """Return the record whose id loosely equals ``record_id``, or None.

        Raises:
            TypeError: If ``record_id`` is not an identifier.
        """
        ...

    @abstractmethod
    async def create(self, table: str, data: Mapping[str, Any]) -> Record:
        """Insert a record and return it with its assigned id.

        Raises:
            DuplicateIdError: If ``data`` carries an id that already exists.
            ConstraintViolationError: On other integrity failures.
        """
        ...

    @abstractmethod
    async def update(
        self,
        table: str,
        record_id: RecordId,
        partial: Mapping[str, Any],
    ) -> Record | None:
        """Shallow-merge ``partial`` into a record; None if it does not exist.

        Raises:
            TypeError: If ``record_id`` is not an identifier.
        """
        ...

    @abstractmethod
    async def delete(self, table: str, record_id: RecordId) -> bool:
        """Delete a record; False if it did not exist.

        Raises:
            TypeError: If ``record_id`` is not an identifier.
        """
        ...

    @abstractmethod
    async def find_by(self, table: str, criteria: Criteria) -> list[Record]:
        """Return records matching every criterion."""
        ...

    @abstractmethod
    async def find_one(self, table: str, criteria: Criteria) -> Record | None:
        """Return the first record matching every criterion, or None."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release files or connections. Idempotent."""
        ...


# =============================================================================
# Errors
# =============================================================================


class StorageError(Exception):
    """Base class for storage layer failures."""

    pass


class ConfigurationError(StorageError):
    """Raised when an engine configuration is invalid or of an unknown kind."""

    pass


class NotInitializedError(StorageError):
    """Raised when the engine manager is used without an active engine."""

    pass


class EngineClosedError(StorageError):
    """Raised when an engine is used before init() or after close()."""

    pass


class ConstraintViolationError(StorageError):
    """Raised when a write violates an integrity constraint."""

    pass


class DuplicateIdError(ConstraintViolationError):
    """Raised when create() is given an id that already exists."""

    def __init__(self, table: str, record_id: RecordId) -> None:
        super().__init__(f"Record with ID {record_id} already exists in {table}.")
        self.table = table
        self.record_id = record_id


class InvalidIdentifierError(StorageError, ValueError):
    """Raised when a table or column name is unsafe for SQL."""

    pass


class UnknownTableError(StorageError):
    """Raised when writing to a table the relational schema does not declare."""

    pass


class SnapshotCorruptError(StorageError):
    """Raised when a snapshot file cannot be decoded into tables."""

    pass


class BackendError(StorageError):
    """Raised when the underlying driver or remote store fails."""

    pass
