"""Inbound ports - the contract offered to callers of the storage layer."""

from polystore.ports.inbound.storage_engine import (
    BackendError,
    ConfigurationError,
    ConstraintViolationError,
    DuplicateIdError,
    EngineClosedError,
    InvalidIdentifierError,
    NotInitializedError,
    SnapshotCorruptError,
    StorageEngine,
    StorageError,
    UnknownTableError,
)

__all__ = [
    "StorageEngine",
    "StorageError",
    "ConfigurationError",
    "NotInitializedError",
    "EngineClosedError",
    "ConstraintViolationError",
    "DuplicateIdError",
    "InvalidIdentifierError",
    "SnapshotCorruptError",
    "BackendError",
    "UnknownTableError",
]
