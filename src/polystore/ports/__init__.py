"""Ports layer - interface definitions following Hexagonal Architecture.

Ports are abstract interfaces (protocols) that define contracts:
- Inbound ports: the Storage Contract offered to callers
- Outbound ports: dependencies on persistence media (snapshot files)

Adapters implement these ports with concrete functionality.
"""

from polystore.ports.inbound import (
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
from polystore.ports.outbound import Snapshot, SnapshotStore

__all__ = [
    # Inbound ports
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
    # Outbound ports
    "Snapshot",
    "SnapshotStore",
]
