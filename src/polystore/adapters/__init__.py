"""Adapters layer - concrete implementations of port interfaces.

Only outbound adapters exist: the engines that persist records. Routing,
validation and other inbound surfaces belong to the consuming service.
"""

from polystore.adapters.outbound import (
    FirestoreEngine,
    JsonFileEngine,
    JsonSnapshotStore,
    MySQLEngine,
    SqliteEngine,
)

__all__ = [
    # Outbound adapters
    "JsonFileEngine",
    "JsonSnapshotStore",
    "SqliteEngine",
    "MySQLEngine",
    "FirestoreEngine",
]
