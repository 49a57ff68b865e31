"""Engine kinds known to the storage layer."""

from __future__ import annotations

from enum import Enum


class EngineKind(Enum):
    """Closed set of persistence engines.

    FILE: whole dataset as one JSON snapshot file
    EMBEDDED_RELATIONAL: SQLite database file
    NETWORKED_RELATIONAL: MySQL server
    MANAGED_DOCUMENT: Google Cloud Firestore
    """

    FILE = "file"
    EMBEDDED_RELATIONAL = "embedded-relational"
    NETWORKED_RELATIONAL = "networked-relational"
    MANAGED_DOCUMENT = "managed-document"
