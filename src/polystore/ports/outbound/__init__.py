"""Outbound ports - interfaces for external dependencies.

Outbound ports define contracts for the media the engines persist to.
"""

from polystore.ports.outbound.snapshot_store import Snapshot, SnapshotStore

__all__ = [
    "Snapshot",
    "SnapshotStore",
]
