"""Snapshot Store port for whole-dataset persistence.

This outbound port defines how the file engine reads and rewrites its
snapshot. The snapshot is the sole unit of durability: a mutation is
durable only once the whole snapshot has been written.

References:
    - DESIGN.md (File-snapshot engine)
"""

from __future__ import annotations

from abc import abstractmethod
from pathlib import Path
from typing import Any, Protocol

Snapshot = dict[str, list[dict[str, Any]]]
"""Table name -> list of records."""


class SnapshotStore(Protocol):
    """Protocol for snapshot persistence.

    Calls are blocking; the engine runs them in a worker thread.

    Thread Safety:
        Single writer assumed. The file engine serializes all writes.
    """

    @property
    @abstractmethod
    def path(self) -> Path:
        """Location of the snapshot."""
        ...

    @abstractmethod
    def prepare(self) -> None:
        """Create whatever must exist before the first write (directories)."""
        ...

    @abstractmethod
    def exists(self) -> bool:
        """Whether a snapshot has been written before."""
        ...

    @abstractmethod
    def load(self) -> Snapshot:
        """Read and decode the snapshot.

        Returns:
            The decoded snapshot; {} for an empty file.

        Raises:
            SnapshotCorruptError: If the content is not an object of lists.
            OSError: If the read fails.
        """
        ...

    @abstractmethod
    def write(self, snapshot: Snapshot) -> int:
        """Atomically replace the snapshot.

        After write returns, the new snapshot is on stable storage and a
        crash mid-write leaves the previous snapshot intact.

        Returns:
            Number of bytes written.

        Raises:
            OSError: If the write fails.
        """
        ...
