"""JSON file implementation of the SnapshotStore port.

File Format:
    One UTF-8 JSON object. Keys are table names, values are arrays of
    record objects:

        {
          "users": [
            {"name": "Ann", "id": 1}
          ]
        }

Durability:
    Every write serializes the whole snapshot to a temporary file in the
    target directory, fsyncs it, and renames it over the target. Readers
    of the file (and a crash) see either the old or the new snapshot.
"""

from __future__ import annotations

import json
import os
import tempfile
from datetime import date, datetime
from pathlib import Path
from typing import Any

from polystore.ports.inbound import SnapshotCorruptError
from polystore.ports.outbound import Snapshot


def _encode_value(value: Any) -> Any:
    """Encode values json does not know; dates become ISO-8601 strings."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class JsonSnapshotStore:
    """File-based implementation of the SnapshotStore protocol.

    Attributes:
        path: Path to the snapshot file.
        indent: JSON indentation (keeps the file human readable).
    """

    def __init__(self, path: str | Path, indent: int = 2, fsync: bool = True) -> None:
        """Initialize the store.

        Args:
            path: Path to the snapshot file.
            indent: JSON indentation.
            fsync: Whether to fsync before renaming (disable only in tests).
        """
        self._path = Path(path)
        self._indent = indent
        self._fsync = fsync

    @property
    def path(self) -> Path:
        """Location of the snapshot."""
        return self._path

    def exists(self) -> bool:
        """Whether the snapshot file exists."""
        return self._path.exists()

    def prepare(self) -> None:
        """Create the containing directory if needed."""
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def load(self) -> Snapshot:
        """Read and decode the snapshot.

        Raises:
            SnapshotCorruptError: If the file is not a JSON object of lists.
            OSError: If the read fails.
        """
        content = self._path.read_text(encoding="utf-8")
        if not content.strip():
            return {}

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise SnapshotCorruptError(f"Invalid snapshot {self._path}: {e}") from e

        if not isinstance(data, dict):
            raise SnapshotCorruptError(
                f"Invalid snapshot {self._path}: expected an object, got {type(data).__name__}"
            )

        for table, records in data.items():
            if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
                raise SnapshotCorruptError(
                    f"Invalid snapshot {self._path}: table {table!r} is not a list of records"
                )

        return data

    def write(self, snapshot: Snapshot) -> int:
        """Atomically replace the snapshot file.

        Returns:
            Number of bytes written.

        Raises:
            OSError: If the write fails. The previous snapshot is untouched.
        """
        payload = json.dumps(
            snapshot, indent=self._indent, ensure_ascii=False, default=_encode_value
        ).encode("utf-8")

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.", suffix=".tmp", dir=self._path.parent
        )
        try:
            with os.fdopen(fd, "wb") as tmp:
                tmp.write(payload)
                tmp.flush()
                if self._fsync:
                    os.fsync(tmp.fileno())
            os.replace(tmp_name, self._path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

        return len(payload)
