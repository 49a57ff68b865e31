"""Outbound adapters - the storage engines and their persistence media.

Each engine implements the StorageEngine port over one medium: a JSON
snapshot file, SQLite, MySQL or Cloud Firestore.
"""

from polystore.adapters.outbound.firestore_engine import FirestoreEngine
from polystore.adapters.outbound.json_file_engine import JsonFileEngine
from polystore.adapters.outbound.json_snapshot_store import JsonSnapshotStore
from polystore.adapters.outbound.mysql_engine import MySQLEngine
from polystore.adapters.outbound.relational_engine import RelationalEngine, WriteResult
from polystore.adapters.outbound.sql_dialect import MYSQL, SQLITE, SqlDialect
from polystore.adapters.outbound.sqlite_engine import SqliteEngine

__all__ = [
    "JsonFileEngine",
    "JsonSnapshotStore",
    "RelationalEngine",
    "WriteResult",
    "SqliteEngine",
    "MySQLEngine",
    "FirestoreEngine",
    "SqlDialect",
    "SQLITE",
    "MYSQL",
]
