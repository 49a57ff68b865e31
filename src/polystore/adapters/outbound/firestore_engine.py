"""Managed document engine over Google Cloud Firestore.

Mapping of the contract onto Firestore:
    table       -> collection
    record id   -> document id (always a string; integer-like ids are
                   normalized, so 7, "7" and "007" address document "7")
    record      -> document data plus ``id`` taken from the document id

Contract deviations, all due to the medium:
    - find_by uses one ``==`` filter per criterion; Firestore has no
      server-side substring match, so string criteria match exactly.
    - update interprets dotted field names as nested field paths.

delete keeps the contract: it is sent with an ``exists`` precondition, so
deleting an absent document reports False without a separate read.
"""

from __future__ import annotations

import inspect
from contextlib import contextmanager
from typing import Any, Generator, Mapping

from google.api_core import exceptions as google_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter
from google.cloud.firestore_v1.field_path import FieldPath
from google.oauth2 import service_account

from polystore.domain.entities import Criteria, Record, without_id
from polystore.domain.value_objects import ID_FIELD, EngineKind, RecordId, id_key, is_supplied_id
from polystore.infrastructure.config import ManagedDocumentConfig
from polystore.infrastructure.logging import get_logger
from polystore.ports.inbound import BackendError, DuplicateIdError, EngineClosedError


@contextmanager
def _remote_errors(operation: str) -> Generator[None, None, None]:
    """Wrap Google API failures in BackendError."""
    try:
        yield
    except google_exceptions.GoogleAPIError as e:
        raise BackendError(f"Firestore {operation} failed: {e}") from e


class FirestoreEngine:
    """StorageEngine over Cloud Firestore collections."""

    def __init__(self, config: ManagedDocumentConfig, client: Any = None) -> None:
        """Initialize the engine.

        Args:
            config: Project and credentials.
            client: Pre-built AsyncClient (emulator, tests). The engine does
                not close clients it did not create.
        """
        self._config = config
        self._client = client
        self._owns_client = client is None
        self._open = False
        self._logger = get_logger(__name__, engine=self.kind.value)

    @property
    def kind(self) -> EngineKind:
        return EngineKind.MANAGED_DOCUMENT

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def init(self) -> None:
        if self._client is None:
            self._client = self._build_client()
            self._owns_client = True
        self._open = True
        self._logger.info(
            "engine_initialized",
            project=self._config.project_id,
            database=self._config.database,
        )

    def _build_client(self) -> firestore.AsyncClient:
        cfg = self._config
        credentials = None
        project = cfg.project_id

        try:
            if cfg.credentials:
                credentials = service_account.Credentials.from_service_account_info(
                    cfg.credentials
                )
                project = project or cfg.credentials.get("project_id")
            elif cfg.credentials_file:
                credentials = service_account.Credentials.from_service_account_file(
                    str(cfg.credentials_file)
                )
                project = project or credentials.project_id

            kwargs: dict[str, Any] = {"project": project, "credentials": credentials}
            if cfg.database:
                kwargs["database"] = cfg.database
            return firestore.AsyncClient(**kwargs)
        except (auth_exceptions.GoogleAuthError, ValueError, OSError) as e:
            raise BackendError(f"Cannot create Firestore client: {e}") from e

    async def close(self) -> None:
        if not self._open:
            return
        self._open = False

        if self._owns_client and self._client is not None:
            client, self._client = self._client, None
            result = client.close()
            if inspect.isawaitable(result):
                await result

        self._logger.info("engine_closed")

    # -------------------------------------------------------------------------
    # Contract
    # -------------------------------------------------------------------------

    async def find_all(self, table: str) -> list[Record]:
        collection = self._collection(table)
        with _remote_errors("find_all"):
            return [self._to_record(snapshot) async for snapshot in collection.stream()]

    async def find_by_id(self, table: str, record_id: RecordId) -> Record | None:
        reference = self._collection(table).document(id_key(record_id))
        with _remote_errors("find_by_id"):
            snapshot = await reference.get()
        return self._to_record(snapshot) if snapshot.exists else None

    async def create(self, table: str, data: Mapping[str, Any]) -> Record:
        collection = self._collection(table)
        fields = without_id(data)
        supplied = data.get(ID_FIELD)

        with _remote_errors("create"):
            if is_supplied_id(supplied):
                reference = collection.document(id_key(supplied))
                try:
                    await reference.create(fields)
                except google_exceptions.AlreadyExists as e:
                    self._logger.error("duplicate_id_rejected", table=table, id=supplied)
                    raise DuplicateIdError(table, supplied) from e
            else:
                _, reference = await collection.add(fields)

        return {**fields, ID_FIELD: reference.id}

    async def update(
        self,
        table: str,
        record_id: RecordId,
        partial: Mapping[str, Any],
    ) -> Record | None:
        reference = self._collection(table).document(id_key(record_id))
        fields = without_id(partial)

        if fields:
            with _remote_errors("update"):
                try:
                    await reference.update(fields)
                except google_exceptions.NotFound:
                    return None

        return await self.find_by_id(table, record_id)

    async def delete(self, table: str, record_id: RecordId) -> bool:
        reference = self._collection(table).document(id_key(record_id))
        with _remote_errors("delete"):
            try:
                await reference.delete(option=self._client.write_option(exists=True))
            except google_exceptions.NotFound:
                return False
        return True

    async def find_by(self, table: str, criteria: Criteria) -> list[Record]:
        return await self._query(table, criteria, limit=None)

    async def find_one(self, table: str, criteria: Criteria) -> Record | None:
        records = await self._query(table, criteria, limit=1)
        return records[0] if records else None

    async def find_page(
        self,
        table: str,
        limit: int,
        start_after: RecordId | None = None,
    ) -> list[Record]:
        """Return up to ``limit`` records ordered by id, after ``start_after``.

        Pass the id of the last record of the previous page to continue.
        """
        if limit < 1:
            raise ValueError(f"limit must be positive, got {limit}")

        collection = self._collection(table)
        query = collection.order_by(FieldPath.document_id())

        with _remote_errors("find_page"):
            if start_after is not None:
                cursor = await collection.document(id_key(start_after)).get()
                if cursor.exists:
                    query = query.start_after(cursor)
            query = query.limit(limit)
            return [self._to_record(snapshot) async for snapshot in query.stream()]

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _collection(self, table: str) -> Any:
        if not self._open or self._client is None:
            raise EngineClosedError("Firestore engine is not open")
        return self._client.collection(table)

    @staticmethod
    def _to_record(snapshot: Any) -> Record:
        return {**(snapshot.to_dict() or {}), ID_FIELD: snapshot.id}

    async def _query(self, table: str, criteria: Criteria, limit: int | None) -> list[Record]:
        if ID_FIELD in criteria:
            # The id lives in the document name, not in a field
            record = await self.find_by_id(table, criteria[ID_FIELD])
            rest = {key: value for key, value in criteria.items() if key != ID_FIELD}
            if record is None or not all(
                key in record and record[key] == value for key, value in rest.items()
            ):
                return []
            return [record]

        query = self._collection(table)
        for key, value in criteria.items():
            query = query.where(filter=FieldFilter(key, "==", value))
        if limit is not None:
            query = query.limit(limit)

        with _remote_errors("query"):
            return [self._to_record(snapshot) async for snapshot in query.stream()]
