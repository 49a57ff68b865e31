"""Unit tests for FirestoreEngine against an in-memory fake client."""

from __future__ import annotations

import itertools
from typing import Any, AsyncGenerator, AsyncIterator

import pytest
from google.api_core import exceptions as google_exceptions

from polystore.adapters.outbound import FirestoreEngine
from polystore.adapters.outbound import firestore_engine as firestore_module
from polystore.infrastructure.config import ManagedDocumentConfig
from polystore.ports.inbound import BackendError, DuplicateIdError, EngineClosedError

DOCUMENT_ID = "__name__"


class FakeSnapshot:
    def __init__(self, doc_id: str, data: dict[str, Any] | None) -> None:
        self.id = doc_id
        self.exists = data is not None
        self._data = data

    def to_dict(self) -> dict[str, Any] | None:
        return dict(self._data) if self._data is not None else None


class FakeQuery:
    """Subset of AsyncQuery: where / order_by / start_after / limit / stream."""

    def __init__(
        self,
        collection: FakeCollection,
        filters: tuple = (),
        after: str | None = None,
        limit: int | None = None,
    ) -> None:
        self._collection = collection
        self._filters = filters
        self._after = after
        self._limit = limit

    def where(self, *, filter: Any) -> FakeQuery:
        assert filter.op_string == "=="
        return FakeQuery(
            self._collection, (*self._filters, (filter.field_path, filter.value)),
            self._after, self._limit,
        )

    def order_by(self, field_path: str) -> FakeQuery:
        assert field_path == DOCUMENT_ID
        return self

    def start_after(self, snapshot: FakeSnapshot) -> FakeQuery:
        return FakeQuery(self._collection, self._filters, snapshot.id, self._limit)

    def limit(self, count: int) -> FakeQuery:
        return FakeQuery(self._collection, self._filters, self._after, count)

    async def stream(self) -> AsyncIterator[FakeSnapshot]:
        self._collection.client.raise_pending()
        docs = self._collection.docs
        ids = sorted(docs) if self._after is not None or self._limit is not None else list(docs)
        emitted = 0
        for doc_id in ids:
            if self._after is not None and doc_id <= self._after:
                continue
            data = docs[doc_id]
            if all(key in data and data[key] == value for key, value in self._filters):
                if self._limit is not None and emitted >= self._limit:
                    return
                emitted += 1
                yield FakeSnapshot(doc_id, data)


class FakeDocument:
    def __init__(self, collection: FakeCollection, doc_id: str) -> None:
        self._collection = collection
        self.id = doc_id

    async def get(self) -> FakeSnapshot:
        self._collection.client.raise_pending()
        return FakeSnapshot(self.id, self._collection.docs.get(self.id))

    async def create(self, data: dict[str, Any]) -> None:
        if self.id in self._collection.docs:
            raise google_exceptions.AlreadyExists(f"Document already exists: {self.id}")
        self._collection.docs[self.id] = dict(data)

    async def update(self, fields: dict[str, Any]) -> None:
        if self.id not in self._collection.docs:
            raise google_exceptions.NotFound(f"No document to update: {self.id}")
        self._collection.docs[self.id].update(fields)

    async def delete(self, option: Any = None) -> None:
        if self.id not in self._collection.docs:
            if option == {"exists": True}:
                raise google_exceptions.NotFound(f"No document to delete: {self.id}")
            return
        del self._collection.docs[self.id]


class FakeCollection(FakeQuery):
    def __init__(self, client: FakeClient, name: str) -> None:
        super().__init__(self)
        self.client = client
        self.docs: dict[str, dict[str, Any]] = client.data.setdefault(name, {})

    def document(self, doc_id: str) -> FakeDocument:
        return FakeDocument(self, doc_id)

    async def add(self, data: dict[str, Any]) -> tuple[Any, FakeDocument]:
        doc_id = f"auto{next(self.client.counter)}"
        self.docs[doc_id] = dict(data)
        return object(), FakeDocument(self, doc_id)


class FakeClient:
    def __init__(self) -> None:
        self.data: dict[str, dict[str, dict[str, Any]]] = {}
        self.counter = itertools.count(1)
        self.closed = False
        self.pending_error: Exception | None = None

    def collection(self, name: str) -> FakeCollection:
        return FakeCollection(self, name)

    def write_option(self, **kwargs: Any) -> dict[str, Any]:
        return kwargs

    def raise_pending(self) -> None:
        if self.pending_error is not None:
            error, self.pending_error = self.pending_error, None
            raise error

    async def close(self) -> None:
        self.closed = True


@pytest.mark.unit
class TestFirestoreEngine:
    """Tests for FirestoreEngine."""

    @pytest.fixture
    def client(self) -> FakeClient:
        return FakeClient()

    @pytest.fixture
    async def engine(self, client: FakeClient) -> AsyncGenerator[FirestoreEngine, None]:
        engine = FirestoreEngine(ManagedDocumentConfig(project_id="shop"), client=client)
        await engine.init()
        yield engine
        await engine.close()

    async def test_create_generated_id(self, engine: FirestoreEngine, client: FakeClient) -> None:
        created = await engine.create("users", {"name": "Ann", "id": None})

        assert created == {"name": "Ann", "id": "auto1"}
        assert client.data["users"]["auto1"] == {"name": "Ann"}

    async def test_create_supplied_id_is_normalized(
        self, engine: FirestoreEngine, client: FakeClient
    ) -> None:
        created = await engine.create("users", {"id": 7, "name": "Ann"})

        assert created == {"id": "7", "name": "Ann"}
        assert "7" in client.data["users"]
        assert (await engine.find_by_id("users", "007"))["name"] == "Ann"

    async def test_duplicate_id(self, engine: FirestoreEngine) -> None:
        await engine.create("users", {"id": "u1", "name": "First"})

        with pytest.raises(DuplicateIdError):
            await engine.create("users", {"id": "u1", "name": "Second"})

        assert await engine.find_all("users") == [{"name": "First", "id": "u1"}]

    async def test_find_by_id_miss(self, engine: FirestoreEngine) -> None:
        assert await engine.find_by_id("users", "nope") is None
        assert await engine.find_all("nothing") == []

    @pytest.mark.parametrize("record_id", [None, False, {"id": 1}])
    async def test_invalid_ids_raise_type_error(
        self, engine: FirestoreEngine, record_id: object
    ) -> None:
        with pytest.raises(TypeError):
            await engine.find_by_id("users", record_id)
        with pytest.raises(TypeError):
            await engine.update("users", record_id, {"a": 1})
        with pytest.raises(TypeError):
            await engine.delete("users", record_id)

    async def test_update_semantics(self, engine: FirestoreEngine) -> None:
        created = await engine.create("t", {"a": 1, "b": 2})

        updated = await engine.update("t", created["id"], {"b": 3, "id": "other"})

        assert updated == {"a": 1, "b": 3, "id": created["id"]}
        assert await engine.update("t", "missing", {"b": 4}) is None

    async def test_delete_reports_absence(self, engine: FirestoreEngine) -> None:
        """delete keeps the contract: absent ids report False."""
        created = await engine.create("t", {"a": 1})

        assert await engine.delete("t", "missing") is False
        assert await engine.delete("t", created["id"]) is True
        assert await engine.delete("t", created["id"]) is False

    async def test_find_by_equality(self, engine: FirestoreEngine) -> None:
        ann = await engine.create("users", {"name": "Ann", "role": "buyer"})
        await engine.create("users", {"name": "Bob", "role": "seller"})

        assert await engine.find_by("users", {"role": "buyer"}) == [ann]
        assert await engine.find_one("users", {"name": "Ann", "role": "buyer"}) == ann
        assert await engine.find_one("users", {"name": "Nobody"}) is None

    async def test_find_by_id_criterion(self, engine: FirestoreEngine) -> None:
        ann = await engine.create("users", {"id": "a", "name": "Ann"})

        assert await engine.find_by("users", {"id": "a"}) == [ann]
        assert await engine.find_by("users", {"id": "a", "name": "Ann"}) == [ann]
        assert await engine.find_by("users", {"id": "a", "name": "Bob"}) == []

    async def test_find_page(self, engine: FirestoreEngine) -> None:
        for doc_id in ["c", "a", "d", "b"]:
            await engine.create("t", {"id": doc_id})

        first = await engine.find_page("t", 2)
        second = await engine.find_page("t", 2, start_after=first[-1]["id"])

        assert [r["id"] for r in first] == ["a", "b"]
        assert [r["id"] for r in second] == ["c", "d"]

        with pytest.raises(ValueError):
            await engine.find_page("t", 0)

    async def test_api_errors_are_backend_errors(
        self, engine: FirestoreEngine, client: FakeClient
    ) -> None:
        client.pending_error = google_exceptions.ServiceUnavailable("backend down")

        with pytest.raises(BackendError) as exc_info:
            await engine.find_all("users")

        assert isinstance(exc_info.value.__cause__, google_exceptions.ServiceUnavailable)

    async def test_injected_client_is_not_closed(
        self, engine: FirestoreEngine, client: FakeClient
    ) -> None:
        await engine.close()

        assert not client.closed
        with pytest.raises(EngineClosedError):
            await engine.find_all("users")

    async def test_builds_client_from_credentials(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Service account info becomes credentials; the engine owns the client."""
        built: dict[str, Any] = {}
        client = FakeClient()

        def from_info(info: dict[str, Any]) -> str:
            built["info"] = info
            return "credentials"

        def make_client(**kwargs: Any) -> FakeClient:
            built["kwargs"] = kwargs
            return client

        monkeypatch.setattr(
            firestore_module.service_account.Credentials, "from_service_account_info", from_info
        )
        monkeypatch.setattr(firestore_module.firestore, "AsyncClient", make_client)

        info = {"type": "service_account", "project_id": "shop"}
        engine = FirestoreEngine(ManagedDocumentConfig(credentials=info, database="orders"))
        await engine.init()

        assert built["info"] == info
        assert built["kwargs"] == {
            "project": "shop",
            "credentials": "credentials",
            "database": "orders",
        }

        await engine.close()
        assert client.closed
