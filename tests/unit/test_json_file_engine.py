"""Unit tests for JsonFileEngine."""

from __future__ import annotations

import asyncio
import json
import time
from pathlib import Path
from typing import AsyncGenerator

import pytest

from polystore.adapters.outbound import JsonFileEngine, JsonSnapshotStore
from polystore.infrastructure.metrics import MetricsRegistry
from polystore.ports.inbound import DuplicateIdError, EngineClosedError, SnapshotCorruptError
from polystore.ports.outbound import Snapshot


class FlakyStore(JsonSnapshotStore):
    """Snapshot store whose writes can be made to fail."""

    fail = False

    def write(self, snapshot: Snapshot) -> int:
        if self.fail:
            raise OSError("disk full")
        return super().write(snapshot)


class SlowStore(JsonSnapshotStore):
    """Snapshot store with a slow disk."""

    def write(self, snapshot: Snapshot) -> int:
        time.sleep(0.05)
        return super().write(snapshot)


@pytest.mark.unit
class TestJsonFileEngine:
    """Tests for JsonFileEngine."""

    @pytest.fixture
    def db_path(self, temp_dir: Path) -> Path:
        return temp_dir / "data" / "db.json"

    @pytest.fixture
    async def engine(
        self, db_path: Path, metrics_registry: MetricsRegistry
    ) -> AsyncGenerator[JsonFileEngine, None]:
        engine = JsonFileEngine(db_path, metrics=metrics_registry)
        await engine.init()
        yield engine
        await engine.close()

    def read_file(self, db_path: Path) -> dict:
        return json.loads(db_path.read_text(encoding="utf-8"))

    async def test_init_creates_empty_snapshot(self, engine: JsonFileEngine, db_path: Path) -> None:
        """A missing file is created as an empty mapping."""
        assert db_path.exists()
        assert self.read_file(db_path) == {}

    async def test_concrete_scenario(self, engine: JsonFileEngine, db_path: Path) -> None:
        """Create, list, delete and look up users on a fresh file."""
        ann = await engine.create("users", {"name": "Ann"})
        bob = await engine.create("users", {"name": "Bob"})

        assert ann == {"name": "Ann", "id": 1}
        assert bob == {"name": "Bob", "id": 2}
        assert await engine.find_all("users") == [ann, bob]

        assert await engine.delete("users", 1) is True
        assert await engine.find_by_id("users", 1) is None
        assert await engine.find_all("users") == [bob]
        assert self.read_file(db_path) == {"users": [{"name": "Bob", "id": 2}]}

    async def test_round_trip(self, engine: JsonFileEngine) -> None:
        created = await engine.create("products", {"name": "Lamp", "price": 10, "tags": ["a"]})
        found = await engine.find_by_id("products", created["id"])

        assert found is not None
        assert found.items() >= {"name": "Lamp", "price": 10, "tags": ["a"]}.items()

    async def test_loose_id_lookup(self, engine: JsonFileEngine) -> None:
        """String and numeric ids address the same record."""
        await engine.create("users", {"name": "Ann"})

        assert (await engine.find_by_id("users", "1"))["name"] == "Ann"
        assert (await engine.find_by_id("users", "001"))["name"] == "Ann"
        assert await engine.update("users", "1", {"name": "Anne"}) == {"name": "Anne", "id": 1}
        assert await engine.delete("users", "1") is True

    async def test_missing_table_reads(self, engine: JsonFileEngine) -> None:
        assert await engine.find_all("nothing") == []
        assert await engine.find_by_id("nothing", 1) is None
        assert await engine.find_by("nothing", {"a": 1}) == []
        assert await engine.find_one("nothing", {}) is None

    async def test_next_id_follows_max(self, engine: JsonFileEngine) -> None:
        """Generated ids continue from the highest numeric id."""
        await engine.create("users", {"id": 10, "name": "Ten"})
        await engine.create("users", {"id": "abc", "name": "Text"})

        created = await engine.create("users", {"name": "Next"})

        assert created["id"] == 11

    async def test_empty_id_is_generated(self, engine: JsonFileEngine) -> None:
        created = await engine.create("users", {"id": "", "name": "Ann"})

        assert created["id"] == 1

    async def test_duplicate_id_rejected(self, engine: JsonFileEngine) -> None:
        """The second create with the same id fails and changes nothing."""
        await engine.create("users", {"id": 7, "name": "First"})

        with pytest.raises(DuplicateIdError) as exc_info:
            await engine.create("users", {"id": "7", "name": "Second"})

        assert exc_info.value.table == "users"
        assert await engine.find_by("users", {"name": "First"}) == [{"id": 7, "name": "First"}]
        assert len(await engine.find_all("users")) == 1

    async def test_invalid_supplied_id(self, engine: JsonFileEngine) -> None:
        with pytest.raises(TypeError):
            await engine.create("users", {"id": True, "name": "Ann"})

    async def test_update_semantics(self, engine: JsonFileEngine) -> None:
        """Shallow merge; the id cannot be changed; absent ids are a soft miss."""
        created = await engine.create("t", {"a": 1, "b": 2})

        updated = await engine.update("t", created["id"], {"b": 3, "id": 99})

        assert updated == {"a": 1, "b": 3, "id": created["id"]}
        assert await engine.find_by_id("t", 99) is None
        assert await engine.update("t", 404, {"b": 4}) is None

    async def test_delete_signal(self, engine: JsonFileEngine) -> None:
        created = await engine.create("t", {"a": 1})

        assert await engine.delete("t", 404) is False
        assert await engine.delete("t", created["id"]) is True
        assert await engine.delete("t", created["id"]) is False

    async def test_substring_search(self, engine: JsonFileEngine) -> None:
        """Strings match as substrings; numbers never do."""
        foobar = await engine.create("products", {"name": "Foobar", "price": 12})
        await engine.create("products", {"name": "Other", "price": 3})

        assert await engine.find_by("products", {"name": "foo"}) == [foobar]
        assert await engine.find_by("products", {"price": "foo"}) == []
        assert await engine.find_by("products", {"price": "12"}) == []
        assert await engine.find_one("products", {"price": 12}) == foobar
        assert len(await engine.find_by("products", {})) == 2

    async def test_returned_records_are_copies(self, engine: JsonFileEngine) -> None:
        created = await engine.create("users", {"name": "Ann"})
        created["name"] = "Mallory"

        found = await engine.find_by_id("users", 1)
        found["name"] = "Eve"

        assert (await engine.find_by_id("users", 1))["name"] == "Ann"

    async def test_nested_values_are_not_shared(
        self, engine: JsonFileEngine, db_path: Path
    ) -> None:
        """Mutating nested input or output never changes engine state."""
        data = {"name": "Ann", "tags": ["a"], "address": {"city": "Oslo"}}
        created = await engine.create("users", data)

        created["tags"].append("from-return")
        data["tags"].append("from-input")
        data["address"]["city"] = "Bergen"
        (await engine.find_all("users"))[0]["tags"].append("from-find-all")
        (await engine.find_one("users", {"name": "Ann"}))["address"]["city"] = "Turku"

        partial = {"tags": ["b"]}
        updated = await engine.update("users", 1, partial)
        partial["tags"].append("from-partial")
        updated["tags"].append("from-update")

        stored = await engine.find_by_id("users", 1)
        assert stored["tags"] == ["b"]
        assert stored["address"] == {"city": "Oslo"}
        assert await engine.find_all("users") == self.read_file(db_path)["users"]

    @pytest.mark.parametrize("record_id", [None, True, [1], {"id": 1}])
    async def test_invalid_ids_raise_type_error(
        self, engine: JsonFileEngine, record_id: object
    ) -> None:
        await engine.create("users", {"name": "Ann"})

        with pytest.raises(TypeError):
            await engine.find_by_id("users", record_id)
        with pytest.raises(TypeError):
            await engine.update("users", record_id, {"name": "Eve"})
        with pytest.raises(TypeError):
            await engine.delete("users", record_id)

        assert await engine.find_all("users") == [{"name": "Ann", "id": 1}]

    async def test_reopen_loads_snapshot(
        self, db_path: Path, metrics_registry: MetricsRegistry
    ) -> None:
        first = JsonFileEngine(db_path, metrics=metrics_registry)
        await first.init()
        await first.create("users", {"name": "Ann"})
        await first.close()

        second = JsonFileEngine(db_path, metrics=metrics_registry)
        await second.init()
        try:
            assert await second.find_all("users") == [{"name": "Ann", "id": 1}]
            assert (await second.create("users", {"name": "Bob"}))["id"] == 2
        finally:
            await second.close()

    async def test_closed_engine_rejects_calls(self, engine: JsonFileEngine) -> None:
        await engine.close()
        await engine.close()  # idempotent

        with pytest.raises(EngineClosedError):
            await engine.find_all("users")
        with pytest.raises(EngineClosedError):
            await engine.create("users", {"name": "Ann"})

        await engine.init()
        assert await engine.find_all("users") == []

    async def test_uninitialized_engine_rejects_calls(self, db_path: Path) -> None:
        engine = JsonFileEngine(db_path)

        with pytest.raises(EngineClosedError):
            await engine.find_by_id("users", 1)

    async def test_corrupt_snapshot(self, db_path: Path) -> None:
        db_path.parent.mkdir(parents=True)
        db_path.write_text("{oops", encoding="utf-8")

        with pytest.raises(SnapshotCorruptError):
            await JsonFileEngine(db_path).init()

    async def test_empty_file_loads_as_empty(self, db_path: Path) -> None:
        db_path.parent.mkdir(parents=True)
        db_path.write_text("", encoding="utf-8")
        engine = JsonFileEngine(db_path)

        await engine.init()

        assert await engine.find_all("users") == []
        await engine.close()

    async def test_clear_table_and_all_data(self, engine: JsonFileEngine, db_path: Path) -> None:
        await engine.create("users", {"name": "Ann"})
        await engine.create("orders", {"total": 1})

        await engine.clear_table("users")
        await engine.clear_table("missing")

        assert self.read_file(db_path) == {"users": [], "orders": [{"total": 1, "id": 1}]}

        await engine.clear_all_data()

        assert self.read_file(db_path) == {}
        assert await engine.find_all("orders") == []

    async def test_failed_write_leaves_state(self, db_path: Path) -> None:
        """Memory only changes once the snapshot is on disk."""
        store = FlakyStore(db_path, fsync=False)
        engine = JsonFileEngine(store=store)
        await engine.init()
        await engine.create("users", {"name": "Ann"})

        store.fail = True
        with pytest.raises(OSError):
            await engine.create("users", {"name": "Bob"})
        with pytest.raises(OSError):
            await engine.delete("users", 1)

        assert await engine.find_all("users") == [{"name": "Ann", "id": 1}]

        store.fail = False
        assert (await engine.create("users", {"name": "Bob"}))["id"] == 2

    async def test_snapshot_metrics(self, engine: JsonFileEngine, metrics_registry: MetricsRegistry) -> None:
        before = metrics_registry.snapshot_writes_total._value.get()

        await engine.create("users", {"name": "Ann"})

        assert metrics_registry.snapshot_writes_total._value.get() == before + 1
        assert metrics_registry.snapshot_bytes._value.get() > 0

    def test_requires_path_or_store(self) -> None:
        with pytest.raises(ValueError):
            JsonFileEngine()


@pytest.mark.unit
@pytest.mark.concurrency
class TestJsonFileEngineConcurrency:
    """Interleaved writers against one snapshot."""

    async def test_concurrent_creates_get_unique_ids(self, temp_dir: Path) -> None:
        engine = JsonFileEngine(store=SlowStore(temp_dir / "db.json", fsync=False))
        await engine.init()

        created = await asyncio.gather(
            *(engine.create("users", {"name": f"user{i}"}) for i in range(8))
        )

        ids = [record["id"] for record in created]
        assert sorted(ids) == list(range(1, 9))
        assert len({r["id"] for r in await engine.find_all("users")}) == 8
        await engine.close()

    async def test_concurrent_duplicate_ids(self, temp_dir: Path) -> None:
        """Of two racing creates with the same id exactly one wins."""
        engine = JsonFileEngine(store=SlowStore(temp_dir / "db.json", fsync=False))
        await engine.init()

        results = await asyncio.gather(
            engine.create("users", {"id": 5, "name": "a"}),
            engine.create("users", {"id": 5, "name": "b"}),
            return_exceptions=True,
        )

        assert sum(isinstance(r, DuplicateIdError) for r in results) == 1
        assert len(await engine.find_all("users")) == 1
        await engine.close()

    async def test_readers_see_durable_state_only(self, temp_dir: Path) -> None:
        """While a write is in flight readers see the previous snapshot."""
        engine = JsonFileEngine(store=SlowStore(temp_dir / "db.json", fsync=False))
        await engine.init()

        task = asyncio.create_task(engine.create("users", {"name": "Ann"}))
        await asyncio.sleep(0.01)

        assert await engine.find_all("users") == []
        await task
        assert await engine.find_all("users") == [{"name": "Ann", "id": 1}]
        await engine.close()

    async def test_cancelled_create_still_consistent(self, temp_dir: Path) -> None:
        """A write that lands after its caller is cancelled is reflected in memory."""
        db_path = temp_dir / "db.json"
        engine = JsonFileEngine(store=SlowStore(db_path, fsync=False))
        await engine.init()

        task = asyncio.create_task(engine.create("users", {"name": "Ann"}))
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        on_disk = json.loads(db_path.read_text(encoding="utf-8"))
        assert await engine.find_all("users") == on_disk.get("users", [])
        await engine.close()
