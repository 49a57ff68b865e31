"""Engine Manager - selects, owns and hot-swaps the active storage engine.

The manager builds the engine named by the configuration, initializes it
and hands callers a DatabaseHandle. The handle never caches an engine:
every call looks up the engine that is current at that moment, so a
runtime switch is observed by everyone holding the handle.

Switching:
    1. New calls are held at the gate.
    2. In-flight calls drain.
    3. The prior engine is closed (once).
    4. The new engine is initialized and installed.
    5. Held calls are admitted and run against the new engine.

Usage:
    from polystore.application import EngineManager

    manager = EngineManager()
    await manager.initialize({"kind": "file", "path": "./data/db.json"})

    db = manager.get_database()
    user = await db.create("users", {"name": "Ann"})

    await manager.switch_database({"kind": "embedded-relational", "path": "./data/app.sqlite"})
    await manager.close()

Calling switch_database() or close() from inside a handle call deadlocks:
the switch waits for that very call to drain.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Mapping, TypeVar, Union

from pydantic import BaseModel, TypeAdapter, ValidationError

from polystore.adapters.outbound import FirestoreEngine, JsonFileEngine, MySQLEngine, SqliteEngine
from polystore.domain.entities import Criteria, Record
from polystore.domain.value_objects import EngineKind, RecordId
from polystore.infrastructure.config import EngineConfig, get_config
from polystore.infrastructure.logging import get_logger
from polystore.infrastructure.metrics import MetricsRegistry, get_metrics
from polystore.infrastructure.tracing import storage_span
from polystore.ports.inbound import ConfigurationError, NotInitializedError, StorageEngine

T = TypeVar("T")

EngineFactory = Callable[[Any, MetricsRegistry], StorageEngine]
ConfigInput = Union[BaseModel, Mapping[str, Any]]

ENGINE_FACTORIES: dict[EngineKind, EngineFactory] = {
    EngineKind.FILE: lambda config, metrics: JsonFileEngine(
        config.path, indent=config.indent, metrics=metrics
    ),
    EngineKind.EMBEDDED_RELATIONAL: lambda config, metrics: SqliteEngine(config.path),
    EngineKind.NETWORKED_RELATIONAL: lambda config, metrics: MySQLEngine(config),
    EngineKind.MANAGED_DOCUMENT: lambda config, metrics: FirestoreEngine(config),
}

_engine_config_adapter: TypeAdapter[Any] = TypeAdapter(EngineConfig)


class EngineManager:
    """Owns the active storage engine and its lifecycle."""

    def __init__(
        self,
        config: ConfigInput | None = None,
        metrics: MetricsRegistry | None = None,
        factories: Mapping[EngineKind, EngineFactory] | None = None,
    ) -> None:
        """Initialize the manager. No engine is built until initialize().

        Args:
            config: Default engine configuration (model or mapping). When
                omitted, ``get_config().engine`` is used.
            metrics: Metrics registry (default: global registry).
            factories: Engine factories by kind (default: ENGINE_FACTORIES).
        """
        self._config = config
        self._metrics = metrics or get_metrics()
        self._factories = dict(factories if factories is not None else ENGINE_FACTORIES)
        self._logger = get_logger(__name__)

        self._engine: StorageEngine | None = None
        self._handle = DatabaseHandle(self)

        # Gate state
        self._in_flight = 0
        self._idle = asyncio.Event()
        self._idle.set()
        self._ready = asyncio.Event()
        self._ready.set()
        self._switching = False
        self._lifecycle_lock = asyncio.Lock()

    @property
    def active_engine(self) -> StorageEngine | None:
        """The current engine, or None when uninitialized."""
        return self._engine

    @property
    def active_kind(self) -> EngineKind | None:
        return self._engine.kind if self._engine is not None else None

    @property
    def metrics(self) -> MetricsRegistry:
        return self._metrics

    @property
    def in_flight(self) -> int:
        """Number of handle calls currently running."""
        return self._in_flight

    @property
    def is_switching(self) -> bool:
        """Whether new calls are currently held at the gate."""
        return self._switching

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def initialize(self, config: ConfigInput | None = None) -> None:
        """Build and initialize the engine named by ``config``.

        If an engine is already active this behaves as switch_database().

        Args:
            config: Engine configuration. Defaults to the manager's config.

        Raises:
            ConfigurationError: If the configuration is invalid or names an
                unknown engine kind.
            StorageError: If the engine's init() fails.
        """
        await self._install(config if config is not None else self._default_config())

    async def switch_database(self, new_config: ConfigInput) -> None:
        """Replace the active engine with one built from ``new_config``.

        The new configuration is validated before anything is torn down.
        If the new engine fails to initialize, the error propagates and the
        manager is left uninitialized.

        Raises:
            ConfigurationError: If ``new_config`` is invalid.
            StorageError: If closing the prior engine or initializing the
                new one fails.
        """
        await self._install(new_config)

    async def close(self) -> None:
        """Drain in-flight calls and close the active engine. Idempotent."""
        async with self._lifecycle_lock:
            if self._engine is None:
                return
            async with self._hold_gate():
                await self._retire_engine()
        self._logger.info("engine_manager_closed")

    def get_database(self) -> DatabaseHandle:
        """Return the handle for the active engine.

        Raises:
            NotInitializedError: If no engine is active.
        """
        if self._engine is None:
            raise NotInitializedError("Database not initialized. Call initialize() first.")
        return self._handle

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _default_config(self) -> ConfigInput:
        return self._config if self._config is not None else get_config().engine

    def _build(self, config: ConfigInput) -> StorageEngine:
        if isinstance(config, Mapping):
            try:
                config = _engine_config_adapter.validate_python(dict(config))
            except ValidationError as e:
                raise ConfigurationError(f"Invalid engine configuration: {e}") from e

        raw_kind = getattr(config, "kind", None)
        try:
            kind = EngineKind(raw_kind)
        except ValueError as e:
            raise ConfigurationError(f"Unknown engine kind: {raw_kind!r}") from e

        factory = self._factories.get(kind)
        if factory is None:
            raise ConfigurationError(f"No engine registered for kind {kind.value!r}")
        return factory(config, self._metrics)

    async def _install(self, config: ConfigInput) -> None:
        engine = self._build(config)

        async with self._lifecycle_lock:
            async with self._hold_gate():
                previous = self._engine
                if previous is not None:
                    await self._retire_engine()

                await engine.init()
                self._engine = engine
                self._metrics.set_active_engine(engine.kind.value, True)

        if previous is None:
            self._logger.info("engine_activated", engine=engine.kind.value)
        else:
            self._metrics.engine_switches_total.inc()
            self._logger.info(
                "engine_switched",
                previous=previous.kind.value,
                engine=engine.kind.value,
            )

    async def _retire_engine(self) -> None:
        """Close and clear the active engine. Caller holds the gate."""
        engine, self._engine = self._engine, None
        if engine is None:
            return
        self._metrics.set_active_engine(engine.kind.value, False)
        await engine.close()

    @asynccontextmanager
    async def _hold_gate(self) -> AsyncIterator[None]:
        """Stop admitting calls and wait for in-flight calls to finish."""
        self._switching = True
        self._ready.clear()
        try:
            await self._idle.wait()
            yield
        finally:
            self._switching = False
            self._ready.set()

    @asynccontextmanager
    async def _admit(self) -> AsyncIterator[StorageEngine]:
        """Admit one handle call and pin the engine it runs against."""
        while self._switching:
            await self._ready.wait()

        engine = self._engine
        if engine is None:
            raise NotInitializedError("Database not initialized. Call initialize() first.")

        self._in_flight += 1
        self._idle.clear()
        try:
            yield engine
        finally:
            self._in_flight -= 1
            if self._in_flight == 0:
                self._idle.set()


class DatabaseHandle:
    """Storage Contract forwarded to whichever engine is current.

    Handed out by EngineManager.get_database(). Lifecycle (init, close,
    switching) belongs to the manager, not to the handle.
    """

    def __init__(self, manager: EngineManager) -> None:
        self._manager = manager

    @property
    def kind(self) -> EngineKind:
        """Kind of the engine currently behind the handle."""
        kind = self._manager.active_kind
        if kind is None:
            raise NotInitializedError("Database not initialized. Call initialize() first.")
        return kind

    async def find_all(self, table: str) -> list[Record]:
        return await self._call("find_all", table, lambda engine: engine.find_all(table))

    async def find_by_id(self, table: str, record_id: RecordId) -> Record | None:
        return await self._call(
            "find_by_id", table, lambda engine: engine.find_by_id(table, record_id)
        )

    async def create(self, table: str, data: Mapping[str, Any]) -> Record:
        return await self._call("create", table, lambda engine: engine.create(table, data))

    async def update(
        self,
        table: str,
        record_id: RecordId,
        partial: Mapping[str, Any],
    ) -> Record | None:
        return await self._call(
            "update", table, lambda engine: engine.update(table, record_id, partial)
        )

    async def delete(self, table: str, record_id: RecordId) -> bool:
        return await self._call("delete", table, lambda engine: engine.delete(table, record_id))

    async def find_by(self, table: str, criteria: Criteria) -> list[Record]:
        return await self._call("find_by", table, lambda engine: engine.find_by(table, criteria))

    async def find_one(self, table: str, criteria: Criteria) -> Record | None:
        return await self._call(
            "find_one", table, lambda engine: engine.find_one(table, criteria)
        )

    # Engine-specific extras. Engines without them raise NotImplementedError.

    async def find_page(
        self,
        table: str,
        limit: int,
        start_after: RecordId | None = None,
    ) -> list[Record]:
        return await self._call(
            "find_page",
            table,
            lambda engine: self._extra(engine, "find_page")(table, limit, start_after),
        )

    async def clear_table(self, table: str) -> None:
        await self._call(
            "clear_table", table, lambda engine: self._extra(engine, "clear_table")(table)
        )

    async def clear_all_data(self) -> None:
        await self._call(
            "clear_all_data", None, lambda engine: self._extra(engine, "clear_all_data")()
        )

    @staticmethod
    def _extra(engine: StorageEngine, name: str) -> Callable[..., Awaitable[Any]]:
        method = getattr(engine, name, None)
        if method is None:
            raise NotImplementedError(f"{engine.kind.value} engine does not support {name}")
        return method

    async def _call(
        self,
        operation: str,
        table: str | None,
        invoke: Callable[[StorageEngine], Awaitable[T]],
    ) -> T:
        metrics = self._manager.metrics
        async with self._manager._admit() as engine:
            succeeded = False
            start = time.perf_counter()
            with storage_span(operation, engine.kind, table):
                try:
                    result = await invoke(engine)
                    succeeded = True
                    return result
                finally:
                    metrics.observe_operation(
                        engine.kind.value, operation, succeeded, time.perf_counter() - start
                    )


# Process-wide manager
_manager: EngineManager | None = None


def get_manager() -> EngineManager:
    """Get the process-wide manager, built from get_config() on first use."""
    global _manager
    if _manager is None:
        _manager = EngineManager(get_config().engine)
    return _manager


def reset_manager() -> None:
    """Forget the process-wide manager. Close it first if it is active."""
    global _manager
    _manager = None
