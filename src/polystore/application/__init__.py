"""Application layer for the storage abstraction.

Exports:
    EngineManager: builds, owns and hot-swaps the active engine
    DatabaseHandle: Storage Contract forwarded to the current engine
    ENGINE_FACTORIES: engine factory registry keyed by EngineKind
    get_manager / reset_manager: process-wide manager
"""

from polystore.application.engine_manager import (
    ENGINE_FACTORIES,
    DatabaseHandle,
    EngineFactory,
    EngineManager,
    get_manager,
    reset_manager,
)

__all__ = [
    "EngineManager",
    "DatabaseHandle",
    "EngineFactory",
    "ENGINE_FACTORIES",
    "get_manager",
    "reset_manager",
]
