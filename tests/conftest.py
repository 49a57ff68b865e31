"""Pytest configuration and fixtures for polystore tests."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Generator

import pytest
from prometheus_client import CollectorRegistry

from polystore.infrastructure.config import EmbeddedRelationalConfig, FileEngineConfig
from polystore.infrastructure.metrics import MetricsRegistry


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def metrics_registry() -> MetricsRegistry:
    """Provide a fresh metrics registry for each test."""
    # Use a separate registry to avoid conflicts between tests
    registry = CollectorRegistry(auto_describe=True)
    return MetricsRegistry(registry=registry)


@pytest.fixture
def file_config(temp_dir: Path) -> FileEngineConfig:
    """Snapshot engine configuration inside the temp dir."""
    return FileEngineConfig(path=temp_dir / "data" / "db.json")


@pytest.fixture
def sqlite_config(temp_dir: Path) -> EmbeddedRelationalConfig:
    """SQLite engine configuration inside the temp dir."""
    return EmbeddedRelationalConfig(path=temp_dir / "data" / "database.sqlite")


# Markers for test categories
def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "concurrency: Interleaving and race tests")
