"""Configuration management for the storage layer."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class FileEngineConfig(BaseModel):
    """JSON snapshot file engine configuration."""

    kind: Literal["file"] = "file"
    path: Path = Field(default=Path("./data/db.json"), description="Snapshot file path")
    indent: int = Field(default=2, ge=0, le=8, description="JSON indentation")


class EmbeddedRelationalConfig(BaseModel):
    """SQLite engine configuration."""

    kind: Literal["embedded-relational"] = "embedded-relational"
    path: Path = Field(
        default=Path("./data/database.sqlite"), description="SQLite database file path"
    )


class NetworkedRelationalConfig(BaseModel):
    """MySQL engine configuration."""

    kind: Literal["networked-relational"] = "networked-relational"
    host: str = Field(default="localhost", description="MySQL host")
    port: int = Field(default=3306, ge=1, le=65535, description="MySQL port")
    username: str = Field(default="root", description="MySQL user")
    password: SecretStr = Field(default=SecretStr(""), description="MySQL password")
    database: str = Field(default="polystore", description="Database (schema) name")
    pool_min_size: int = Field(default=1, ge=0, description="Minimum pooled connections")
    pool_max_size: int = Field(default=10, ge=1, description="Maximum pooled connections")
    connect_timeout_seconds: float = Field(
        default=10.0, gt=0, description="Connection timeout in seconds"
    )


class ManagedDocumentConfig(BaseModel):
    """Cloud Firestore engine configuration."""

    kind: Literal["managed-document"] = "managed-document"
    project_id: str | None = Field(default=None, description="Google Cloud project id")
    database: str | None = Field(default=None, description="Firestore database id")
    credentials: dict[str, Any] | None = Field(
        default=None, description="Service account info mapping"
    )
    credentials_file: Path | None = Field(
        default=None, description="Service account JSON key file"
    )


EngineConfig = Annotated[
    Union[
        FileEngineConfig,
        EmbeddedRelationalConfig,
        NetworkedRelationalConfig,
        ManagedDocumentConfig,
    ],
    Field(discriminator="kind"),
]


class ObservabilityConfig(BaseModel):
    """Observability configuration."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Log level"
    )
    log_format: Literal["json", "console"] = Field(default="json", description="Log format")
    otel_endpoint: str | None = Field(
        default=None, description="OpenTelemetry collector endpoint"
    )
    otel_service_name: str = Field(default="polystore", description="Service name for tracing")
    metrics_port: int = Field(default=8001, ge=1, le=65535, description="Prometheus metrics port")


class Config(BaseSettings):
    """Main configuration for the storage layer."""

    model_config = SettingsConfigDict(
        env_prefix="POLYSTORE_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    engine: EngineConfig = Field(default_factory=FileEngineConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


@lru_cache
def get_config() -> Config:
    """Get the global configuration instance."""
    return Config()
