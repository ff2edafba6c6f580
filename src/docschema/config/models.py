"""Pydantic configuration models for docschema."""

import socket
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from docschema.models.release import Release


class StorageConfig(BaseModel):
    """Document store configuration."""

    database_path: Path = Field(default_factory=lambda: Path("docschema.db"))
    schema_version_collection: str = Field(default="schema_versions", min_length=1)
    busy_timeout_seconds: float = Field(default=5.0, ge=0.0, le=300.0)

    @field_validator("database_path", mode="before")
    @classmethod
    def expand_path(cls, v: Path | str) -> Path:
        """Expand user path and resolve to absolute."""
        if isinstance(v, str):
            v = Path(v)
        return v.expanduser().resolve()


class CoordinatorConfig(BaseModel):
    """Migration coordinator behaviour."""

    poll_interval_seconds: float = Field(default=1.0, gt=0.0, le=300.0)
    lock_timeout_seconds: float | None = Field(default=None, gt=0.0)
    host_id: str = Field(default_factory=socket.gethostname, min_length=1)


class LoggingConfig(BaseModel):
    """Logging configuration for loguru."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["console", "json"] = "console"
    file: Path | None = None
    rotation: str = "10 MB"
    retention: str = "7 days"


class Config(BaseSettings):
    """Root configuration for docschema."""

    release: Release | None = None
    storage: StorageConfig = Field(default_factory=StorageConfig)
    coordinator: CoordinatorConfig = Field(default_factory=CoordinatorConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {
        "env_prefix": "DOCSCHEMA_",
        "env_nested_delimiter": "__",
    }
