"""Configuration management for docschema."""

from docschema.config.loader import load_config
from docschema.config.models import Config, CoordinatorConfig, LoggingConfig, StorageConfig

__all__ = ["Config", "CoordinatorConfig", "LoggingConfig", "StorageConfig", "load_config"]
