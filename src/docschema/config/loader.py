"""Configuration loading utilities."""

import os
from pathlib import Path
from typing import Any

import yaml

from docschema.config.models import Config

CONFIG_ENV_VAR = "DOCSCHEMA_CONFIG"


def _read_yaml(config_path: Path) -> dict[str, Any]:
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        data = yaml.safe_load(config_path.read_text())
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{config_path}: YAML root must be a mapping, not {type(data).__name__}")
    return data


def load_config(config_path: Path | None = None, **sections: Any) -> Config:
    """
    Build the configuration from a YAML file, keyword sections and the environment.

    With no ``config_path``, the file named by ``DOCSCHEMA_CONFIG`` is read
    if that variable is set. Sections passed as keywords (``release=...``,
    ``coordinator=...``) replace the same top-level sections of the file.
    Environment variables prefixed with ``DOCSCHEMA_`` supply any values
    both leave out.

    Args:
        config_path: Path to YAML config file, or None.
        **sections: Top-level sections overriding the file. None values
            are ignored.

    Returns:
        Validated Config object.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        ValueError: If YAML is invalid.
    """
    if config_path is None and os.environ.get(CONFIG_ENV_VAR):
        config_path = Path(os.environ[CONFIG_ENV_VAR])

    data = _read_yaml(config_path) if config_path is not None else {}
    data.update({key: value for key, value in sections.items() if value is not None})
    return Config(**data)
