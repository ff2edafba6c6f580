"""docschema: coordinated schema migrations for shared document stores."""

from docschema.models import Release, SchemaVersion
from docschema.services import MigrationCoordinator, ensure_schema

__version__ = "0.3.0"

__all__ = [
    "MigrationCoordinator",
    "Release",
    "SchemaVersion",
    "__version__",
    "ensure_schema",
]
