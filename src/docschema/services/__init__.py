"""docschema services layer.

Services coordinate between migration sources and storage.
"""

from docschema.services.coordinator import (
    MigrationCoordinator,
    SchemaState,
    classify,
    ensure_schema,
    pending_migrations,
)

__all__ = [
    "MigrationCoordinator",
    "SchemaState",
    "classify",
    "ensure_schema",
    "pending_migrations",
]
