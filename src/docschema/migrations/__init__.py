"""Migration discovery for docschema.

Migrations are forward-only scripts keyed by semantic version. The
coordinator runs those newer than the stored schema version, up to and
including the target version, in ascending version order.
"""

from docschema.migrations.registry import ENTRY_POINT, MigrationRegistry, PackageMigrationSource

__all__ = ["ENTRY_POINT", "MigrationRegistry", "PackageMigrationSource"]
