"""Domain models for docschema."""

from docschema.models.locking import OptimisticallyLockable
from docschema.models.release import Release
from docschema.models.schema_version import UNLOCKED, SchemaVersion

__all__ = [
    "UNLOCKED",
    "OptimisticallyLockable",
    "Release",
    "SchemaVersion",
]
