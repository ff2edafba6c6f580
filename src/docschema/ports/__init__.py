"""Port interfaces for docschema.

Ports define the contracts that adapters must implement. The migration
coordinator depends only on these abstractions, so any document store or
migration source that satisfies them can be plugged in.
"""

from docschema.ports.document_store import CollectionPort, DocumentStorePort
from docschema.ports.migrations import MigrationScript, MigrationSourcePort, ResourceHook

__all__ = [
    "CollectionPort",
    "DocumentStorePort",
    "MigrationScript",
    "MigrationSourcePort",
    "ResourceHook",
]
