"""
Storage layer for docschema.

- SqliteDocumentStore: JSON document tables in one SQLite file
- DocumentRepository: base class for entity repositories over a collection
- SchemaVersionStore: SchemaVersion rows, including the migration lock

The storage layer is async-first for all I/O operations.
"""

from docschema.storage.repository import DocumentRepository
from docschema.storage.schema_versions import DEFAULT_COLLECTION_NAME, SchemaVersionStore
from docschema.storage.sqlite_store import SqliteCollection, SqliteDocumentStore

__all__ = [
    "DEFAULT_COLLECTION_NAME",
    "DocumentRepository",
    "SchemaVersionStore",
    "SqliteCollection",
    "SqliteDocumentStore",
]
