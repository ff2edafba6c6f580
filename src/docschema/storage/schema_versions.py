"""Persistence for SchemaVersion rows."""

from collections.abc import Mapping
from typing import Any

from loguru import logger

from docschema.errors import MissingRequiredArgumentError
from docschema.models.schema_version import SchemaVersion
from docschema.ports.document_store import CollectionPort, DocumentStorePort
from docschema.storage.repository import DocumentRepository

DEFAULT_COLLECTION_NAME = "schema_versions"


class SchemaVersionStore(DocumentRepository[SchemaVersion]):
    """
    Reads and writes SchemaVersion documents.

    ``upsert`` is last-write-wins: there is no compare-and-swap at this
    layer, which is why the migration lock built on it is advisory.
    """

    entity_type = SchemaVersion

    @staticmethod
    def format_lock(release_name: str, release_version: str, host_id: str) -> str:
        """Build the ``<release>@<version>@<host>`` attribution token."""
        return f"{release_name}@{release_version}@{host_id}"

    @staticmethod
    async def ensure_schema(
        store: DocumentStorePort,
        name: str = DEFAULT_COLLECTION_NAME,
        options: Mapping[str, Any] | None = None,
    ) -> CollectionPort:
        """
        Return the schema version collection, creating it if needed.

        Args:
            store: Document store.
            name: Collection name.
            options: Passed to the store when the collection is created.

        Returns:
            Collection handle.
        """
        if store is None:
            raise MissingRequiredArgumentError("store required")
        if not name:
            raise MissingRequiredArgumentError("name required")

        if name in await store.list_resource_names():
            return store.get_resource(name)

        logger.info("Creating schema version collection {}", name)
        return await store.create_resource(name, options)

    @classmethod
    async def create(
        cls,
        store: DocumentStorePort,
        name: str = DEFAULT_COLLECTION_NAME,
        options: Mapping[str, Any] | None = None,
    ) -> "SchemaVersionStore":
        """Ensure the collection exists and wrap it."""
        return cls(await cls.ensure_schema(store, name, options))

    def _entity_to_doc(self, entity: SchemaVersion) -> dict[str, Any]:
        return entity.to_document()

    def _doc_to_entity(self, doc: Mapping[str, Any]) -> SchemaVersion:
        return SchemaVersion.from_document(dict(doc))

    async def upsert(self, schema_version: SchemaVersion) -> SchemaVersion:
        """Persist id, semver and lock. Returns the same instance."""
        self._assert(schema_version)
        await self._upsert(self._entity_to_doc(schema_version))
        return schema_version

    async def find_by_id(self, id: str) -> SchemaVersion | None:
        """Get a schema version by id, or None. Surrounding whitespace in ``id`` is ignored."""
        doc = await self._find_by_id(id.strip() if isinstance(id, str) else id)
        return self._doc_to_entity(doc) if doc else None

    async def get_by_id(self, id: str) -> SchemaVersion:
        """Get a schema version by id. Raises ObjectNotFoundError if absent."""
        return self._doc_to_entity(await self._get_by_id(id.strip() if isinstance(id, str) else id))
