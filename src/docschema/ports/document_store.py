"""Port interfaces for the document store."""

from collections.abc import Mapping
from typing import Any, Protocol


class CollectionPort(Protocol):
    """Protocol for a handle on one named resource (collection).

    Documents are plain dicts keyed by ``_id``.
    """

    @property
    def name(self) -> str:
        """Resource name in the store."""
        ...

    async def find_one(self, id: str) -> dict[str, Any] | None:
        """Get a document by id, or None."""
        ...

    async def find(self, filter: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        """List documents whose top-level fields equal ``filter``."""
        ...

    async def insert_one(self, document: Mapping[str, Any]) -> dict[str, Any]:
        """Insert a new document. Raises UniqueKeyViolationError on id clash."""
        ...

    async def upsert_one(self, id: str, document: Mapping[str, Any]) -> None:
        """Merge ``document`` into the stored one, inserting if absent."""
        ...

    async def replace_one(
        self,
        id: str,
        document: Mapping[str, Any],
        expected: Mapping[str, Any] | None = None,
    ) -> bool:
        """Replace a document; if ``expected`` is given, only when its fields match."""
        ...

    async def update_many(
        self, filter: Mapping[str, Any] | None, fields: Mapping[str, Any]
    ) -> int:
        """Set ``fields`` on every matching document. Returns the match count."""
        ...

    async def delete_one(self, id: str) -> bool:
        """Delete a document by id. Returns True if one was removed."""
        ...

    async def count(self) -> int:
        """Count documents."""
        ...

    async def create_index(self, field: str, *, unique: bool = False) -> str:
        """Create an index on a top-level field. Returns the index name."""
        ...


class DocumentStorePort(Protocol):
    """Protocol for the store that owns named resources."""

    async def create_resource(
        self, name: str, options: Mapping[str, Any] | None = None
    ) -> CollectionPort:
        """Create a named resource, passing ``options`` to the driver."""
        ...

    async def list_resource_names(self) -> set[str]:
        """Names of all resources in the store."""
        ...

    def get_resource(self, name: str) -> CollectionPort:
        """Handle on a named resource. Performs no I/O."""
        ...
