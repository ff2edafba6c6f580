"""Port interfaces for migration discovery and execution."""

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, Protocol, TypeAlias

from docschema.models.schema_version import SchemaVersion
from docschema.ports.document_store import CollectionPort, DocumentStorePort

if TYPE_CHECKING:
    from docschema.storage.schema_versions import SchemaVersionStore


class MigrationScript(Protocol):
    """A versioned unit of work applied to one resource.

    May change ``schema_version.semver`` (and persist it through
    ``schema_versions``). Returns the resource handle to use from now
    on, or None to keep using the current one.
    """

    def __call__(
        self,
        store: DocumentStorePort,
        name: str,
        schema_versions: "SchemaVersionStore",
        schema_version: SchemaVersion,
    ) -> Awaitable[CollectionPort | None] | CollectionPort | None: ...


ResourceHook: TypeAlias = Callable[[CollectionPort], Awaitable[Any] | Any]
"""Index or seed-data callback applied to a resource handle."""


class MigrationSourcePort(Protocol):
    """Protocol for anything that can list and load migration scripts."""

    def list(self, schema_id: str) -> list[tuple[str, Any]]:
        """Return ``(version, handle)`` pairs registered for ``schema_id``."""
        ...

    def load(self, handle: Any) -> MigrationScript:
        """Turn a handle returned by ``list`` into a callable script."""
        ...
