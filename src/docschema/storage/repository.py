"""Shared plumbing for repositories that persist entities as documents."""

from collections.abc import Mapping
from typing import Any, Generic, TypeVar

from docschema.errors import (
    IllegalArgumentError,
    MissingRequiredArgumentError,
    ObjectNotFoundError,
)
from docschema.models.locking import OptimisticallyLockable
from docschema.ports.document_store import CollectionPort

E = TypeVar("E")


def remove_nullishes(value: Any) -> Any:
    """Recursively drop None values from dicts (and dicts inside lists)."""
    if isinstance(value, Mapping):
        return {k: remove_nullishes(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [remove_nullishes(v) for v in value]
    return value


class DocumentRepository(Generic[E]):
    """
    Base class for entity repositories over one collection.

    Subclasses set ``entity_type`` and implement ``_entity_to_doc`` and
    ``_doc_to_entity``; the protected helpers here handle ids, type
    checks and not-found semantics.
    """

    entity_type: type[E]

    def __init__(self, collection: CollectionPort | None) -> None:
        if collection is None:
            raise MissingRequiredArgumentError("collection required")
        self._collection = collection

    @property
    def collection(self) -> CollectionPort:
        return self._collection

    def _entity_to_doc(self, entity: E) -> dict[str, Any]:
        raise NotImplementedError

    def _doc_to_entity(self, doc: Mapping[str, Any]) -> E:
        raise NotImplementedError

    def _assert(self, entity: Any) -> None:
        """Reject a missing entity or one of the wrong type."""
        if entity is None:
            raise MissingRequiredArgumentError(f"{self.entity_type.__name__} required")
        if not isinstance(entity, self.entity_type):
            raise IllegalArgumentError(
                f"type {self.entity_type.__name__} required, got {type(entity).__name__}"
            )

    async def _upsert(self, doc: Mapping[str, Any]) -> dict[str, Any]:
        doc = remove_nullishes(doc)
        if not doc.get("_id"):
            raise MissingRequiredArgumentError("_id required for upsert")
        await self._collection.upsert_one(doc["_id"], doc)
        return doc

    async def _find_by_id(self, id: str) -> dict[str, Any] | None:
        if not id:
            raise MissingRequiredArgumentError("id required")
        return await self._collection.find_one(id)

    async def _get_by_id(self, id: str) -> dict[str, Any]:
        doc = await self._find_by_id(id)
        if doc is None:
            raise ObjectNotFoundError(f"{self.entity_type.__name__} not found", id=id)
        return doc

    async def _overwrite_optimistically(
        self, entity: OptimisticallyLockable, doc: Mapping[str, Any]
    ) -> bool:
        """Replace the stored document only if its optimistic lock is unchanged.

        On success a new lock token is written and set on ``entity``.
        Returns False if the document was changed (or removed) meanwhile.
        """
        expected_lock = entity.optimistic_lock
        new_lock = entity.next_optimistic_lock()
        replaced = await self._collection.replace_one(
            doc["_id"],
            remove_nullishes({**doc, "optimistic_lock": new_lock}),
            expected={"optimistic_lock": expected_lock},
        )
        if not replaced:
            entity.optimistic_lock = expected_lock
        return replaced
