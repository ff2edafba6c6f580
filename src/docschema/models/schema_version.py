"""SchemaVersion entity: the applied version and migration lock of one schema."""

from typing import Any, Self

from pydantic import BaseModel, field_validator

from docschema.utils import versions

UNLOCKED = ""


class SchemaVersion(BaseModel):
    """
    Governs one schema identifier's applied version and lock state.

    ``id`` names the logical schema, not the collection that holds its
    documents. ``lock`` is empty when unlocked, otherwise an attribution
    token of the form ``<release>@<version>@<host>``. The token is for
    humans only and is never parsed.
    """

    id: str
    semver: str
    lock: str = UNLOCKED

    model_config = {"validate_assignment": True}

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Strip whitespace and require a non-blank id."""
        v = v.strip()
        if not v:
            raise ValueError("id required")
        return v

    @field_validator("semver")
    @classmethod
    def validate_semver(cls, v: str) -> str:
        """Require a semantic version."""
        if not versions.is_valid(v):
            raise ValueError(f"semver must be a semantic version, got {v!r}")
        return v

    @field_validator("lock", mode="before")
    @classmethod
    def normalize_lock(cls, v: Any) -> str:
        # Older rows stored ``false`` for an unlocked schema.
        if v is None or v is False:
            return UNLOCKED
        return v

    @property
    def locked(self) -> bool:
        """True if some process holds the migration lock."""
        return self.lock != UNLOCKED

    def with_lock(self, lock: str) -> Self:
        """Set the lock token (empty string to unlock) and return self."""
        self.lock = lock
        return self

    def gt(self, semver: str) -> bool:
        return versions.compare(self.semver, semver) > 0

    def lt(self, semver: str) -> bool:
        return versions.compare(self.semver, semver) < 0

    def gte(self, semver: str) -> bool:
        return versions.compare(self.semver, semver) >= 0

    def lte(self, semver: str) -> bool:
        return versions.compare(self.semver, semver) <= 0

    def to_document(self) -> dict[str, Any]:
        """Document shape stored in the schema version collection."""
        return {"_id": self.id, "semver": self.semver, "lock": self.lock}

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "SchemaVersion":
        """Build an entity from a stored document."""
        return cls(id=doc["_id"], semver=doc["semver"], lock=doc.get("lock", UNLOCKED))
