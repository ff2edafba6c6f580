"""Optimistic locking for individual documents.

This is a per-document update conflict check and is unrelated to the
migration lock on SchemaVersion, which coordinates whole processes.
"""

from uuid import uuid4

from pydantic import BaseModel

from docschema.errors import OptimisticLockViolationError


class OptimisticallyLockable(BaseModel):
    """Mixin adding an ``optimistic_lock`` token to an entity.

    Repositories compare the token they read with the token stored
    before overwriting, and issue a new token on every successful write.
    """

    optimistic_lock: str | None = None

    def optimistic_lock_matches(self, other: "OptimisticallyLockable | None") -> bool:
        """Return True if ``other`` carries the same lock token."""
        return other is not None and self.optimistic_lock == other.optimistic_lock

    def verify_optimistic_lock(self, other: "OptimisticallyLockable | None") -> None:
        """Raise OptimisticLockViolationError unless the tokens match."""
        if self.optimistic_lock_matches(other):
            return
        raise OptimisticLockViolationError(
            f"optimistic lock violation: expected {self.optimistic_lock!r}, "
            f"found {other.optimistic_lock if other else None!r}"
        )

    def next_optimistic_lock(self) -> str:
        """Issue a fresh token for the next write."""
        self.optimistic_lock = str(uuid4())
        return self.optimistic_lock
