"""docschema error types.

All custom exceptions inherit from DocSchemaError to allow
catching any docschema-specific error.
"""


class DocSchemaError(Exception):
    """Base exception for all docschema errors."""

    pass


class ConfigurationError(DocSchemaError):
    """Invalid configuration."""

    pass


class DuplicateMigrationError(ConfigurationError):
    """The same migration version is registered twice for one schema."""

    def __init__(self, schema_id: str, version: str) -> None:
        super().__init__(f"Duplicate migration {version} for schema {schema_id!r}")
        self.schema_id = schema_id
        self.version = version


class MissingRequiredArgumentError(DocSchemaError, ValueError):
    """A required argument was absent or blank."""

    pass


class IllegalArgumentError(DocSchemaError, ValueError):
    """An argument was present but unusable."""

    pass


class StorageError(DocSchemaError):
    """Database or storage operation failed."""

    pass


class StoreBusyError(StorageError):
    """The store is temporarily unavailable, e.g. locked by another writer."""

    pass


class ObjectNotFoundError(StorageError):
    """A document looked up by id does not exist."""

    def __init__(self, message: str, id: str | None = None) -> None:
        super().__init__(message)
        self.id = id


class UniqueKeyViolationError(StorageError):
    """Two writes raced on the same unique key."""

    pass


class OptimisticLockViolationError(StorageError):
    """A document changed since it was read."""

    pass


class MigrationLockTimeoutError(DocSchemaError, TimeoutError):
    """Gave up waiting for another process to release a migration lock."""

    def __init__(self, schema_id: str, lock: str, timeout_seconds: float) -> None:
        super().__init__(
            f"Schema {schema_id!r} still locked by {lock!r} after {timeout_seconds}s"
        )
        self.schema_id = schema_id
        self.lock = lock
        self.timeout_seconds = timeout_seconds
