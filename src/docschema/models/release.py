"""Release descriptor for the running application."""

from pydantic import BaseModel, Field, field_validator

from docschema.utils import versions


class Release(BaseModel):
    """
    Name and version of the release performing schema work.

    The version is the schema version the release expects; both fields
    feed the lock token (see ``SchemaVersionStore.format_lock``) written
    while a migration is in progress.
    """

    name: str = Field(min_length=1)
    version: str

    model_config = {"frozen": True}

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        """Require a semantic version."""
        if not versions.is_valid(v):
            raise ValueError(f"version must be a semantic version, got {v!r}")
        return v
