"""Tests for SchemaVersionStore."""

import pytest

from docschema.errors import (
    IllegalArgumentError,
    MissingRequiredArgumentError,
    ObjectNotFoundError,
)
from docschema.models import SchemaVersion
from docschema.storage.schema_versions import DEFAULT_COLLECTION_NAME, SchemaVersionStore
from docschema.storage.sqlite_store import SqliteDocumentStore


class TestEnsureSchema:
    """Tests for collection bootstrap."""

    @pytest.mark.asyncio
    async def test_creates_default_collection(self, store: SqliteDocumentStore) -> None:
        """The default collection is created on first use."""
        collection = await SchemaVersionStore.ensure_schema(store)

        assert collection.name == DEFAULT_COLLECTION_NAME
        assert DEFAULT_COLLECTION_NAME in await store.list_resource_names()

    @pytest.mark.asyncio
    async def test_idempotent(self, store: SqliteDocumentStore) -> None:
        """A second call returns the existing collection untouched."""
        first = await SchemaVersionStore.ensure_schema(store, "versions")
        await first.insert_one({"_id": "Orders", "semver": "1.0.0", "lock": ""})

        second = await SchemaVersionStore.ensure_schema(store, "versions")

        assert second == first
        assert await second.count() == 1

    @pytest.mark.asyncio
    async def test_requires_store_and_name(self, store: SqliteDocumentStore) -> None:
        with pytest.raises(MissingRequiredArgumentError):
            await SchemaVersionStore.ensure_schema(None)  # type: ignore[arg-type]
        with pytest.raises(MissingRequiredArgumentError):
            await SchemaVersionStore.ensure_schema(store, "")


class TestReadWrite:
    """Tests for upsert and lookups."""

    @pytest.mark.asyncio
    async def test_find_missing_returns_none(self, schema_versions: SchemaVersionStore) -> None:
        assert await schema_versions.find_by_id("Orders") is None

    @pytest.mark.asyncio
    async def test_get_missing_raises(self, schema_versions: SchemaVersionStore) -> None:
        """get_by_id raises ObjectNotFoundError carrying the id."""
        with pytest.raises(ObjectNotFoundError) as exc_info:
            await schema_versions.get_by_id("Orders")
        assert exc_info.value.id == "Orders"

    @pytest.mark.asyncio
    async def test_upsert_round_trip(self, schema_versions: SchemaVersionStore) -> None:
        """Upserted rows read back equal, and later upserts overwrite."""
        sv = SchemaVersion(id="Orders", semver="1.0.0", lock="svc@1.0.0@host")

        returned = await schema_versions.upsert(sv)
        assert returned is sv
        assert await schema_versions.get_by_id("Orders") == sv

        sv.semver = "1.1.0"
        await schema_versions.upsert(sv.with_lock(""))

        stored = await schema_versions.get_by_id("Orders")
        assert stored.semver == "1.1.0"
        assert stored.locked is False

    @pytest.mark.asyncio
    async def test_upsert_validates_argument(self, schema_versions: SchemaVersionStore) -> None:
        """upsert rejects None and other types."""
        with pytest.raises(MissingRequiredArgumentError):
            await schema_versions.upsert(None)  # type: ignore[arg-type]
        with pytest.raises(IllegalArgumentError):
            await schema_versions.upsert({"_id": "Orders"})  # type: ignore[arg-type]

    @pytest.mark.asyncio
    async def test_find_requires_id(self, schema_versions: SchemaVersionStore) -> None:
        with pytest.raises(MissingRequiredArgumentError):
            await schema_versions.find_by_id("")

    @pytest.mark.asyncio
    async def test_lookup_ignores_surrounding_whitespace(
        self, schema_versions: SchemaVersionStore
    ) -> None:
        await schema_versions.upsert(SchemaVersion(id="Orders", semver="1.0.0"))

        assert (await schema_versions.find_by_id(" Orders ")).semver == "1.0.0"
        assert (await schema_versions.get_by_id("Orders\n")).semver == "1.0.0"


def test_format_lock() -> None:
    """Lock tokens are release@version@host."""
    assert SchemaVersionStore.format_lock("billing", "3.2.1", "web-7") == "billing@3.2.1@web-7"
