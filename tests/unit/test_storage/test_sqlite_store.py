"""Tests for the SQLite document store."""

import asyncio
import sqlite3
from pathlib import Path

import pytest

from docschema.errors import (
    IllegalArgumentError,
    StorageError,
    StoreBusyError,
    UniqueKeyViolationError,
)
from docschema.storage.sqlite_store import SqliteDocumentStore, translate_error


class TestResources:
    """Tests for resource creation and listing."""

    @pytest.mark.asyncio
    async def test_create_and_list(self, store: SqliteDocumentStore) -> None:
        """Created resources are listed by name."""
        await store.create_resource("orders")
        await store.create_resource("customers")

        assert await store.list_resource_names() == {"orders", "customers"}

    @pytest.mark.asyncio
    async def test_create_is_idempotent(self, store: SqliteDocumentStore) -> None:
        """Creating an existing resource succeeds and keeps its documents."""
        orders = await store.create_resource("orders")
        await orders.insert_one({"_id": "o1"})

        again = await store.create_resource("orders")

        assert again == orders
        assert await again.count() == 1

    @pytest.mark.asyncio
    async def test_create_with_options(self, store: SqliteDocumentStore) -> None:
        """Supported table options are accepted."""
        collection = await store.create_resource("events", {"without_rowid": True})
        await collection.insert_one({"_id": "e1"})
        assert await collection.count() == 1

    @pytest.mark.asyncio
    async def test_unknown_option_rejected(self, store: SqliteDocumentStore) -> None:
        """Unknown options raise IllegalArgumentError."""
        with pytest.raises(IllegalArgumentError):
            await store.create_resource("events", {"capped": True})

    @pytest.mark.parametrize("name", ["", "1orders", 'or"ders', "sqlite_master", "a b"])
    def test_invalid_names_rejected(self, db_path: Path, name: str) -> None:
        """Unsafe resource names are rejected."""
        with pytest.raises(IllegalArgumentError):
            SqliteDocumentStore(db_path).get_resource(name)

    @pytest.mark.asyncio
    async def test_get_resource_does_not_create(self, store: SqliteDocumentStore) -> None:
        """get_resource performs no I/O."""
        store.get_resource("orders")
        assert await store.list_resource_names() == set()

    @pytest.mark.asyncio
    async def test_not_connected(self, db_path: Path) -> None:
        """Operations before connect raise RuntimeError."""
        unconnected = SqliteDocumentStore(db_path)
        with pytest.raises(RuntimeError):
            await unconnected.list_resource_names()


class TestDocuments:
    """Tests for document CRUD on a collection."""

    @pytest.mark.asyncio
    async def test_insert_and_find_one(self, store: SqliteDocumentStore) -> None:
        """Inserted documents can be read back by id."""
        orders = await store.create_resource("orders")
        await orders.insert_one({"_id": "o1", "total": 10})

        assert await orders.find_one("o1") == {"_id": "o1", "total": 10}
        assert await orders.find_one("missing") is None

    @pytest.mark.asyncio
    async def test_insert_generates_id(self, store: SqliteDocumentStore) -> None:
        """insert_one assigns an id when none is given."""
        orders = await store.create_resource("orders")
        doc = await orders.insert_one({"total": 10})

        assert doc["_id"]
        assert await orders.find_one(doc["_id"]) == doc

    @pytest.mark.asyncio
    async def test_duplicate_insert_raises(self, store: SqliteDocumentStore) -> None:
        """Inserting an existing id raises UniqueKeyViolationError."""
        orders = await store.create_resource("orders")
        await orders.insert_one({"_id": "o1"})

        with pytest.raises(UniqueKeyViolationError):
            await orders.insert_one({"_id": "o1"})

    @pytest.mark.asyncio
    async def test_upsert_inserts_then_merges(self, store: SqliteDocumentStore) -> None:
        """upsert_one merges fields into an existing document."""
        orders = await store.create_resource("orders")
        await orders.upsert_one("o1", {"status": "open", "total": 10})
        await orders.upsert_one("o1", {"status": "paid"})

        assert await orders.find_one("o1") == {"_id": "o1", "status": "paid", "total": 10}

    @pytest.mark.asyncio
    async def test_replace_with_expected_fields(self, store: SqliteDocumentStore) -> None:
        """replace_one only applies when expected fields match."""
        orders = await store.create_resource("orders")
        await orders.insert_one({"_id": "o1", "rev": "a"})

        assert await orders.replace_one("o1", {"rev": "b"}, expected={"rev": "x"}) is False
        assert await orders.replace_one("o1", {"rev": "b"}, expected={"rev": "a"}) is True
        assert await orders.find_one("o1") == {"_id": "o1", "rev": "b"}

    @pytest.mark.asyncio
    async def test_find_and_update_many(self, store: SqliteDocumentStore) -> None:
        """update_many patches every matching document; None matches missing fields."""
        orders = await store.create_resource("orders")
        await orders.insert_one({"_id": "o1"})
        await orders.insert_one({"_id": "o2", "status": "paid"})

        updated = await orders.update_many({"status": None}, {"status": "open"})

        assert updated == 1
        assert [d["_id"] for d in await orders.find({"status": "open"})] == ["o1"]
        assert len(await orders.find()) == 2

    @pytest.mark.asyncio
    async def test_delete_one(self, store: SqliteDocumentStore) -> None:
        """delete_one reports whether a document was removed."""
        orders = await store.create_resource("orders")
        await orders.insert_one({"_id": "o1"})

        assert await orders.delete_one("o1") is True
        assert await orders.delete_one("o1") is False
        assert await orders.count() == 0

    @pytest.mark.asyncio
    async def test_unique_index(self, store: SqliteDocumentStore) -> None:
        """A unique index rejects duplicate field values."""
        customers = await store.create_resource("customers")
        await customers.create_index("email", unique=True)
        await customers.insert_one({"email": "a@example.com"})

        with pytest.raises(UniqueKeyViolationError):
            await customers.insert_one({"email": "a@example.com"})

    @pytest.mark.asyncio
    async def test_unserializable_document(self, store: SqliteDocumentStore) -> None:
        """Documents must be JSON serializable."""
        orders = await store.create_resource("orders")
        with pytest.raises(IllegalArgumentError):
            await orders.insert_one({"_id": "o1", "when": object()})


class TestTransactions:
    """Tests for the transaction context manager."""

    @pytest.mark.asyncio
    async def test_commit(self, store: SqliteDocumentStore) -> None:
        """Writes inside a successful transaction are committed."""
        orders = await store.create_resource("orders")
        async with store.transaction():
            await orders.insert_one({"_id": "o1"})
            await orders.insert_one({"_id": "o2"})

        assert await orders.count() == 2

    @pytest.mark.asyncio
    async def test_rollback(self, store: SqliteDocumentStore) -> None:
        """A failing transaction leaves no writes behind."""
        orders = await store.create_resource("orders")

        with pytest.raises(UniqueKeyViolationError):
            async with store.transaction():
                await orders.insert_one({"_id": "o1"})
                await orders.insert_one({"_id": "o1"})

        assert await orders.count() == 0

    @pytest.mark.asyncio
    async def test_other_tasks_do_not_join_transaction(self, store: SqliteDocumentStore) -> None:
        """A write from another task waits and survives the transaction's rollback."""
        orders = await store.create_resource("orders")

        with pytest.raises(RuntimeError, match="abort"):
            async with store.transaction():
                await orders.insert_one({"_id": "o1"})
                outside = asyncio.create_task(orders.insert_one({"_id": "o2"}))
                await asyncio.sleep(0.05)
                assert not outside.done()
                raise RuntimeError("abort")

        await outside
        assert [doc["_id"] for doc in await orders.find()] == ["o2"]

    @pytest.mark.asyncio
    async def test_nested_transaction_rejected(self, store: SqliteDocumentStore) -> None:
        async with store.transaction():
            with pytest.raises(RuntimeError, match="Nested"):
                async with store.transaction():
                    pass


class TestErrorTranslation:
    """Tests for sqlite3 error mapping."""

    def test_integrity_error(self) -> None:
        assert isinstance(translate_error(sqlite3.IntegrityError("x")), UniqueKeyViolationError)

    def test_locked_database(self) -> None:
        error = translate_error(sqlite3.OperationalError("database is locked"))
        assert isinstance(error, StoreBusyError)

    def test_other_sqlite_errors(self) -> None:
        error = translate_error(sqlite3.OperationalError("no such table: x"))
        assert isinstance(error, StorageError)
        assert not isinstance(error, StoreBusyError)

    def test_non_sqlite_errors_unchanged(self) -> None:
        original = ValueError("x")
        assert translate_error(original) is original
