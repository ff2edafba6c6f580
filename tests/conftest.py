"""Shared pytest fixtures for docschema tests."""

import io
from collections.abc import AsyncIterator, Generator
from pathlib import Path

import pytest
from loguru import logger

from docschema.models.release import Release
from docschema.services.coordinator import MigrationCoordinator
from docschema.storage.schema_versions import SchemaVersionStore
from docschema.storage.sqlite_store import SqliteDocumentStore


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Provide a temporary database path."""
    return tmp_path / "docs.db"


@pytest.fixture
async def store(db_path: Path) -> AsyncIterator[SqliteDocumentStore]:
    """Connected document store on a temporary database."""
    async with SqliteDocumentStore(db_path) as s:
        yield s


@pytest.fixture
async def schema_versions(store: SqliteDocumentStore) -> SchemaVersionStore:
    """SchemaVersionStore over the default collection."""
    return await SchemaVersionStore.create(store)


@pytest.fixture
def release() -> Release:
    """Release descriptor used by coordinators under test."""
    return Release(name="orders-service", version="1.0.3")


@pytest.fixture
def coordinator(release: Release) -> MigrationCoordinator:
    """Coordinator with a short poll interval."""
    return MigrationCoordinator(release, "host-a", poll_interval_seconds=0.05)


@pytest.fixture
def log_capture() -> Generator[io.StringIO, None, None]:
    """Capture loguru output to a string buffer."""
    string_io = io.StringIO()
    handler_id = logger.add(string_io, format="{level} {message}")
    yield string_io
    logger.remove(handler_id)
