"""SQLite-backed document store.

Each named resource is a table of JSON documents keyed by ``_id``.
WAL mode lets several processes open the same database file, which is
what the migration coordinator needs to coordinate through.
"""

import asyncio
import json
import re
import sqlite3
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any
from uuid import uuid4

import aiosqlite
from loguru import logger

from docschema.errors import (
    IllegalArgumentError,
    StorageError,
    StoreBusyError,
    UniqueKeyViolationError,
)
from docschema.utils.retry import retry_storage

_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_.\-]{0,127}$")
_FIELD_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_TABLE_OPTIONS = {"without_rowid": "WITHOUT ROWID", "strict": "STRICT"}


def translate_error(e: Exception) -> Exception:
    """Map sqlite3 driver errors onto docschema errors."""
    if isinstance(e, sqlite3.IntegrityError):
        return UniqueKeyViolationError(str(e))
    if isinstance(e, sqlite3.OperationalError):
        message = str(e).lower()
        if "locked" in message or "busy" in message:
            return StoreBusyError(str(e))
    if isinstance(e, sqlite3.Error):
        return StorageError(str(e))
    return e


def _validate_name(name: str) -> str:
    if not name or not _NAME_PATTERN.match(name) or name.startswith("sqlite_"):
        raise IllegalArgumentError(f"Invalid resource name: {name!r}")
    return name


def _validate_field(field: str) -> str:
    if not _FIELD_PATTERN.match(field):
        raise IllegalArgumentError(f"Invalid field name: {field!r}")
    return field


def _dumps(document: Mapping[str, Any]) -> str:
    try:
        return json.dumps(dict(document))
    except (TypeError, ValueError) as e:
        raise IllegalArgumentError(f"Document is not JSON serializable: {e}") from e


def _where(filter: Mapping[str, Any] | None) -> tuple[str, list[Any]]:
    """Build an equality WHERE clause over top-level document fields.

    ``None`` matches both null and missing fields.
    """
    if not filter:
        return "", []

    clauses: list[str] = []
    params: list[Any] = []
    for field, value in filter.items():
        if isinstance(value, Mapping | list):
            raise IllegalArgumentError(f"Only scalar filter values are supported: {field}")
        if field == "_id":
            clauses.append("id IS ?")
        else:
            clauses.append("json_extract(doc, ?) IS ?")
            params.append(f"$.{_validate_field(field)}")
        params.append(value)
    return " WHERE " + " AND ".join(clauses), params


class SqliteCollection:
    """Handle on one document table. Satisfies CollectionPort."""

    def __init__(self, store: "SqliteDocumentStore", name: str) -> None:
        self._store = store
        self._name = _validate_name(name)

    @property
    def name(self) -> str:
        return self._name

    @property
    def _table(self) -> str:
        return f'"{self._name}"'

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SqliteCollection):
            return NotImplemented
        return self._name == other._name and self._store.db_path == other._store.db_path

    def __hash__(self) -> int:
        return hash((str(self._store.db_path), self._name))

    def __repr__(self) -> str:
        return f"SqliteCollection({self._name!r}, db={str(self._store.db_path)!r})"

    async def find_one(self, id: str) -> dict[str, Any] | None:
        row = await self._store.fetchone(f"SELECT doc FROM {self._table} WHERE id = ?", [id])
        return json.loads(row["doc"]) if row else None

    async def find(self, filter: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        where, params = _where(filter)
        rows = await self._store.fetchall(
            f"SELECT doc FROM {self._table}{where} ORDER BY id", params
        )
        return [json.loads(row["doc"]) for row in rows]

    async def insert_one(self, document: Mapping[str, Any]) -> dict[str, Any]:
        doc = dict(document)
        doc["_id"] = doc.get("_id") or str(uuid4())
        await self._store.write(
            f"INSERT INTO {self._table} (id, doc) VALUES (?, ?)", [doc["_id"], _dumps(doc)]
        )
        return doc

    async def upsert_one(self, id: str, document: Mapping[str, Any]) -> None:
        """Insert, or merge fields into the stored document (``$set`` semantics).

        Fields set to None are removed from the stored document.
        """
        doc = {**document, "_id": id}
        await self._store.write(
            f"""
            INSERT INTO {self._table} (id, doc) VALUES (?, ?)
            ON CONFLICT(id) DO UPDATE SET doc = json_patch(doc, excluded.doc)
            """,
            [id, _dumps(doc)],
        )

    async def replace_one(
        self,
        id: str,
        document: Mapping[str, Any],
        expected: Mapping[str, Any] | None = None,
    ) -> bool:
        doc = {**document, "_id": id}
        where, params = _where({"_id": id, **(expected or {})})
        cursor = await self._store.write(
            f"UPDATE {self._table} SET doc = ?{where}", [_dumps(doc), *params]
        )
        return cursor.rowcount > 0

    async def update_many(
        self, filter: Mapping[str, Any] | None, fields: Mapping[str, Any]
    ) -> int:
        where, params = _where(filter)
        cursor = await self._store.write(
            f"UPDATE {self._table} SET doc = json_patch(doc, ?){where}",
            [_dumps(fields), *params],
        )
        return cursor.rowcount

    async def delete_one(self, id: str) -> bool:
        cursor = await self._store.write(f"DELETE FROM {self._table} WHERE id = ?", [id])
        return cursor.rowcount > 0

    async def count(self) -> int:
        row = await self._store.fetchone(f"SELECT COUNT(*) AS n FROM {self._table}")
        return int(row["n"]) if row else 0

    async def create_index(self, field: str, *, unique: bool = False) -> str:
        field = _validate_field(field)
        index_name = f"idx_{self._name}_{field}".replace(".", "_").replace("-", "_")
        kind = "UNIQUE INDEX" if unique else "INDEX"
        await self._store.write(
            f'CREATE {kind} IF NOT EXISTS "{index_name}" '
            f"ON {self._table} (json_extract(doc, '$.{field}'))"
        )
        return index_name


class SqliteDocumentStore:
    """
    Document store over a single SQLite database file.

    Satisfies DocumentStorePort. Every write commits immediately unless
    it runs inside ``transaction()`` in the same task. The store shares
    one connection, so while a transaction is open, writes from other
    tasks wait for it to finish instead of joining it.
    """

    def __init__(self, db_path: Path | str, busy_timeout_seconds: float = 5.0) -> None:
        """
        Initialize the store.

        Args:
            db_path: Path to the SQLite database file.
            busy_timeout_seconds: How long SQLite waits on another writer
                before reporting the database as locked.
        """
        self.db_path = Path(db_path)
        self.busy_timeout_seconds = busy_timeout_seconds
        self._conn: aiosqlite.Connection | None = None
        self._transaction_task: asyncio.Task[Any] | None = None
        self._write_lock = asyncio.Lock()

    async def connect(self) -> "SqliteDocumentStore":
        """Open the connection, creating the database file if needed."""
        if self._conn is not None:
            return self
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self.db_path, timeout=self.busy_timeout_seconds)
        self._conn.row_factory = aiosqlite.Row
        await self._enable_wal()
        logger.debug("Opened document store at {}", self.db_path)
        return self

    @retry_storage
    async def _enable_wal(self) -> None:
        try:
            await self._get_conn().execute("PRAGMA journal_mode = WAL")
        except sqlite3.Error as e:
            raise translate_error(e) from e

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    async def __aenter__(self) -> "SqliteDocumentStore":
        return await self.connect()

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _get_conn(self) -> aiosqlite.Connection:
        """Get database connection, raising if not connected."""
        if not self._conn:
            raise RuntimeError("Document store not connected")
        return self._conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """
        Context manager grouping several writes.

        Commits on success, rolls back on exception. Only writes made by
        the task that opened the transaction belong to it.
        """
        conn = self._get_conn()
        if self._in_own_transaction():
            raise RuntimeError("Nested transactions are not supported")

        async with self._write_lock:
            self._transaction_task = asyncio.current_task()
            try:
                yield
                await conn.commit()
            except Exception:
                await conn.rollback()
                raise
            finally:
                self._transaction_task = None

    def _in_own_transaction(self) -> bool:
        return self._transaction_task is not None and (
            self._transaction_task is asyncio.current_task()
        )

    # =========================================================================
    # Low-level execution
    # =========================================================================

    @retry_storage
    async def fetchone(self, sql: str, params: list[Any] | None = None) -> aiosqlite.Row | None:
        """Execute query and fetch one row."""
        try:
            cursor = await self._get_conn().execute(sql, params or [])
            return await cursor.fetchone()
        except sqlite3.Error as e:
            raise translate_error(e) from e

    @retry_storage
    async def fetchall(self, sql: str, params: list[Any] | None = None) -> list[aiosqlite.Row]:
        """Execute query and fetch all rows."""
        try:
            cursor = await self._get_conn().execute(sql, params or [])
            result = await cursor.fetchall()
        except sqlite3.Error as e:
            raise translate_error(e) from e
        return list(result) if result else []

    @retry_storage
    async def write(self, sql: str, params: list[Any] | None = None) -> aiosqlite.Cursor:
        """Execute a modifying statement, committing unless in this task's transaction."""
        conn = self._get_conn()
        if self._in_own_transaction():
            return await self._execute_write(conn, sql, params, commit=False)
        async with self._write_lock:
            return await self._execute_write(conn, sql, params, commit=True)

    @staticmethod
    async def _execute_write(
        conn: aiosqlite.Connection, sql: str, params: list[Any] | None, *, commit: bool
    ) -> aiosqlite.Cursor:
        try:
            cursor = await conn.execute(sql, params or [])
            if commit:
                await conn.commit()
            return cursor
        except sqlite3.Error as e:
            if commit:
                await conn.rollback()
            raise translate_error(e) from e

    # =========================================================================
    # Resource operations
    # =========================================================================

    async def create_resource(
        self, name: str, options: Mapping[str, Any] | None = None
    ) -> SqliteCollection:
        """
        Create a document table.

        Creation is idempotent, so two processes racing to create the
        same resource both succeed.

        Args:
            name: Resource name.
            options: ``without_rowid`` and/or ``strict`` table flags.

        Returns:
            Handle on the resource.
        """
        collection = SqliteCollection(self, name)
        suffixes = []
        for key, enabled in (options or {}).items():
            if key not in _TABLE_OPTIONS:
                raise IllegalArgumentError(f"Unsupported resource option: {key!r}")
            if enabled:
                suffixes.append(_TABLE_OPTIONS[key])

        await self.write(
            f'CREATE TABLE IF NOT EXISTS "{collection.name}" '
            f"(id TEXT PRIMARY KEY, doc TEXT NOT NULL) {', '.join(suffixes)}"
        )
        logger.debug("Ensured resource {}", name)
        return collection

    async def list_resource_names(self) -> set[str]:
        """Names of all document tables."""
        rows = await self.fetchall(
            "SELECT name FROM sqlite_master "
            "WHERE type = 'table' AND name NOT LIKE 'sqlite\\_%' ESCAPE '\\'"
        )
        return {row["name"] for row in rows}

    def get_resource(self, name: str) -> SqliteCollection:
        """Handle on a named resource. The table need not exist yet."""
        return SqliteCollection(self, name)
