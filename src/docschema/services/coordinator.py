"""Schema migration coordinator.

Brings one named resource to the schema version a release expects:
creates and seeds it the first time, runs pending migration scripts when
it is behind, and waits when another process is already working on it.

Mutual exclusion between processes is advisory. The lock is a field on
the SchemaVersion document, taken with a plain read followed by an
upsert, so two processes that both find no SchemaVersion row will both
bootstrap. Index and seed callbacks must therefore be idempotent. Once
a row exists, a process that finds it locked waits instead of racing.

A failing migration script leaves the lock held. Every other process
then blocks in the wait loop until an operator repairs the schema and
clears the lock (``docschema unlock``).
"""

import asyncio
import inspect
from collections.abc import Mapping
from enum import StrEnum
from typing import Any

from loguru import logger

from docschema.config.models import Config
from docschema.errors import (
    ConfigurationError,
    DuplicateMigrationError,
    IllegalArgumentError,
    MigrationLockTimeoutError,
    MissingRequiredArgumentError,
)
from docschema.models.release import Release
from docschema.models.schema_version import UNLOCKED, SchemaVersion
from docschema.ports.document_store import CollectionPort, DocumentStorePort
from docschema.ports.migrations import MigrationSourcePort, ResourceHook
from docschema.storage.schema_versions import DEFAULT_COLLECTION_NAME, SchemaVersionStore
from docschema.utils import versions


class SchemaState(StrEnum):
    """Where a schema stands relative to a target version."""

    ABSENT = "absent"
    CURRENT = "current"
    STALE = "stale"
    LOCKED = "locked"


def classify(schema_version: SchemaVersion | None, target_version: str) -> SchemaState:
    """
    Decide what the coordinator must do for a stored SchemaVersion.

    A locked row is LOCKED whatever its version: the lock holder may be
    bootstrapping at the target version and not yet done seeding.
    """
    if schema_version is None:
        return SchemaState.ABSENT
    if schema_version.locked:
        return SchemaState.LOCKED
    if schema_version.gte(target_version):
        return SchemaState.CURRENT
    return SchemaState.STALE


def pending_migrations(
    source: MigrationSourcePort | None,
    schema_id: str,
    current_version: str,
    target_version: str,
) -> list[tuple[str, Any]]:
    """
    Select the scripts to run, in order.

    Keeps tags with ``current_version < tag <= target_version`` and sorts
    them by semver precedence. Tags that are not semantic versions are
    skipped.

    Raises:
        DuplicateMigrationError: If two tags have equal precedence.
    """
    if source is None:
        return []

    valid: list[tuple[str, Any]] = []
    for tag, handle in source.list(schema_id):
        if not versions.is_valid(tag):
            logger.warning("Ignoring migration {!r} for {}: not a semantic version", tag, schema_id)
            continue
        valid.append((tag, handle))

    ordered = versions.sort_tagged(valid)
    for (previous, _), (tag, _) in zip(ordered, ordered[1:], strict=False):
        if versions.compare(previous, tag) == 0:
            raise DuplicateMigrationError(schema_id, tag)

    return [
        (tag, handle)
        for tag, handle in ordered
        if versions.in_range(tag, current_version, target_version)
    ]


def _require_schema_id(schema_id: str | None) -> str:
    # Rows are stored under the stripped id; lookups must use the same key.
    schema_id = schema_id.strip() if isinstance(schema_id, str) else ""
    if not schema_id:
        raise MissingRequiredArgumentError("schema version id required")
    return schema_id


async def _resolve(value: Any) -> Any:
    # Scripts and hooks may be coroutines or plain functions.
    if inspect.isawaitable(value):
        return await value
    return value


class MigrationCoordinator:
    """
    Ensures resources exist and sit at the schema version of a release.

    The lock token written while this coordinator bootstraps or migrates
    is ``<release.name>@<release.version>@<host_id>``.
    """

    def __init__(
        self,
        release: Release,
        host_id: str,
        *,
        poll_interval_seconds: float = 1.0,
        timeout_seconds: float | None = None,
        schema_version_collection: str = DEFAULT_COLLECTION_NAME,
    ) -> None:
        """
        Initialize the coordinator.

        Args:
            release: Release running the migrations; its version is the
                default target version.
            host_id: Identifies this host in lock tokens.
            poll_interval_seconds: Delay between lock checks while waiting.
            timeout_seconds: Give up waiting for another process after this
                long. None waits indefinitely.
            schema_version_collection: Collection holding SchemaVersion rows.
        """
        if release is None:
            raise MissingRequiredArgumentError("release required")
        if not host_id:
            raise MissingRequiredArgumentError("host_id required")
        if poll_interval_seconds <= 0:
            raise IllegalArgumentError("poll_interval_seconds must be positive")
        if timeout_seconds is not None and timeout_seconds <= 0:
            raise IllegalArgumentError("timeout_seconds must be positive")

        self.release = release
        self.host_id = host_id
        self.poll_interval_seconds = poll_interval_seconds
        self.timeout_seconds = timeout_seconds
        self.schema_version_collection = schema_version_collection

    @classmethod
    def from_config(cls, config: Config) -> "MigrationCoordinator":
        """Build a coordinator from the release and coordinator settings."""
        if config.release is None:
            raise ConfigurationError("release must be configured to coordinate migrations")
        return cls(
            config.release,
            config.coordinator.host_id,
            poll_interval_seconds=config.coordinator.poll_interval_seconds,
            timeout_seconds=config.coordinator.lock_timeout_seconds,
            schema_version_collection=config.storage.schema_version_collection,
        )

    @property
    def lock_token(self) -> str:
        return SchemaVersionStore.format_lock(self.release.name, self.release.version, self.host_id)

    async def ensure_schema(
        self,
        store: DocumentStorePort,
        name: str,
        schema_id: str,
        target_version: str | None = None,
        migrations: MigrationSourcePort | None = None,
        ensure_indexes: ResourceHook | None = None,
        ensure_seed_data: ResourceHook | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> CollectionPort:
        """
        Return the named resource once it is at or above the target version.

        Args:
            store: Document store holding the resource.
            name: Resource (collection) name.
            schema_id: Logical schema identifier for the SchemaVersion row.
            target_version: Version to reach; defaults to the release version.
            migrations: Source of migration scripts for ``schema_id``.
            ensure_indexes: Applied after bootstrap or migration.
            ensure_seed_data: Applied after ``ensure_indexes``.
            options: Passed verbatim to the store when creating the resource.

        Returns:
            Resource handle.

        Raises:
            MissingRequiredArgumentError: store, name or schema_id missing
                (``schema_id`` is stripped of surrounding whitespace first).
            IllegalArgumentError: target_version is not a semantic version.
            DuplicateMigrationError: Two scripts share a version.
            MigrationLockTimeoutError: The lock stayed held past timeout_seconds.
        """
        if store is None:
            raise MissingRequiredArgumentError("store required")
        if not name:
            raise MissingRequiredArgumentError("name required")
        schema_id = _require_schema_id(schema_id)

        target = target_version or self.release.version
        versions.parse(target)

        schema_versions = await SchemaVersionStore.create(store, self.schema_version_collection)
        schema_version = await schema_versions.find_by_id(schema_id)
        state = classify(schema_version, target)
        logger.debug("Schema {} is {} relative to {}", schema_id, state, target)

        if state is SchemaState.ABSENT or schema_version is None:
            return await self._bootstrap(
                store,
                name,
                schema_id,
                target,
                schema_versions,
                ensure_indexes,
                ensure_seed_data,
                options,
            )

        if state is SchemaState.CURRENT:
            return store.get_resource(name)

        if state is SchemaState.LOCKED:
            return await self._wait_for_unlock(store, name, schema_version, schema_versions)

        return await self._migrate(
            store,
            name,
            target,
            schema_version,
            schema_versions,
            migrations,
            ensure_indexes,
            ensure_seed_data,
        )

    async def _bootstrap(
        self,
        store: DocumentStorePort,
        name: str,
        schema_id: str,
        target: str,
        schema_versions: SchemaVersionStore,
        ensure_indexes: ResourceHook | None,
        ensure_seed_data: ResourceHook | None,
        options: Mapping[str, Any] | None,
    ) -> CollectionPort:
        """First run for this schema id: record the version, create or adopt, seed."""
        schema_version = SchemaVersion(id=schema_id, semver=target).with_lock(self.lock_token)
        await schema_versions.upsert(schema_version)
        logger.info("Bootstrapping schema {} at {} as {}", schema_id, target, self.lock_token)

        if name in await store.list_resource_names():
            logger.info("Resource {} already exists without a schema version; adopting it", name)
            collection = store.get_resource(name)
        else:
            collection = await store.create_resource(name, options)

        await self._apply_hooks(collection, ensure_indexes, ensure_seed_data)

        await schema_versions.upsert(schema_version.with_lock(UNLOCKED))
        logger.info("Schema {} bootstrapped at {}", schema_id, target)
        return collection

    async def _migrate(
        self,
        store: DocumentStorePort,
        name: str,
        target: str,
        schema_version: SchemaVersion,
        schema_versions: SchemaVersionStore,
        migrations: MigrationSourcePort | None,
        ensure_indexes: ResourceHook | None,
        ensure_seed_data: ResourceHook | None,
    ) -> CollectionPort:
        """Run pending scripts under the lock, then re-apply hooks and unlock."""
        schema_id = schema_version.id
        pending = pending_migrations(migrations, schema_id, schema_version.semver, target)

        if not pending or migrations is None:
            logger.info(
                "Schema {} at {} has no migrations up to {}",
                schema_id,
                schema_version.semver,
                target,
            )
            collection = store.get_resource(name)
            await self._apply_hooks(collection, ensure_indexes, ensure_seed_data)
            return collection

        starting_version = schema_version.semver

        await schema_versions.upsert(schema_version.with_lock(self.lock_token))
        logger.info(
            "Migrating schema {} from {} to {}: {}",
            schema_id,
            starting_version,
            target,
            ", ".join(tag for tag, _ in pending),
        )

        collection: CollectionPort | None = None
        for tag, handle in pending:
            script = migrations.load(handle)
            logger.info("Applying migration {} to {}", tag, name)
            try:
                collection = await _resolve(script(store, name, schema_versions, schema_version))
            except Exception as e:
                logger.error(
                    "Migration {} of schema {} failed: {}. Lock {!r} left in place; "
                    "repair the schema and clear the lock to continue",
                    tag,
                    schema_id,
                    e,
                    self.lock_token,
                )
                raise
            logger.info("Migration {} applied", tag)

        if collection is None:
            collection = store.get_resource(name)

        if schema_version.semver == starting_version:
            schema_version.semver = target

        await self._apply_hooks(collection, ensure_indexes, ensure_seed_data)

        await schema_versions.upsert(schema_version.with_lock(UNLOCKED))
        logger.info("Schema {} migrated to {}", schema_id, schema_version.semver)
        return collection

    async def _wait_for_unlock(
        self,
        store: DocumentStorePort,
        name: str,
        schema_version: SchemaVersion,
        schema_versions: SchemaVersionStore,
    ) -> CollectionPort:
        """Poll until another process releases the lock."""
        schema_id = schema_version.id
        lock = schema_version.lock
        logger.info("Schema {} is locked by {}; waiting", schema_id, lock)

        loop = asyncio.get_running_loop()
        deadline = None if self.timeout_seconds is None else loop.time() + self.timeout_seconds

        while True:
            delay = self.poll_interval_seconds
            if deadline is not None:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    assert self.timeout_seconds is not None
                    raise MigrationLockTimeoutError(schema_id, lock, self.timeout_seconds)
                delay = min(delay, remaining)

            await asyncio.sleep(delay)

            current = await schema_versions.find_by_id(schema_id)
            if current is None or not current.locked:
                logger.info("Schema {} released by {}", schema_id, lock)
                return store.get_resource(name)

            lock = current.lock
            logger.debug("Schema {} still locked by {}", schema_id, lock)

    @staticmethod
    async def _apply_hooks(
        collection: CollectionPort,
        ensure_indexes: ResourceHook | None,
        ensure_seed_data: ResourceHook | None,
    ) -> None:
        if ensure_indexes:
            await _resolve(ensure_indexes(collection))
        if ensure_seed_data:
            await _resolve(ensure_seed_data(collection))


async def ensure_schema(
    store: DocumentStorePort,
    name: str,
    schema_id: str,
    target_version: str | None = None,
    migrations: MigrationSourcePort | None = None,
    ensure_indexes: ResourceHook | None = None,
    ensure_seed_data: ResourceHook | None = None,
    *,
    release: Release,
    host_id: str,
    poll_interval_seconds: float = 1.0,
    timeout_seconds: float | None = None,
    options: Mapping[str, Any] | None = None,
    schema_version_collection: str = DEFAULT_COLLECTION_NAME,
) -> CollectionPort:
    """One-shot form of MigrationCoordinator.ensure_schema."""
    if store is None:
        raise MissingRequiredArgumentError("store required")
    if not name:
        raise MissingRequiredArgumentError("name required")
    schema_id = _require_schema_id(schema_id)

    coordinator = MigrationCoordinator(
        release,
        host_id,
        poll_interval_seconds=poll_interval_seconds,
        timeout_seconds=timeout_seconds,
        schema_version_collection=schema_version_collection,
    )
    return await coordinator.ensure_schema(
        store,
        name,
        schema_id,
        target_version,
        migrations,
        ensure_indexes,
        ensure_seed_data,
        options,
    )
