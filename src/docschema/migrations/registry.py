"""Migration sources: explicit registration and package discovery.

Both satisfy MigrationSourcePort. A migration module discovered from a
package looks like::

    VERSION = "1.2.0"
    DESCRIPTION = "Backfill status on orders"

    async def apply_migration(store, name, schema_versions, schema_version):
        collection = store.get_resource(name)
        await collection.update_many({"status": None}, {"status": "open"})
        schema_version.semver = VERSION
        await schema_versions.upsert(schema_version)
        return collection
"""

import builtins
import importlib
import pkgutil
from collections.abc import Callable, Mapping
from types import ModuleType
from typing import Any

from loguru import logger

from docschema.errors import DuplicateMigrationError, IllegalArgumentError
from docschema.ports.migrations import MigrationScript
from docschema.utils import versions

ENTRY_POINT = "apply_migration"


class MigrationRegistry:
    """In-memory, explicitly populated migration source.

    Scripts can be registered directly or with the decorator form::

        registry = MigrationRegistry()

        @registry.register("Orders", "1.1.0")
        async def add_status(store, name, schema_versions, schema_version): ...
    """

    def __init__(self) -> None:
        self._scripts: dict[str, dict[str, MigrationScript]] = {}

    def register(
        self, schema_id: str, version: str, script: MigrationScript | None = None
    ) -> Any:
        """Register ``script`` as ``version`` of ``schema_id``.

        Without ``script``, returns a decorator.
        """
        if not versions.is_valid(version):
            raise IllegalArgumentError(f"Invalid migration version: {version!r}")

        def decorator(fn: MigrationScript) -> MigrationScript:
            scripts = self._scripts.setdefault(schema_id, {})
            if any(versions.compare(version, existing) == 0 for existing in scripts):
                raise DuplicateMigrationError(schema_id, version)
            scripts[version] = fn
            return fn

        if script is None:
            return decorator
        return decorator(script)

    def load(self, handle: MigrationScript) -> MigrationScript:
        return handle

    def list(self, schema_id: str) -> builtins.list[tuple[str, Any]]:
        """Registered ``(version, script)`` pairs in ascending version order."""
        return versions.sort_tagged(self._scripts.get(schema_id, {}).items())


class PackageMigrationSource:
    """Discovers migration modules inside Python packages.

    Args:
        packages: Maps a schema id to the dotted name of the package
            holding its migration modules.
        entry_point: Name of the function each module exports.
    """

    def __init__(self, packages: Mapping[str, str], entry_point: str = ENTRY_POINT) -> None:
        self._packages = dict(packages)
        self._entry_point = entry_point

    def _import_package(self, schema_id: str) -> ModuleType | None:
        package_name = self._packages.get(schema_id)
        if package_name is None:
            return None
        try:
            return importlib.import_module(package_name)
        except ModuleNotFoundError as e:
            if e.name != package_name:
                raise
            logger.debug("No migration package {} for schema {}", package_name, schema_id)
            return None

    def load(self, handle: str) -> MigrationScript:
        """Import module ``handle`` and return its entry point."""
        module = importlib.import_module(handle)
        script: Callable[..., Any] | None = getattr(module, self._entry_point, None)
        if script is None:
            raise IllegalArgumentError(f"Migration {handle} has no {self._entry_point}()")
        return script

    def list(self, schema_id: str) -> builtins.list[tuple[str, Any]]:
        """``(VERSION, module name)`` pairs found in the schema's package."""
        package = self._import_package(schema_id)
        if package is None or not hasattr(package, "__path__"):
            return []

        found: builtins.list[tuple[str, Any]] = []
        for info in pkgutil.iter_modules(package.__path__):
            if info.ispkg:
                continue
            module_name = f"{package.__name__}.{info.name}"
            module = importlib.import_module(module_name)

            version = getattr(module, "VERSION", None)
            if version is None:
                logger.warning("Migration module {} has no VERSION, skipping", module_name)
                continue

            found.append((str(version), module_name))

        return found
