"""CLI entry point for docschema.

Provides commands for inspecting schema versions and for clearing a
migration lock left behind by a failed migration.
"""

import asyncio
from pathlib import Path

import click

from docschema import __version__

config_option = click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
)


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """Coordinated schema migrations for shared document stores.

    Inspects and repairs the schema version records that migration
    coordinators use to take turns.
    """
    pass


@cli.command()
@click.argument("schema_id")
@config_option
def status(schema_id: str, config: Path | None) -> None:
    """Show the stored version and lock of a schema."""
    from docschema.config.loader import load_config
    from docschema.storage.schema_versions import SchemaVersionStore
    from docschema.storage.sqlite_store import SqliteDocumentStore
    from docschema.utils.logging import configure_logging

    cfg = load_config(config)
    configure_logging(cfg.logging)

    async def main() -> int:
        async with SqliteDocumentStore(
            cfg.storage.database_path, cfg.storage.busy_timeout_seconds
        ) as store:
            schema_versions = await SchemaVersionStore.create(
                store, cfg.storage.schema_version_collection
            )
            schema_version = await schema_versions.find_by_id(schema_id)

        if schema_version is None:
            click.echo(f"Schema not found: {schema_id}")
            return 1

        click.echo(f"{schema_version.id}:")
        click.echo(f"  Version: {schema_version.semver}")
        click.echo(f"  Lock: {schema_version.lock or '(unlocked)'}")
        return 0

    raise SystemExit(asyncio.run(main()))


@cli.command()
@click.argument("schema_id")
@config_option
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
def unlock(schema_id: str, config: Path | None, yes: bool) -> None:
    """Clear the migration lock on a schema.

    Use after a failed migration has been repaired by hand. Processes
    waiting on the lock will then proceed.
    """
    from docschema.config.loader import load_config
    from docschema.models.schema_version import UNLOCKED
    from docschema.storage.schema_versions import SchemaVersionStore
    from docschema.storage.sqlite_store import SqliteDocumentStore
    from docschema.utils.logging import configure_logging

    cfg = load_config(config)
    configure_logging(cfg.logging)

    async def main() -> int:
        async with SqliteDocumentStore(
            cfg.storage.database_path, cfg.storage.busy_timeout_seconds
        ) as store:
            schema_versions = await SchemaVersionStore.create(
                store, cfg.storage.schema_version_collection
            )
            schema_version = await schema_versions.find_by_id(schema_id)

            if schema_version is None:
                click.echo(f"Schema not found: {schema_id}")
                return 1

            if not schema_version.locked:
                click.echo(f"Schema {schema_id} is not locked")
                return 0

            if not yes:
                click.confirm(
                    f"Clear lock held by {schema_version.lock} on {schema_id}?", abort=True
                )

            await schema_versions.upsert(schema_version.with_lock(UNLOCKED))
            click.echo(f"Unlocked {schema_id} at version {schema_version.semver}")
            return 0

    raise SystemExit(asyncio.run(main()))


@cli.command("list-resources")
@config_option
def list_resources(config: Path | None) -> None:
    """List resources in the document store."""
    from docschema.config.loader import load_config
    from docschema.storage.sqlite_store import SqliteDocumentStore
    from docschema.utils.logging import configure_logging

    cfg = load_config(config)
    configure_logging(cfg.logging)

    async def main() -> None:
        async with SqliteDocumentStore(
            cfg.storage.database_path, cfg.storage.busy_timeout_seconds
        ) as store:
            names = await store.list_resource_names()

        if not names:
            click.echo("No resources found.")
            return
        for name in sorted(names):
            click.echo(name)

    asyncio.run(main())


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
