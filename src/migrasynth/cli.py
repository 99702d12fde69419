"""
Command-line interface for migrasynth.
"""

import sys
from functools import wraps
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import MigrasynthConfig, setup_logging
from .exceptions import ConfigurationError, MigrasynthError
from .generation import MigrationGenerator
from .schema import SchemaDiff, SchemaSnapshot, compare_schemas, load_snapshot
from .store import MigrationStore


console = Console()


def handle_errors(func):
    """Decorator to handle errors gracefully in CLI commands."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except MigrasynthError as e:
            console.print(f"[red]Error:[/red] {e}")
            sys.exit(1)
        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted by user[/yellow]")
            sys.exit(0)
        except Exception as e:
            console.print(f"[red]Unexpected error:[/red] {e}")
            if "--debug" in sys.argv:
                import traceback
                traceback.print_exc()
            sys.exit(1)
    return wrapper


def _load_config(path: Optional[str], debug: bool) -> MigrasynthConfig:
    config = MigrasynthConfig.from_yaml(path) if path else MigrasynthConfig()
    config.validate_config()
    setup_logging(config.logging, debug or config.debug)
    return config


config_option = click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    help="Configuration file path",
)


@click.group()
@click.version_option(__version__)
@click.option(
    "--debug", is_flag=True, help="Enable debug mode"
)
@click.pass_context
def main(ctx, debug):
    """migrasynth: Up/Down T-SQL migration scripts from schema snapshots."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@main.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    default="migrasynth.yaml",
    help="Output configuration file path",
)
@handle_errors
def init(output: str):
    """Initialize a new migrasynth configuration file."""
    if Path(output).exists():
        if not click.confirm(f"Configuration file {output} already exists. Overwrite?"):
            return

    MigrasynthConfig().to_yaml(output)
    console.print(f"[green]✓[/green] Configuration file created: {output}")
    console.print("\n[yellow]Next steps:[/yellow]")
    console.print("1. Export your database schema to a snapshot file")
    console.print(f"2. Run: migrasynth validate-config --config {output}")
    console.print(f"3. Run: migrasynth generate schema.yaml --config {output}")


@main.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Configuration file path",
)
@handle_errors
def validate_config(config: str):
    """Validate configuration file."""
    console.print(f"Validating configuration: {config}")

    try:
        migrasynth_config = MigrasynthConfig.from_yaml(config)
        migrasynth_config.validate_config()
    except ConfigurationError as e:
        console.print(f"[red]✗[/red] Configuration error: {e}")
        sys.exit(1)

    console.print("[green]✓[/green] Configuration is valid")
    _display_config_summary(migrasynth_config)


@main.command()
@click.argument("target", type=click.Path(exists=True))
@click.argument("current", type=click.Path(exists=True))
@config_option
@click.pass_context
@handle_errors
def diff(ctx, target: str, current: str, config: Optional[str]):
    """Show the changes that turn TARGET into CURRENT."""
    migrasynth_config = _load_config(config, ctx.obj["debug"])
    schema = migrasynth_config.generation.default_schema

    schema_diff = compare_schemas(load_snapshot(target, schema), load_snapshot(current, schema))
    if schema_diff.is_empty:
        console.print("[green]✓[/green] Schemas are identical")
        return
    _display_diff(schema_diff)


@main.command()
@click.argument("current", type=click.Path(exists=True))
@click.option(
    "--target",
    "-t",
    type=click.Path(exists=True),
    help="Snapshot the database is in now (defaults to the latest stored snapshot)",
)
@click.option("--name", "-n", help="Migration name")
@click.option("--stdout", is_flag=True, help="Print the scripts instead of storing them")
@config_option
@click.pass_context
@handle_errors
def generate(
    ctx,
    current: str,
    target: Optional[str],
    name: Optional[str],
    stdout: bool,
    config: Optional[str],
):
    """Generate Up and Down scripts that bring the database to CURRENT."""
    migrasynth_config = _load_config(config, ctx.obj["debug"])
    schema = migrasynth_config.generation.default_schema
    store = MigrationStore(migrasynth_config.output.migrations_dir, migrasynth_config.output)

    current_snapshot = load_snapshot(current, schema)
    if target:
        target_snapshot = load_snapshot(target, schema)
    else:
        target_snapshot = store.latest_snapshot(schema)
        if target_snapshot is None:
            console.print("[yellow]No stored snapshot found; generating from an empty schema[/yellow]")
            target_snapshot = SchemaSnapshot.build()

    generator = MigrationGenerator(migrasynth_config.generation)
    schema_diff = compare_schemas(target_snapshot, current_snapshot)
    if schema_diff.is_empty and not stdout:
        console.print("[green]✓[/green] Database schema is up to date; no migration created")
        return
    scripts = generator.generate(schema_diff, current_snapshot, target_snapshot)

    if stdout:
        click.echo("-- Up")
        click.echo(scripts.up)
        click.echo("")
        click.echo("-- Down")
        click.echo(scripts.down)
        return

    migration = store.create_migration(name, scripts, current_snapshot)
    console.print(f"[green]✓[/green] Migration created: {migration.path}")


@main.command(name="list")
@config_option
@click.pass_context
@handle_errors
def list_migrations(ctx, config: Optional[str]):
    """List stored migrations."""
    migrasynth_config = _load_config(config, ctx.obj["debug"])
    store = MigrationStore(migrasynth_config.output.migrations_dir, migrasynth_config.output)

    migrations = store.list_migrations()
    if not migrations:
        console.print("[yellow]No migrations found[/yellow]")
        return

    table = Table(title="Migrations")
    table.add_column("Timestamp", style="cyan")
    table.add_column("Name", style="magenta")
    table.add_column("Path", style="green")
    for migration in migrations:
        table.add_row(migration.timestamp, migration.name or "-", str(migration.path))
    console.print(table)


def _display_diff(schema_diff: SchemaDiff):
    """Display the structural changes of a diff."""
    table = Table(title="Schema Changes")
    table.add_column("Object", style="cyan")
    table.add_column("Change", style="magenta")
    table.add_column("Details", style="green")

    for new_table in schema_diff.new_tables:
        table.add_row(new_table.name, "add table", f"{len(new_table.columns)} columns")
    for name in schema_diff.dropped_table_names:
        table.add_row(name, "drop table", "")
    for table_diff in schema_diff.sorted_table_diffs():
        if table_diff.is_order_only:
            table.add_row(table_diff.table_name, "reorder", "column order only")
        for change in table_diff.column_changes:
            table.add_row(
                f"{table_diff.table_name}.{change.name}",
                f"{change.change_type.value} column",
                change.new_column.sql_type if change.new_column else "",
            )
        for change in table_diff.foreign_key_changes:
            fk = change.new_foreign_key or change.old_foreign_key
            table.add_row(
                f"{table_diff.table_name}.{fk.column}",
                f"{change.change_type.value} foreign key",
                f"{fk.name} -> {fk.ref_table}.{fk.ref_column}",
            )
        for change in table_diff.index_changes:
            table.add_row(
                f"{table_diff.table_name}.{change.name}", f"{change.change_type.value} index", ""
            )
    for sequence in schema_diff.new_sequences:
        table.add_row(sequence.name, "add sequence", sequence.data_type)
    for name in schema_diff.dropped_sequence_names:
        table.add_row(name, "drop sequence", "")
    for change in schema_diff.modified_sequences:
        table.add_row(change.new_sequence.name, "modify sequence", "")
    for procedure in schema_diff.new_procedures:
        table.add_row(procedure.name, "add procedure", "")
    for name in schema_diff.dropped_procedure_names:
        table.add_row(name, "drop procedure", "")
    for change in schema_diff.modified_procedures:
        table.add_row(change.new_procedure.name, "modify procedure", "")

    console.print(table)


def _display_config_summary(config: MigrasynthConfig):
    """Display configuration summary."""
    table = Table(title="Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="magenta")

    table.add_row("Project", config.project_name)
    table.add_row("Default schema", config.generation.default_schema)
    table.add_row("Abort on error", str(config.generation.abort_on_error))
    table.add_row("Migrations directory", config.output.migrations_dir)
    table.add_row("Up script", config.output.up_filename)
    table.add_row("Down script", config.output.down_filename)
    table.add_row("Snapshot", config.output.snapshot_filename)
    table.add_row("Log level", config.logging.level)

    console.print(table)


if __name__ == "__main__":
    main()
