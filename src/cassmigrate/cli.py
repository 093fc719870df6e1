"""
CLI commands for Cassandra schema migrations.

Provides commands for managing keyspace migrations including:
- upgrade: Apply pending migrations under the migration lease
- status: Show the ledger, pending migrations and the lease holder
- create: Create a new migration file
- health: Show connection and host state of the cluster
"""

import re
from datetime import UTC, datetime
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from cassmigrate.config.environment import Environment

console = Console()

_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_LINE_COMMENT = re.compile(r"(--|//).*$", re.MULTILINE)


def _get_cluster(contact_points: Optional[str] = None, port: Optional[int] = None):
    """Build a cassandra-driver Cluster from options and configuration."""
    from cassandra.auth import PlainTextAuthProvider
    from cassandra.cluster import Cluster

    points = (
        [p.strip() for p in contact_points.split(",") if p.strip()]
        if contact_points
        else Environment.get_contact_points()
    )
    credentials = Environment.get_credentials()
    auth_provider = PlainTextAuthProvider(*credentials) if credentials else None

    return Cluster(points, port=port or Environment.get_port(), auth_provider=auth_provider)


def _resolve_keyspace(keyspace: Optional[str]) -> str:
    keyspace = keyspace or Environment.get_keyspace()
    if not keyspace:
        raise click.UsageError("No keyspace given. Use --keyspace or set CASSANDRA_KEYSPACE.")
    return keyspace


def _has_statement(text: str) -> bool:
    """Return True if ``text`` holds anything besides CQL comments and whitespace."""
    return bool(_LINE_COMMENT.sub("", _BLOCK_COMMENT.sub("", text)).strip())


def _empty_migrations(resources) -> list[str]:
    """Names of readable migration files that contain no statement yet."""
    from cassmigrate.migrations.source import Migration

    names = []
    for resource in resources:
        migration = Migration.from_resource(resource)
        if migration is not None and not _has_statement(migration.statement):
            names.append(migration.name)
    return sorted(names)


def _resolve_migrations_dir(migrations_dir: Optional[Path]) -> Path:
    return Path(migrations_dir) if migrations_dir else Environment.get_migrations_dir()


connection_options = [
    click.option("--contact-points", type=str, default=None, help="Comma-separated contact points."),
    click.option("--port", type=int, default=None, help="Native protocol port."),
]


def with_connection_options(func):
    for option in reversed(connection_options):
        func = option(func)
    return func


@click.group()
def cli():
    """Apply and inspect Cassandra schema migrations.

    Connection settings come from options, CASSANDRA_* environment variables,
    .env files or ~/.config/cassmigrate/settings.yaml.
    """
    Environment.load_settings()


@cli.command("upgrade")
@click.option("--keyspace", "-k", type=str, default=None, help="Keyspace to migrate.")
@click.option(
    "--migrations-dir",
    "-d",
    type=click.Path(path_type=Path),
    default=None,
    help="Directory containing *.cql migration files.",
)
@click.option(
    "--replication-factor",
    type=int,
    default=None,
    help="Replication factor used only if the keyspace has to be created.",
)
@with_connection_options
def upgrade(
    keyspace: Optional[str],
    migrations_dir: Optional[Path],
    replication_factor: Optional[int],
    contact_points: Optional[str],
    port: Optional[int],
):
    """Apply pending migrations.

    Creates the keyspace and control tables if needed, takes the migration
    lease and applies every migration not yet recorded as APPLIED. When
    another process holds the lease, nothing is applied.

    Examples:
        cassmigrate upgrade --keyspace orders --migrations-dir cassandra/
    """
    from cassmigrate.migrations.orchestrator import MigrationOrchestrator
    from cassmigrate.migrations.source import discover_resources

    keyspace = _resolve_keyspace(keyspace)
    directory = _resolve_migrations_dir(migrations_dir)
    if replication_factor is None:
        replication_factor = Environment.get_replication_factor()

    cluster = None
    try:
        resources = discover_resources(directory)
        empty = _empty_migrations(resources)
        if empty:
            console.print(f"[red]❌ Migration file(s) contain no statement: {', '.join(empty)}[/]")
            raise SystemExit(1)
        cluster = _get_cluster(contact_points, port)
        console.print(f"[cyan]Migrating keyspace {keyspace} from {directory}[/]")

        applied = MigrationOrchestrator(replication_factor=replication_factor).execute(
            cluster, keyspace, resources
        )

        if applied:
            console.print(f"[green]✅ Applied {len(applied)} migration(s):[/]")
            for name in applied:
                console.print(f"  • {name}")
        else:
            console.print("[yellow]No migrations applied - keyspace is up to date or another process holds the lease[/]")

    except Exception as e:
        console.print(f"[red]❌ Migration failed: {e}[/]")
        raise SystemExit(1) from e
    finally:
        if cluster is not None:
            cluster.shutdown()


@cli.command("status")
@click.option("--keyspace", "-k", type=str, default=None, help="Keyspace to inspect.")
@click.option(
    "--migrations-dir",
    "-d",
    type=click.Path(path_type=Path),
    default=None,
    help="Directory containing *.cql migration files.",
)
@with_connection_options
def status(
    keyspace: Optional[str],
    migrations_dir: Optional[Path],
    contact_points: Optional[str],
    port: Optional[int],
):
    """Show migration status.

    Displays the ledger, the migrations that are not APPLIED yet and the
    current holder of the migration lease.
    """
    from cassmigrate.migrations.db_adapter import create_migration_adapter
    from cassmigrate.migrations.lease import LeaseManager
    from cassmigrate.migrations.ledger import MigrationLedger
    from cassmigrate.migrations.orchestrator import MigrationOrchestrator
    from cassmigrate.migrations.source import discover_resources

    keyspace = _resolve_keyspace(keyspace)
    directory = _resolve_migrations_dir(migrations_dir)

    cluster = None
    adapter = None
    try:
        cluster = _get_cluster(contact_points, port)
        adapter = create_migration_adapter(cluster.connect())
        ledger = MigrationLedger(adapter, keyspace)
        records = ledger.records()
        owner = LeaseManager(adapter, keyspace).current_owner()

        console.print(f"[bold cyan]Keyspace:[/] {keyspace}")
        console.print(f"[bold cyan]Lease holder:[/] {owner or 'None'}")
        console.print()

        if records:
            table = Table(title="Migration Ledger")
            table.add_column("Name", style="cyan")
            table.add_column("Status", style="green")
            table.add_column("Created At", style="yellow")
            table.add_column("Reason", style="red")

            for record in records:
                record_status = getattr(record.status, "value", record.status)
                table.add_row(
                    record.name,
                    str(record_status),
                    record.created_at.isoformat() if record.created_at else "",
                    record.reason or "",
                )

            console.print(table)
            console.print()

        if directory.is_dir():
            applied = set(ledger.applied_names())
            migrations = MigrationOrchestrator().parse_migrations(discover_resources(directory))
            pending = [m.name for m in migrations if m.name not in applied]
            if pending:
                table = Table(title="Pending Migrations")
                table.add_column("Name", style="cyan")
                for name in pending:
                    table.add_row(name)
                console.print(table)
            else:
                console.print("[green]No pending migrations - keyspace is up to date[/]")
        else:
            console.print(f"[yellow]Migrations directory not found: {directory}[/]")

    except Exception as e:
        console.print(f"[red]❌ Error getting status: {e}[/]")
        raise SystemExit(1) from e
    finally:
        if adapter is not None:
            adapter.close()
        if cluster is not None:
            cluster.shutdown()


@cli.command("create")
@click.argument("name")
@click.option(
    "--migrations-dir",
    "-d",
    type=click.Path(path_type=Path),
    default=None,
    help="Directory the migration file is written to.",
)
def create(name: str, migrations_dir: Optional[Path]):
    """Create a new migration file.

    The file name starts with a UTC timestamp so that the default name
    ordering applies migrations in creation order.

    Examples:
        cassmigrate create add_orders_table
    """
    directory = _resolve_migrations_dir(migrations_dir)

    timestamp = datetime.now(UTC).strftime("%Y%m%d_%H%M%S")
    safe_name = name.lower().replace(" ", "_").replace("-", "_")
    filepath = directory / f"{timestamp}_{safe_name}.cql"

    template = (
        f"-- Migration: {name.replace('_', ' ').title()}\n"
        "-- One CQL statement per file.\n"
        "-- upgrade refuses to run while this file holds only comments.\n"
    )

    try:
        directory.mkdir(parents=True, exist_ok=True)
        if filepath.exists():
            raise FileExistsError(f"{filepath} already exists")
        filepath.write_text(template)

        console.print("[green]✅ Created migration file:[/]")
        console.print(f"  {filepath}")
        console.print()
        console.print("[cyan]Next steps:[/]")
        console.print("  1. Write the CQL statement into the file")
        console.print("  2. Run: cassmigrate upgrade")

    except Exception as e:
        console.print(f"[red]❌ Failed to create migration: {e}[/]")
        raise SystemExit(1) from e


@cli.command("health")
@with_connection_options
def health(contact_points: Optional[str], port: Optional[int]):
    """Show open connections and host states of the cluster."""
    from cassmigrate.health import check_health

    cluster = None
    try:
        cluster = _get_cluster(contact_points, port)
        session = cluster.connect()
        try:
            report = check_health(session)
        finally:
            session.shutdown()

        color = "green" if report.is_up else "red"
        console.print(f"[bold {color}]{report.status}[/] ({report.open_connections} open connections)")

        if report.servers:
            table = Table(title="Hosts")
            table.add_column("Host", style="cyan")
            table.add_column("State")
            for host, state in sorted(report.servers.items()):
                table.add_row(host, state)
            console.print(table)

    except Exception as e:
        console.print(f"[red]❌ Health check failed: {e}[/]")
        raise SystemExit(1) from e
    finally:
        if cluster is not None:
            cluster.shutdown()

    if not report.is_up:
        raise SystemExit(1)


if __name__ == "__main__":
    cli()
