"""
Migration orchestrator.

Runs the pending migrations of a keyspace while holding the migration lease:

1. Open a session and create the keyspace and control tables if needed
2. Try to take the lease; if another process holds it, return quietly
3. Diff the candidate migrations against the APPLIED names in the ledger
4. Apply the rest strictly in sort order, stopping at the first failure
5. Release the lease and close the session, whatever happened

Typical use from application start-up, before the application session is
created so the keyspace is guaranteed to exist:

    cluster = Cluster(["10.0.0.1"])
    MigrationOrchestrator().execute(
        cluster, "orders", discover_resources(Path("cassandra"))
    )
    session = cluster.connect("orders")

The orchestrator creates a SimpleStrategy keyspace when it is missing, which
is convenient for local development. Production keyspaces usually exist
beforehand with their own replication and security settings.
"""

import socket
import uuid
from collections.abc import Callable, Iterable
from operator import attrgetter
from typing import Any, Optional

from cassmigrate.config.logging_config import get_logger
from cassmigrate.migrations.client import ClientFactory, MigrationClient, default_client_factory
from cassmigrate.migrations.db_adapter import create_migration_adapter
from cassmigrate.migrations.source import Migration, MigrationResource

log = get_logger(__name__)


def get_hostname() -> Optional[str]:
    """Return the local host name, or None if it cannot be resolved."""
    try:
        return socket.gethostname() or None
    except OSError:
        return None


def new_owner_id() -> str:
    """Identify this process as lease owner: host name, else a random UUID."""
    return get_hostname() or str(uuid.uuid4())


def _exists(resource: MigrationResource) -> bool:
    try:
        return resource.exists()
    except Exception as e:
        log.debug(f"Skipping migration resource {getattr(resource, 'name', resource)!r}: {e}")
        return False


class MigrationOrchestrator:
    """Applies pending migrations under the migration lease.

    Args:
        client_factory: Builds the coordination client from an adapter,
                        keyspace and owner id.
        sort_key: Orders the migration resources (default: by name). Use
                  ``functools.cmp_to_key`` to plug in a comparator.
        replication_factor: Replication factor used when the keyspace has
                            to be created (default 1).
    """

    def __init__(
        self,
        client_factory: ClientFactory = default_client_factory,
        sort_key: Callable[[MigrationResource], Any] = attrgetter("name"),
        replication_factor: int | None = None,
    ):
        self.client_factory = client_factory
        self.sort_key = sort_key
        self.replication_factor = replication_factor

    def execute(
        self,
        cluster: Any,
        keyspace: str,
        resources: Iterable[MigrationResource],
        replication_factor: int | None = None,
    ) -> list[str]:
        """Apply pending migrations to ``keyspace``.

        Args:
            cluster: Object whose ``connect()`` opens a session for this run
                     (a cassandra-driver Cluster, or anything returning a
                     MigrationDBAdapter).
            keyspace: Keyspace holding the control tables.
            resources: Candidate migrations (files or Migration objects).
            replication_factor: Overrides the orchestrator's replication factor.

        Returns:
            Names of the migrations applied by this call. Empty when nothing
            was pending or another process holds the lease.

        Raises:
            SchemaError: If the keyspace or control tables cannot be created.
            MigrationExecutionError: If a migration fails. Later migrations
                                     of the batch are not attempted.
        """
        owner_id = new_owner_id()
        if replication_factor is None:
            replication_factor = self.replication_factor

        adapter = create_migration_adapter(cluster.connect())
        try:
            client = self.client_factory(adapter, keyspace, owner_id)

            log.debug("Initializing cassandra schema")
            client.init(replication_factor)

            log.debug("Getting lease to apply migrations")
            if not client.acquire_lock():
                log.info(f"Migration lease for keyspace {keyspace} is held by another process; skipping migrations")
                return []

            try:
                return self._apply_pending(client, resources)
            except Exception:
                log.error("Error applying migrations")
                raise
            finally:
                client.release_lock()
        finally:
            adapter.close()

    def parse_migrations(self, resources: Iterable[MigrationResource]) -> list[Migration]:
        """Turn resources into migrations in sort order.

        Resources that do not exist, fail their existence check or cannot be
        read are dropped.
        """
        existing = sorted((r for r in resources if _exists(r)), key=self.sort_key)
        migrations = []
        for resource in existing:
            migration = Migration.from_resource(resource)
            if migration is not None:
                migrations.append(migration)
        return migrations

    def _apply_pending(self, client: MigrationClient, resources: Iterable[MigrationResource]) -> list[str]:
        applied = set(client.applied_migrations())

        pending = []
        for migration in self.parse_migrations(resources):
            if migration.name in applied:
                log.debug(f"Skipping applied migration {migration.name}")
            else:
                pending.append(migration)

        if not pending:
            log.info("No pending migrations")
            return []

        log.info(f"Found {len(pending)} pending migration(s)")
        applied_now = []
        for migration in pending:
            client.run_migration(migration)
            applied_now.append(migration.name)
        return applied_now
