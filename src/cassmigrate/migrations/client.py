"""
Migration client: schema, lease and ledger operations bound to one keyspace
and one owner id.

The orchestrator never instantiates the client directly; it calls a
``ClientFactory``. Supplying another factory is how callers and tests replace
the client.
"""

from collections.abc import Callable

from cassmigrate.config.logging_config import get_logger
from cassmigrate.migrations.db_adapter import MigrationDBAdapter
from cassmigrate.migrations.exceptions import MigrationExecutionError
from cassmigrate.migrations.lease import LeaseManager
from cassmigrate.migrations.ledger import MigrationLedger
from cassmigrate.migrations.schema import SchemaInitializer
from cassmigrate.migrations.source import Migration
from cassmigrate.migrations.state import MigrationStatus

log = get_logger(__name__)


class MigrationClient:
    """Coordination client used by the orchestrator for a single run."""

    def __init__(self, adapter: MigrationDBAdapter, keyspace: str, owner_id: str):
        self.adapter = adapter
        self.keyspace = keyspace
        self.owner_id = owner_id
        self.schema = SchemaInitializer(adapter, keyspace)
        self.lease = LeaseManager(adapter, keyspace)
        self.ledger = MigrationLedger(adapter, keyspace)

    def init(self, replication_factor: int | None = None) -> None:
        self.schema.init(replication_factor)

    def acquire_lock(self) -> bool:
        return self.lease.acquire(self.owner_id)

    def release_lock(self) -> None:
        self.lease.release(self.owner_id)

    def applied_migrations(self) -> list[str]:
        return self.ledger.applied_names()

    def run_migration(self, migration: Migration) -> None:
        """Apply one migration and record its outcome.

        Raises:
            MigrationExecutionError: If the statement fails. The ledger row is
                                     FAILED with the error message as reason.
        """
        self.ledger.record_attempt(migration)
        log.info(f"Applying migration {migration.name}")

        try:
            self.adapter.execute(migration.statement)
        except Exception as e:
            reason = str(e) or None
            log.error(f"Error applying migration {migration.name}", exc_info=True)
            self.ledger.record_outcome(migration, MigrationStatus.FAILED, reason)
            raise MigrationExecutionError(
                f"Migration {migration.name} failed: {reason or type(e).__name__}",
                migration_name=migration.name,
                reason=reason,
            ) from e

        self.ledger.record_outcome(migration, MigrationStatus.APPLIED)
        log.debug(f"{migration.name} executed with status {MigrationStatus.APPLIED.value}")


ClientFactory = Callable[[MigrationDBAdapter, str, str], MigrationClient]


def default_client_factory(adapter: MigrationDBAdapter, keyspace: str, owner_id: str) -> MigrationClient:
    return MigrationClient(adapter, keyspace, owner_id)
