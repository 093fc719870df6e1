"""
Schema migrations for Cassandra keyspaces.

Provides lease-based mutual exclusion between concurrently starting
processes, a durable ledger of migration outcomes, and the orchestrator that
applies pending migrations in order.
"""

from cassmigrate.migrations.client import ClientFactory, MigrationClient, default_client_factory
from cassmigrate.migrations.db_adapter import (
    CassandraMigrationAdapter,
    MigrationDBAdapter,
    create_migration_adapter,
)
from cassmigrate.migrations.exceptions import (
    LeaseError,
    MigrationDiscoveryError,
    MigrationError,
    MigrationExecutionError,
    SchemaError,
)
from cassmigrate.migrations.lease import LeaseManager
from cassmigrate.migrations.ledger import MigrationLedger, MigrationRecord
from cassmigrate.migrations.memory_adapter import MemoryMigrationAdapter
from cassmigrate.migrations.orchestrator import MigrationOrchestrator
from cassmigrate.migrations.schema import SchemaInitializer
from cassmigrate.migrations.source import FileResource, Migration, MigrationResource, discover_resources
from cassmigrate.migrations.state import LEASE_TTL_SECONDS, MigrationStatus

__all__ = [
    "LEASE_TTL_SECONDS",
    "CassandraMigrationAdapter",
    "ClientFactory",
    "FileResource",
    "LeaseError",
    "LeaseManager",
    "MemoryMigrationAdapter",
    "Migration",
    "MigrationClient",
    "MigrationDBAdapter",
    "MigrationDiscoveryError",
    "MigrationError",
    "MigrationExecutionError",
    "MigrationLedger",
    "MigrationOrchestrator",
    "MigrationRecord",
    "MigrationResource",
    "MigrationStatus",
    "SchemaError",
    "SchemaInitializer",
    "create_migration_adapter",
    "default_client_factory",
    "discover_resources",
]
