"""
Control-table names, constants and the ledger status enum.

The schema of both control tables is shared with existing deployments, so
table names, column names and the lease TTL are fixed here rather than
configurable.
"""

from enum import Enum


class MigrationStatus(str, Enum):
    """Status of a migration record in the ledger.

    ``APPLYING`` is written on the first attempt, ``APPLIED`` is terminal and
    ``FAILED`` may later move to ``APPLIED`` on a successful retry.
    """

    APPLYING = "APPLYING"
    APPLIED = "APPLIED"
    FAILED = "FAILED"


# Statuses a ledger row may be updated from
UPDATABLE_STATUSES = (MigrationStatus.APPLYING.value, MigrationStatus.FAILED.value)

LEASES_TABLE = "leases"
MIGRATIONS_TABLE = "migrations"

# Primary key value of the single lease row guarding migrations
MIGRATION_LEASE_KEY = "migration"

# Lease rows expire this many seconds after insertion
LEASE_TTL_SECONDS = 180

DEFAULT_REPLICATION_FACTOR = 1


def qualified(keyspace: str, table: str) -> str:
    """Return ``keyspace.table``."""
    return f"{keyspace}.{table}"
