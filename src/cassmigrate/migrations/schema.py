"""
Keyspace and control-table creation.

Every statement uses ``IF NOT EXISTS``, so initialization is safe to run on
each process start.
"""

import re

from cassmigrate.config.logging_config import get_logger
from cassmigrate.migrations.db_adapter import MigrationDBAdapter
from cassmigrate.migrations.exceptions import SchemaError
from cassmigrate.migrations.state import (
    DEFAULT_REPLICATION_FACTOR,
    LEASE_TTL_SECONDS,
    LEASES_TABLE,
    MIGRATIONS_TABLE,
)

log = get_logger(__name__)

KEYSPACE_CREATION_STATEMENT = (
    "CREATE KEYSPACE IF NOT EXISTS {keyspace} WITH replication = "
    "{{'class':'SimpleStrategy','replication_factor': {replication_factor}}}"
)
USE_KEYSPACE_STATEMENT = "USE {keyspace}"
CONTROL_TABLE_STATEMENTS = (
    f"CREATE TABLE IF NOT EXISTS {{keyspace}}.{LEASES_TABLE} "
    f"(name text PRIMARY KEY, owner text, value text) WITH default_time_to_live = {LEASE_TTL_SECONDS}",
    f"CREATE TABLE IF NOT EXISTS {{keyspace}}.{MIGRATIONS_TABLE} "
    "(name text PRIMARY KEY, created_at timestamp, status text, statement text, reason text)",
)

# Unquoted CQL identifiers, capped at the keyspace name length limit
_KEYSPACE_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_]{0,47}$")


def validate_keyspace(keyspace: str) -> str:
    """Return ``keyspace`` if it is a valid unquoted keyspace name.

    Raises:
        SchemaError: If the name cannot be used as a keyspace.
    """
    if not isinstance(keyspace, str) or not _KEYSPACE_PATTERN.match(keyspace):
        raise SchemaError(f"Invalid keyspace name: {keyspace!r}", keyspace=str(keyspace))
    return keyspace


class SchemaInitializer:
    """Creates the keyspace and the lease and ledger tables."""

    def __init__(self, adapter: MigrationDBAdapter, keyspace: str):
        self._adapter = adapter
        self._keyspace = keyspace

    def init(self, replication_factor: int | None = None) -> None:
        """Create the keyspace (SimpleStrategy), select it, and create both control tables if absent.

        Args:
            replication_factor: Used only if the keyspace does not exist yet
                                (default 1).

        Raises:
            SchemaError: If the keyspace name or replication factor is
                         invalid, or any statement fails.
        """
        keyspace = validate_keyspace(self._keyspace)
        if replication_factor is None:
            replication_factor = DEFAULT_REPLICATION_FACTOR
        if isinstance(replication_factor, bool) or not isinstance(replication_factor, int) or replication_factor < 1:
            raise SchemaError(
                f"Replication factor must be a positive integer, got {replication_factor!r}",
                keyspace=keyspace,
            )

        # Migration scripts may use unqualified table names, so the session
        # switches to the keyspace right after creating it
        statements = [
            KEYSPACE_CREATION_STATEMENT.format(keyspace=keyspace, replication_factor=replication_factor),
            USE_KEYSPACE_STATEMENT.format(keyspace=keyspace),
            *(s.format(keyspace=keyspace) for s in CONTROL_TABLE_STATEMENTS),
        ]

        log.debug(f"Initializing schema of keyspace {keyspace}")
        for statement in statements:
            try:
                self._adapter.execute(statement)
            except Exception as e:
                raise SchemaError(f"Failed to initialize schema of keyspace {keyspace}: {e}", keyspace=keyspace) from e
