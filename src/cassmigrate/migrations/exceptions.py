"""
Exception classes for the migration system.

Provides specific exception types for different migration failure scenarios.
Lease contention is not represented here: losing the race for the lease is a
normal outcome and is reported by a False return value.
"""


class MigrationError(Exception):
    """Base exception for migration-related errors."""

    def __init__(self, message: str, migration_name: str | None = None):
        self.migration_name = migration_name
        super().__init__(message)


class SchemaError(MigrationError):
    """Raised when the keyspace or the control tables cannot be created."""

    def __init__(self, message: str, keyspace: str | None = None):
        self.keyspace = keyspace
        super().__init__(message)


class MigrationExecutionError(MigrationError):
    """Raised when the statement of a migration fails in the store.

    The ledger row of the migration has already been marked FAILED with
    ``reason`` when this is raised.
    """

    def __init__(self, message: str, migration_name: str, reason: str | None = None):
        self.reason = reason
        super().__init__(message, migration_name)


class LeaseError(MigrationError):
    """Raised when a lease operation is called with an unusable owner id."""

    pass


class MigrationDiscoveryError(MigrationError):
    """Raised when migration discovery fails."""

    pass
