"""
Lease-based mutual exclusion for migration runs.

A single row in the ``leases`` table acts as the lock. Acquisition is a
conditional insert and release a conditional delete on the owner, so the
store arbitrates concurrent starters. The table's default TTL is the only
recovery path for a holder that dies before releasing: the lease becomes
acquirable again once the row expires, and is never renewed.
"""

from cassmigrate.config.logging_config import get_logger
from cassmigrate.migrations.db_adapter import MigrationDBAdapter
from cassmigrate.migrations.exceptions import LeaseError
from cassmigrate.migrations.state import LEASES_TABLE, MIGRATION_LEASE_KEY, qualified

log = get_logger(__name__)


class LeaseManager:
    """Acquires and releases the migration lease on behalf of an owner id."""

    def __init__(self, adapter: MigrationDBAdapter, keyspace: str, name: str = MIGRATION_LEASE_KEY):
        self._adapter = adapter
        self._table = qualified(keyspace, LEASES_TABLE)
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @staticmethod
    def _check_owner(owner_id: str) -> None:
        if not owner_id:
            raise LeaseError("Lease owner id must be a non-empty string")

    def acquire(self, owner_id: str) -> bool:
        """Try to take the lease.

        Args:
            owner_id: Identifier of the acquiring process.

        Returns:
            True if the lease row was inserted, False if someone holds it.
        """
        self._check_owner(owner_id)
        log.debug(f"Trying to acquire lease {self._name} as {owner_id}")
        acquired = self._adapter.insert_if_not_exists(
            self._table,
            key={"name": self._name},
            values={"owner": owner_id},
        )
        log.debug(f"Lease {self._name} acquired: {acquired}")
        return acquired

    def release(self, owner_id: str) -> None:
        """Delete the lease row if ``owner_id`` still owns it.

        An absent row, or one owned by somebody else after expiry, is left
        alone without raising.
        """
        self._check_owner(owner_id)
        log.debug(f"Releasing lease {self._name} held by {owner_id}")
        released = self._adapter.delete_if(
            self._table,
            key={"name": self._name},
            condition={"owner": owner_id},
        )
        if not released:
            log.debug(f"Lease {self._name} was not held by {owner_id}; nothing to release")

    def current_owner(self) -> str | None:
        """Return the owner of the live lease row, or None if nobody holds it."""
        rows = self._adapter.select(self._table, ["name", "owner"], where={"name": self._name})
        return rows[0]["owner"] if rows else None
