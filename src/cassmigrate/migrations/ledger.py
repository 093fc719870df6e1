"""
Durable record of migration attempts and outcomes.

Each migration owns one row of the ``migrations`` table, created once by a
conditional insert. Status changes are conditional updates that only apply
while the row is APPLYING or FAILED, so a row that reached APPLIED is never
demoted, whatever the caller does.
"""

from dataclasses import dataclass
from datetime import datetime

from cassmigrate.config.logging_config import get_logger
from cassmigrate.migrations.db_adapter import MigrationDBAdapter
from cassmigrate.migrations.source import Migration
from cassmigrate.migrations.state import (
    MIGRATIONS_TABLE,
    UPDATABLE_STATUSES,
    MigrationStatus,
    qualified,
)

log = get_logger(__name__)


@dataclass
class MigrationRecord:
    """A row of the ledger.

    Attributes:
        name: Migration name (primary key)
        created_at: Store timestamp of the first attempt
        status: Current status
        statement: Statement recorded by the first attempt
        reason: Failure message of the last failed attempt, if any
    """

    name: str
    created_at: datetime | None
    status: MigrationStatus | str | None
    statement: str | None
    reason: str | None


class MigrationLedger:
    """Reads and writes migration records of one keyspace."""

    def __init__(self, adapter: MigrationDBAdapter, keyspace: str):
        self._adapter = adapter
        self._table = qualified(keyspace, MIGRATIONS_TABLE)

    def applied_names(self) -> list[str]:
        """Return the names of APPLIED migrations, sorted and without duplicates.

        APPLYING and FAILED rows are not included.
        """
        rows = self._adapter.select(self._table, ["name", "status"])
        return sorted({row["name"] for row in rows if row["status"] == MigrationStatus.APPLIED.value})

    def record_attempt(self, migration: Migration) -> bool:
        """Insert an APPLYING row for ``migration`` unless one exists.

        An existing row keeps its original ``created_at``, ``statement`` and
        status.

        Returns:
            True if a new row was inserted.
        """
        inserted = self._adapter.insert_if_not_exists(
            self._table,
            key={"name": migration.name},
            values={
                "status": MigrationStatus.APPLYING.value,
                "statement": migration.statement,
                "reason": None,
            },
            now_columns=("created_at",),
        )
        if not inserted:
            log.debug(f"Ledger already has a record for {migration.name}")
        return inserted

    def record_outcome(
        self,
        migration: Migration,
        status: MigrationStatus,
        reason: str | None = None,
    ) -> bool:
        """Set the status and reason of ``migration``'s row.

        The update only applies while the row is APPLYING or FAILED.

        Returns:
            True if the row was updated, False if it is missing or APPLIED.
        """
        status = MigrationStatus(status)
        updated = self._adapter.update_if(
            self._table,
            key={"name": migration.name},
            values={"status": status.value, "reason": reason},
            condition={"status": UPDATABLE_STATUSES},
        )
        if not updated:
            log.warning(f"Ledger refused to mark {migration.name} as {status.value}; record is missing or APPLIED")
        return updated

    def records(self) -> list[MigrationRecord]:
        """Return every ledger row, sorted by name."""
        rows = self._adapter.select(self._table, ["name", "created_at", "status", "statement", "reason"])
        records = []
        for row in sorted(rows, key=lambda r: r["name"]):
            try:
                status: MigrationStatus | str | None = MigrationStatus(row["status"])
            except ValueError:
                status = row["status"]
            records.append(
                MigrationRecord(
                    name=row["name"],
                    created_at=row["created_at"],
                    status=status,
                    statement=row["statement"],
                    reason=row["reason"],
                )
            )
        return records
