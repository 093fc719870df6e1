"""
In-process store adapter.

Keeps rows in dictionaries and applies every single-row operation under one
lock, so conditional writes are linearizable among the threads of a process.
Intended for tests and local dry runs; it provides no cross-process
coordination.
"""

import re
import threading
import time
from collections.abc import Callable, Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from cassmigrate.migrations.db_adapter import MigrationDBAdapter
from cassmigrate.migrations.state import LEASE_TTL_SECONDS, LEASES_TABLE

_CREATE_PATTERN = re.compile(r"^\s*CREATE\s+(KEYSPACE|TABLE)\s+IF\s+NOT\s+EXISTS\s+([\w.]+)", re.IGNORECASE)
_USE_PATTERN = re.compile(r"^\s*USE\s+(\w+)\s*;?\s*$", re.IGNORECASE)

RowKey = tuple[tuple[str, Any], ...]


def _row_key(key: Mapping[str, Any]) -> RowKey:
    return tuple(sorted(key.items()))


class MemoryMigrationAdapter(MigrationDBAdapter):
    """Dictionary-backed implementation of the migration store adapter.

    Attributes:
        statements: Every raw statement passed to ``execute``, in order.
        schema: Keyspaces and tables created with ``CREATE ... IF NOT EXISTS``.
        keyspace: Keyspace selected by the last ``USE`` statement, if any.
        closed: Whether ``close`` was called.
    """

    def __init__(
        self,
        table_ttls: Mapping[str, int] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            table_ttls: Default row TTL in seconds by unqualified table name.
                        Defaults to the lease table TTL.
            clock: Monotonic clock used for TTL expiry.
        """
        self._lock = threading.Lock()
        self._tables: dict[str, dict[RowKey, dict[str, Any]]] = {}
        self._expires: dict[str, dict[RowKey, float]] = {}
        self._failures: dict[str, BaseException] = {}
        self._table_ttls = dict(table_ttls) if table_ttls is not None else {LEASES_TABLE: LEASE_TTL_SECONDS}
        self._clock = clock
        self.statements: list[str] = []
        self.schema: set[str] = set()
        self.keyspace: str | None = None
        self.closed = False

    def fail_on(self, statement: str, error: BaseException) -> None:
        """Make ``execute`` raise ``error`` whenever ``statement`` is sent."""
        self._failures[statement] = error

    def clear_failure(self, statement: str) -> None:
        self._failures.pop(statement, None)

    def _check_open(self) -> None:
        if self.closed:
            raise RuntimeError("Memory adapter is closed")

    def _live_rows(self, table: str) -> dict[RowKey, dict[str, Any]]:
        rows = self._tables.setdefault(table, {})
        expires = self._expires.setdefault(table, {})
        now = self._clock()
        for row_key in [k for k, deadline in expires.items() if deadline <= now]:
            rows.pop(row_key, None)
            del expires[row_key]
        return rows

    def _ttl_for(self, table: str) -> int | None:
        return self._table_ttls.get(table.rsplit(".", 1)[-1])

    def execute(self, statement: str) -> Any:
        with self._lock:
            self._check_open()
            self.statements.append(statement)
            error = self._failures.get(statement)
            if error is not None:
                raise error
            match = _CREATE_PATTERN.match(statement)
            if match:
                self.schema.add(f"{match.group(1).lower()}:{match.group(2)}")
            match = _USE_PATTERN.match(statement)
            if match:
                self.keyspace = match.group(1)
        return None

    def insert_if_not_exists(
        self,
        table: str,
        key: Mapping[str, Any],
        values: Mapping[str, Any],
        now_columns: Sequence[str] = (),
    ) -> bool:
        with self._lock:
            self._check_open()
            rows = self._live_rows(table)
            row_key = _row_key(key)
            if row_key in rows:
                return False
            row = {**key, **values}
            now = datetime.now(UTC)
            for column in now_columns:
                row[column] = now
            rows[row_key] = row
            ttl = self._ttl_for(table)
            if ttl:
                self._expires[table][row_key] = self._clock() + ttl
            return True

    def update_if(
        self,
        table: str,
        key: Mapping[str, Any],
        values: Mapping[str, Any],
        condition: Mapping[str, Sequence[Any]],
    ) -> bool:
        with self._lock:
            self._check_open()
            row = self._live_rows(table).get(_row_key(key))
            if row is None:
                return False
            if any(row.get(column) not in accepted for column, accepted in condition.items()):
                return False
            row.update(values)
            return True

    def delete_if(
        self,
        table: str,
        key: Mapping[str, Any],
        condition: Mapping[str, Any],
    ) -> bool:
        with self._lock:
            self._check_open()
            rows = self._live_rows(table)
            row_key = _row_key(key)
            row = rows.get(row_key)
            if row is None:
                return False
            if any(row.get(column) != expected for column, expected in condition.items()):
                return False
            del rows[row_key]
            self._expires[table].pop(row_key, None)
            return True

    def select(
        self,
        table: str,
        columns: Sequence[str],
        where: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        with self._lock:
            self._check_open()
            rows = list(self._live_rows(table).values())
            if where:
                rows = [row for row in rows if all(row.get(c) == v for c, v in where.items())]
            return [{column: row.get(column) for column in columns} for row in rows]

    def close(self) -> None:
        self.closed = True

    @property
    def db_type(self) -> str:
        return "memory"
