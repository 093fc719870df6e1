"""
Store adapter interface for migrations.

Provides an abstract interface for the store operations needed by the
migration system. Besides plain statement execution, the interface exposes
single-row conditional writes (lightweight transactions) as first-class
operations: the lease and the ledger rely on the store arbitrating these
linearizably across processes and machines.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any

from cassmigrate.config.logging_config import get_logger

log = get_logger(__name__)


class MigrationDBAdapter(ABC):
    """Abstract store adapter interface for migrations.

    Tables are passed fully qualified (``keyspace.table``). Keys, values and
    conditions are plain column-name mappings; conditional methods return the
    store's "applied" flag.
    """

    @abstractmethod
    def execute(self, statement: str) -> Any:
        """Execute a raw statement (schema change or migration script).

        Args:
            statement: Statement text, sent to the store as-is.

        Returns:
            Store-specific result object.
        """
        pass

    @abstractmethod
    def insert_if_not_exists(
        self,
        table: str,
        key: Mapping[str, Any],
        values: Mapping[str, Any],
        now_columns: Sequence[str] = (),
    ) -> bool:
        """Insert a row unless a row with the same primary key exists.

        Args:
            table: Qualified table name.
            key: Primary key columns of the row.
            values: Remaining columns to write.
            now_columns: Columns set to the store's current timestamp.

        Returns:
            True if the row was inserted.
        """
        pass

    @abstractmethod
    def update_if(
        self,
        table: str,
        key: Mapping[str, Any],
        values: Mapping[str, Any],
        condition: Mapping[str, Sequence[Any]],
    ) -> bool:
        """Update a row if each condition column holds one of the given values.

        Args:
            table: Qualified table name.
            key: Primary key columns of the row.
            values: Columns to set.
            condition: Column name to the accepted current values (``IN``).

        Returns:
            True if the update was applied. False when the row is absent or
            the condition does not hold.
        """
        pass

    @abstractmethod
    def delete_if(
        self,
        table: str,
        key: Mapping[str, Any],
        condition: Mapping[str, Any],
    ) -> bool:
        """Delete a row if each condition column equals the given value.

        Returns:
            True if the row was deleted.
        """
        pass

    @abstractmethod
    def select(
        self,
        table: str,
        columns: Sequence[str],
        where: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Read rows from a table.

        Args:
            table: Qualified table name.
            columns: Columns to return.
            where: Optional primary key equality restriction.

        Returns:
            List of dictionaries (column name to value).
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the underlying connection."""
        pass

    @property
    @abstractmethod
    def db_type(self) -> str:
        """Get the store type identifier (e.g. 'cassandra', 'memory')."""
        pass


class CassandraMigrationAdapter(MigrationDBAdapter):
    """Cassandra implementation of the migration store adapter."""

    def __init__(
        self,
        session: Any,
        consistency_level: Any = None,
        serial_consistency_level: Any = None,
    ):
        """Initialize with a cassandra-driver session.

        Args:
            session: cassandra.cluster.Session object.
            consistency_level: Optional consistency level for every statement.
            serial_consistency_level: Consistency level of the Paxos phase of
                conditional statements (default SERIAL).
        """
        from cassandra import ConsistencyLevel

        self._session = session
        self._consistency_level = consistency_level
        self._serial_consistency_level = (
            serial_consistency_level if serial_consistency_level is not None else ConsistencyLevel.SERIAL
        )

    def _statement(self, query: str, conditional: bool = False) -> Any:
        from cassandra.query import SimpleStatement

        return SimpleStatement(
            query,
            consistency_level=self._consistency_level,
            serial_consistency_level=self._serial_consistency_level if conditional else None,
        )

    def execute(self, statement: str) -> Any:
        """Execute a raw statement."""
        return self._session.execute(self._statement(statement))

    def insert_if_not_exists(
        self,
        table: str,
        key: Mapping[str, Any],
        values: Mapping[str, Any],
        now_columns: Sequence[str] = (),
    ) -> bool:
        row = {**key, **values}
        columns = list(row) + list(now_columns)
        placeholders = ["%s"] * len(row) + ["toTimestamp(now())"] * len(now_columns)
        query = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({', '.join(placeholders)}) IF NOT EXISTS"
        result = self._session.execute(self._statement(query, conditional=True), tuple(row.values()))
        return bool(result.was_applied)

    def update_if(
        self,
        table: str,
        key: Mapping[str, Any],
        values: Mapping[str, Any],
        condition: Mapping[str, Sequence[Any]],
    ) -> bool:
        assignments = ", ".join(f"{column} = %s" for column in values)
        restriction = " AND ".join(f"{column} = %s" for column in key)
        checks = " AND ".join(
            f"{column} IN ({', '.join(['%s'] * len(accepted))})" for column, accepted in condition.items()
        )
        query = f"UPDATE {table} SET {assignments} WHERE {restriction} IF {checks}"
        params = [*values.values(), *key.values()]
        for accepted in condition.values():
            params.extend(accepted)
        result = self._session.execute(self._statement(query, conditional=True), tuple(params))
        return bool(result.was_applied)

    def delete_if(
        self,
        table: str,
        key: Mapping[str, Any],
        condition: Mapping[str, Any],
    ) -> bool:
        restriction = " AND ".join(f"{column} = %s" for column in key)
        checks = " AND ".join(f"{column} = %s" for column in condition)
        query = f"DELETE FROM {table} WHERE {restriction} IF {checks}"
        params = (*key.values(), *condition.values())
        result = self._session.execute(self._statement(query, conditional=True), params)
        return bool(result.was_applied)

    def select(
        self,
        table: str,
        columns: Sequence[str],
        where: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        query = f"SELECT {', '.join(columns)} FROM {table}"
        params: tuple[Any, ...] = ()
        if where:
            query += " WHERE " + " AND ".join(f"{column} = %s" for column in where)
            params = tuple(where.values())
        rows = self._session.execute(self._statement(query), params or None)
        result = []
        for row in rows:
            if isinstance(row, dict):
                result.append(dict(row))
            else:
                # named_tuple_factory and tuple_factory rows are positional
                result.append(dict(zip(columns, row)))
        return result

    def close(self) -> None:
        """Shut the session down."""
        log.debug("Shutting down cassandra session")
        self._session.shutdown()

    @property
    def db_type(self) -> str:
        return "cassandra"


def create_migration_adapter(connection: Any) -> MigrationDBAdapter:
    """Factory function to create the appropriate migration adapter.

    Args:
        connection: A MigrationDBAdapter (returned unchanged) or a
                    cassandra-driver Session.

    Returns:
        MigrationDBAdapter implementation.

    Raises:
        TypeError: If the connection type is not supported.
    """
    if isinstance(connection, MigrationDBAdapter):
        return connection

    from cassandra.cluster import Session

    if isinstance(connection, Session):
        return CassandraMigrationAdapter(connection)

    raise TypeError(f"Unsupported connection type for migrations: {type(connection).__name__}")
