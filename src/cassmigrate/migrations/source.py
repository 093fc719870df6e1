"""
Migration scripts and where they come from.

A migration source is any iterable of resources exposing ``name``,
``exists()`` and ``read()``. Files on disk are wrapped in ``FileResource``;
``Migration`` objects satisfy the same protocol, so an in-memory list of
migrations can be passed wherever resources are expected.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from cassmigrate.config.logging_config import get_logger
from cassmigrate.migrations.exceptions import MigrationDiscoveryError

log = get_logger(__name__)

DEFAULT_PATTERN = "*.cql"


@runtime_checkable
class MigrationResource(Protocol):
    """A named, possibly unreadable, migration script."""

    @property
    def name(self) -> str: ...

    def exists(self) -> bool: ...

    def read(self) -> str: ...


@dataclass(frozen=True, order=True)
class Migration:
    """A named schema-change statement.

    Equality and ordering only consider ``name``.

    Attributes:
        name: Unique identifier, usually the script's file name.
        statement: The statement sent to the store.
    """

    name: str
    statement: str = field(compare=False)

    def exists(self) -> bool:
        return True

    def read(self) -> str:
        return self.statement

    @classmethod
    def from_resource(cls, resource: MigrationResource) -> Optional["Migration"]:
        """Read a resource into a Migration.

        Returns:
            The migration, or None if the resource cannot be read.
        """
        try:
            return cls(name=resource.name, statement=resource.read())
        except Exception as e:
            log.debug(f"Skipping unreadable migration resource {getattr(resource, 'name', resource)!r}: {e}")
            return None


@dataclass(frozen=True)
class FileResource:
    """A migration script stored in a file."""

    path: Path
    encoding: str = "utf-8"

    @property
    def name(self) -> str:
        return self.path.name

    def exists(self) -> bool:
        try:
            return self.path.is_file()
        except OSError as e:
            log.debug(f"Cannot check migration file {self.path}: {e}")
            return False

    def read(self) -> str:
        return self.path.read_text(encoding=self.encoding)


def discover_resources(directory: Path, pattern: str = DEFAULT_PATTERN) -> list[FileResource]:
    """List the migration scripts in ``directory`` matching ``pattern``.

    Ordering is left to the orchestrator's sort key.

    Raises:
        MigrationDiscoveryError: If ``directory`` is not a directory.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise MigrationDiscoveryError(f"Migrations directory not found: {directory}")

    resources = [FileResource(path) for path in directory.glob(pattern) if not path.name.startswith(".")]
    log.debug(f"Discovered {len(resources)} migration script(s) in {directory}")
    return resources
