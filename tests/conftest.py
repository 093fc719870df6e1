import pytest

from cassmigrate.config.environment import Environment
from cassmigrate.migrations.memory_adapter import MemoryMigrationAdapter


class FakeCluster:
    """Stands in for cassandra.cluster.Cluster, handing out one store per connect()."""

    def __init__(self, store: MemoryMigrationAdapter):
        self.store = store
        self.connect_calls = 0
        self.shutdown_called = False

    def connect(self):
        self.connect_calls += 1
        return self.store

    def shutdown(self):
        self.shutdown_called = True


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    """An empty in-memory store with lease TTLs driven by a fake clock."""
    return MemoryMigrationAdapter(clock=clock)


@pytest.fixture
def cluster(store):
    return FakeCluster(store)


@pytest.fixture
def keyspace():
    return "test_ks"


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch, tmp_path):
    """Keep host settings files and CASSANDRA_* variables out of the tests."""
    for key in (
        "CASSANDRA_CONTACT_POINTS",
        "CASSANDRA_PORT",
        "CASSANDRA_KEYSPACE",
        "CASSANDRA_REPLICATION_FACTOR",
        "CASSANDRA_USERNAME",
        "CASSANDRA_PASSWORD",
        "MIGRATIONS_DIR",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(Environment, "settings", {})
    monkeypatch.setattr(Environment, "load_settings", classmethod(lambda cls: setattr(cls, "settings", {})))
    yield
