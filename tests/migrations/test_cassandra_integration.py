"""
End-to-end runs against a real Cassandra node.

Deselected by default; run with
``CASSANDRA_TEST_CONTACT_POINTS=127.0.0.1 pytest -m cassandra``.
"""

import os
import uuid

import pytest

from cassmigrate.migrations.db_adapter import CassandraMigrationAdapter
from cassmigrate.migrations.lease import LeaseManager
from cassmigrate.migrations.ledger import MigrationLedger
from cassmigrate.migrations.orchestrator import MigrationOrchestrator
from cassmigrate.migrations.source import Migration
from cassmigrate.migrations.state import MigrationStatus

pytestmark = pytest.mark.cassandra


@pytest.fixture
def real_cluster():
    contact_points = os.environ.get("CASSANDRA_TEST_CONTACT_POINTS")
    if not contact_points:
        pytest.skip("CASSANDRA_TEST_CONTACT_POINTS is not set")

    from cassandra.cluster import Cluster

    cluster = Cluster(contact_points.split(","))
    yield cluster
    cluster.shutdown()


@pytest.fixture
def fresh_keyspace(real_cluster):
    name = f"cassmigrate_{uuid.uuid4().hex[:12]}"
    yield name
    session = real_cluster.connect()
    session.execute(f"DROP KEYSPACE IF EXISTS {name}")
    session.shutdown()


def test_applies_and_records(real_cluster, fresh_keyspace):
    migrations = [
        Migration("001_init.cql", "CREATE TABLE foo (id uuid PRIMARY KEY)"),
        Migration("002_add.cql", "ALTER TABLE foo ADD name text"),
    ]

    applied = MigrationOrchestrator().execute(real_cluster, fresh_keyspace, migrations)
    again = MigrationOrchestrator().execute(real_cluster, fresh_keyspace, migrations)

    assert applied == ["001_init.cql", "002_add.cql"]
    assert again == []

    adapter = CassandraMigrationAdapter(real_cluster.connect())
    try:
        records = MigrationLedger(adapter, fresh_keyspace).records()
        assert [r.status for r in records] == [MigrationStatus.APPLIED, MigrationStatus.APPLIED]
        assert all(r.created_at is not None for r in records)
        assert LeaseManager(adapter, fresh_keyspace).current_owner() is None
    finally:
        adapter.close()


def test_lease_contention(real_cluster, fresh_keyspace):
    MigrationOrchestrator().execute(real_cluster, fresh_keyspace, [])

    adapter = CassandraMigrationAdapter(real_cluster.connect())
    try:
        lease = LeaseManager(adapter, fresh_keyspace)
        assert lease.acquire("holder") is True
        assert lease.acquire("other") is False

        lease.release("other")
        assert lease.current_owner() == "holder"

        lease.release("holder")
        assert lease.current_owner() is None
    finally:
        adapter.close()
