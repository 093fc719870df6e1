"""Tests for cassmigrate CLI commands."""

from __future__ import annotations

import re
from unittest.mock import Mock

import pytest
from click.testing import CliRunner

import cassmigrate.cli as cli_module
from cassmigrate.cli import cli
from cassmigrate.migrations.lease import LeaseManager
from cassmigrate.migrations.ledger import MigrationLedger
from cassmigrate.migrations.state import MigrationStatus


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def migrations_dir(tmp_path):
    directory = tmp_path / "cql"
    directory.mkdir()
    (directory / "001_init.cql").write_text("CREATE TABLE test_ks.foo (id uuid PRIMARY KEY)")
    (directory / "002_add.cql").write_text("ALTER TABLE test_ks.foo ADD name text")
    return directory


@pytest.fixture
def patched_cluster(monkeypatch, cluster):
    calls = []

    def fake_get_cluster(contact_points=None, port=None):
        calls.append((contact_points, port))
        return cluster

    monkeypatch.setattr(cli_module, "_get_cluster", fake_get_cluster)
    cluster.calls = calls
    return cluster


class TestUpgradeCommand:
    def test_applies_pending_migrations(self, runner, patched_cluster, store, migrations_dir):
        result = runner.invoke(cli, ["upgrade", "-k", "test_ks", "-d", str(migrations_dir)])

        assert result.exit_code == 0, result.output
        assert "Applied 2 migration(s)" in result.output
        assert "001_init.cql" in result.output
        assert store.statements[-2:] == [
            "CREATE TABLE test_ks.foo (id uuid PRIMARY KEY)",
            "ALTER TABLE test_ks.foo ADD name text",
        ]
        assert patched_cluster.shutdown_called

    def test_nothing_pending(self, runner, patched_cluster, store, migrations_dir):
        runner.invoke(cli, ["upgrade", "-k", "test_ks", "-d", str(migrations_dir)])
        store.closed = False

        result = runner.invoke(cli, ["upgrade", "-k", "test_ks", "-d", str(migrations_dir)])

        assert result.exit_code == 0, result.output
        assert "No migrations applied" in result.output

    def test_lease_held_elsewhere(self, runner, patched_cluster, store, migrations_dir):
        LeaseManager(store, "test_ks").acquire("other-host")

        result = runner.invoke(cli, ["upgrade", "-k", "test_ks", "-d", str(migrations_dir)])

        assert result.exit_code == 0, result.output
        assert "No migrations applied" in result.output
        assert MigrationLedger(_reopen(store), "test_ks").records() == []

    def test_failure_exits_non_zero(self, runner, patched_cluster, store, migrations_dir):
        store.fail_on("ALTER TABLE test_ks.foo ADD name text", RuntimeError("invalid column"))

        result = runner.invoke(cli, ["upgrade", "-k", "test_ks", "-d", str(migrations_dir)])

        assert result.exit_code == 1
        assert "Migration failed" in result.output
        assert patched_cluster.shutdown_called
        records = {r.name: r.status for r in MigrationLedger(_reopen(store), "test_ks").records()}
        assert records == {"001_init.cql": MigrationStatus.APPLIED, "002_add.cql": MigrationStatus.FAILED}

    def test_missing_directory(self, runner, patched_cluster, tmp_path):
        result = runner.invoke(cli, ["upgrade", "-k", "test_ks", "-d", str(tmp_path / "nope")])

        assert result.exit_code == 1
        assert patched_cluster.calls == []

    def test_refuses_migration_without_statement(self, runner, patched_cluster, migrations_dir):
        runner.invoke(cli, ["create", "add_index", "-d", str(migrations_dir)])

        result = runner.invoke(cli, ["upgrade", "-k", "test_ks", "-d", str(migrations_dir)])

        assert result.exit_code == 1
        assert "contain no statement" in result.output
        assert "_add_index.cql" in result.output
        assert patched_cluster.calls == []

    def test_block_comment_only_file_is_refused(self, runner, patched_cluster, migrations_dir):
        (migrations_dir / "003_todo.cql").write_text("/* fill in */\n\n")

        result = runner.invoke(cli, ["upgrade", "-k", "test_ks", "-d", str(migrations_dir)])

        assert result.exit_code == 1
        assert "003_todo.cql" in result.output

    def test_keyspace_is_required(self, runner, patched_cluster, migrations_dir):
        result = runner.invoke(cli, ["upgrade", "-d", str(migrations_dir)])

        assert result.exit_code == 2
        assert "No keyspace given" in result.output

    def test_keyspace_and_dir_from_environment(self, runner, monkeypatch, patched_cluster, migrations_dir):
        monkeypatch.setenv("CASSANDRA_KEYSPACE", "test_ks")
        monkeypatch.setenv("MIGRATIONS_DIR", str(migrations_dir))

        result = runner.invoke(cli, ["upgrade"])

        assert result.exit_code == 0, result.output
        assert "Applied 2 migration(s)" in result.output

    def test_connection_options_are_forwarded(self, runner, patched_cluster, migrations_dir):
        runner.invoke(
            cli,
            ["upgrade", "-k", "test_ks", "-d", str(migrations_dir), "--contact-points", "10.0.0.1", "--port", "19042"],
        )

        assert patched_cluster.calls == [("10.0.0.1", 19042)]


class TestStatusCommand:
    def test_shows_ledger_and_pending(self, runner, patched_cluster, store, migrations_dir):
        (migrations_dir / "003_more.cql").write_text("ALTER TABLE test_ks.foo ADD age int")
        runner.invoke(cli, ["upgrade", "-k", "test_ks", "-d", str(migrations_dir)])
        (migrations_dir / "004_pending.cql").write_text("ALTER TABLE test_ks.foo ADD city text")
        store.closed = False

        result = runner.invoke(cli, ["status", "-k", "test_ks", "-d", str(migrations_dir)])

        assert result.exit_code == 0, result.output
        assert "Lease holder: None" in result.output
        assert "001_init.cql" in result.output
        assert "APPLIED" in result.output
        assert "004_pending.cql" in result.output
        assert store.closed

    def test_shows_lease_holder(self, runner, patched_cluster, store, migrations_dir):
        LeaseManager(store, "test_ks").acquire("host-b")

        result = runner.invoke(cli, ["status", "-k", "test_ks", "-d", str(migrations_dir)])

        assert result.exit_code == 0, result.output
        assert "Lease holder: host-b" in result.output

    def test_up_to_date(self, runner, patched_cluster, store, migrations_dir):
        runner.invoke(cli, ["upgrade", "-k", "test_ks", "-d", str(migrations_dir)])
        store.closed = False

        result = runner.invoke(cli, ["status", "-k", "test_ks", "-d", str(migrations_dir)])

        assert result.exit_code == 0, result.output
        assert "No pending migrations" in result.output


class TestCreateCommand:
    def test_creates_timestamped_file(self, runner, tmp_path):
        result = runner.invoke(cli, ["create", "add orders-table", "-d", str(tmp_path / "cql")])

        assert result.exit_code == 0, result.output
        files = list((tmp_path / "cql").iterdir())
        assert len(files) == 1
        assert re.fullmatch(r"\d{8}_\d{6}_add_orders_table\.cql", files[0].name)
        assert files[0].read_text().startswith("-- Migration: ")

    def test_uses_configured_directory(self, runner, monkeypatch, tmp_path):
        monkeypatch.setenv("MIGRATIONS_DIR", str(tmp_path / "configured"))

        result = runner.invoke(cli, ["create", "init"])

        assert result.exit_code == 0, result.output
        assert len(list((tmp_path / "configured").glob("*_init.cql"))) == 1


class TestHealthCommand:
    def _cluster(self, open_count):
        host = Mock(address="10.0.0.1", is_up=open_count > 0)
        session = Mock()
        session.get_pool_state.return_value = {host: {"shutdown": False, "open_count": open_count}}
        session.cluster.metadata.all_hosts.return_value = [host]
        cluster = Mock()
        cluster.connect.return_value = session
        return cluster

    def test_up(self, runner, monkeypatch):
        cluster = self._cluster(open_count=2)
        monkeypatch.setattr(cli_module, "_get_cluster", lambda contact_points=None, port=None: cluster)

        result = runner.invoke(cli, ["health"])

        assert result.exit_code == 0, result.output
        assert "UP" in result.output
        assert "10.0.0.1" in result.output
        cluster.connect.return_value.shutdown.assert_called_once_with()
        cluster.shutdown.assert_called_once_with()

    def test_down_exits_non_zero(self, runner, monkeypatch):
        cluster = self._cluster(open_count=0)
        monkeypatch.setattr(cli_module, "_get_cluster", lambda contact_points=None, port=None: cluster)

        result = runner.invoke(cli, ["health"])

        assert result.exit_code == 1
        assert "DOWN" in result.output

    def test_connection_error(self, runner, monkeypatch):
        cluster = Mock()
        cluster.connect.side_effect = RuntimeError("no hosts available")
        monkeypatch.setattr(cli_module, "_get_cluster", lambda contact_points=None, port=None: cluster)

        result = runner.invoke(cli, ["health"])

        assert result.exit_code == 1
        assert "Health check failed" in result.output


def _reopen(store):
    store.closed = False
    return store
