import pytest

from cassmigrate.config.settings import get_value, load_settings


def test_missing_file_gives_empty_settings(tmp_path):
    assert load_settings(tmp_path / "settings.yaml") == {}


def test_loads_yaml_mapping(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("CASSANDRA_KEYSPACE: orders\nCASSANDRA_PORT: 9042\n")

    assert load_settings(path) == {"CASSANDRA_KEYSPACE": "orders", "CASSANDRA_PORT": 9042}


def test_non_mapping_file_is_rejected(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("- just\n- a list\n")

    with pytest.raises(ValueError, match="must contain a mapping"):
        load_settings(path)


def test_get_value_precedence(monkeypatch):
    monkeypatch.setenv("SOME_KEY", "env")

    assert get_value("SOME_KEY", {"SOME_KEY": "file"}, {"SOME_KEY": "default"}) == "file"
    assert get_value("SOME_KEY", {}, {"SOME_KEY": "default"}) == "env"

    monkeypatch.delenv("SOME_KEY")
    assert get_value("SOME_KEY", {}, {"SOME_KEY": "default"}) == "default"


def test_get_value_missing_raises(monkeypatch):
    monkeypatch.delenv("SOME_KEY", raising=False)

    with pytest.raises(KeyError, match="Missing required setting: SOME_KEY"):
        get_value("SOME_KEY", {}, {})

    assert get_value("SOME_KEY", {}, {}, default=None) is None
