"""
Environment Configuration Management Module

This module provides centralized configuration for cassmigrate through the
Environment class. Values are resolved from, in order of precedence:

- The settings file (settings.yaml)
- Environment variables (including those loaded from .env files)
- Default values

The lease TTL is deliberately absent: it is part of the control-table schema
and not a setting.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

from cassmigrate.config.settings import get_value, load_settings

DEFAULT_ENV = {
    "CASSANDRA_CONTACT_POINTS": "127.0.0.1",
    "CASSANDRA_PORT": "9042",
    "CASSANDRA_KEYSPACE": None,
    "CASSANDRA_REPLICATION_FACTOR": None,
    "CASSANDRA_USERNAME": None,
    "CASSANDRA_PASSWORD": None,
    "MIGRATIONS_DIR": "migrations",
}


def load_dotenv_files(base_dir: Path | None = None):
    """Load environment variables from .env files based on current environment."""
    from dotenv import load_dotenv

    base_dir = base_dir or Path.cwd()
    env_name = os.environ.get("ENV", "development")

    # Later files only fill in what earlier ones left unset
    env_files = [
        base_dir / f".env.{env_name}.local",
        base_dir / f".env.{env_name}",
        base_dir / ".env",
    ]

    for env_file in env_files:
        if env_file.exists():
            load_dotenv(env_file, override=False)


class Environment(object):
    """
    Central access point for cassmigrate configuration.

    Settings are loaded lazily on first access; call `load_settings()` to
    force a reload (the CLI does this before click parses envvar options).
    """

    settings: Optional[Dict[str, Any]] = None

    @classmethod
    def load_settings(cls):
        load_dotenv_files()
        cls.settings = load_settings()

    @classmethod
    def get_settings(cls) -> Dict[str, Any]:
        if cls.settings is None:
            cls.load_settings()
        assert cls.settings is not None
        return cls.settings

    @classmethod
    def get(cls, key: str, default: Any = None):
        value = get_value(key, cls.get_settings(), DEFAULT_ENV, default)
        return default if value is None else value

    @classmethod
    def get_log_level(cls) -> str:
        """Return desired log level string.

        Priority:
        1) Explicit LOG_LEVEL from the environment
        2) If DEBUG env is truthy, return "DEBUG"
        3) CASSMIGRATE_LOG_LEVEL env (default "INFO")
        """
        level = os.getenv("LOG_LEVEL")
        if level:
            return str(level).upper()
        debug_env = os.getenv("DEBUG")
        if debug_env and debug_env.lower() not in ("0", "false", "no", "off", ""):
            return "DEBUG"
        return os.getenv("CASSMIGRATE_LOG_LEVEL", "INFO").upper()

    @classmethod
    def _get_int_setting(cls, key: str, default: Optional[int]) -> Optional[int]:
        raw = cls.get(key)
        if raw is None or str(raw).strip() == "":
            return default
        try:
            return int(raw)
        except (TypeError, ValueError) as e:
            raise ValueError(f"{key} must be an integer, got {raw!r}") from e

    @classmethod
    def get_contact_points(cls) -> list[str]:
        """
        Hosts the driver uses to discover the cluster.
        """
        raw = cls.get("CASSANDRA_CONTACT_POINTS")
        if isinstance(raw, (list, tuple)):
            return [str(p).strip() for p in raw if str(p).strip()]
        return [p.strip() for p in str(raw).split(",") if p.strip()]

    @classmethod
    def get_port(cls) -> int:
        port = cls._get_int_setting("CASSANDRA_PORT", 9042)
        assert port is not None
        return port

    @classmethod
    def get_keyspace(cls) -> Optional[str]:
        """
        The keyspace holding the control tables and the migrated schema.
        """
        return cls.get("CASSANDRA_KEYSPACE")

    @classmethod
    def get_replication_factor(cls) -> Optional[int]:
        """
        Replication factor used only when the keyspace has to be created.
        """
        return cls._get_int_setting("CASSANDRA_REPLICATION_FACTOR", None)

    @classmethod
    def get_credentials(cls) -> Optional[tuple[str, str]]:
        username = cls.get("CASSANDRA_USERNAME")
        password = cls.get("CASSANDRA_PASSWORD")
        if username and password:
            return str(username), str(password)
        return None

    @classmethod
    def get_migrations_dir(cls) -> Path:
        return Path(str(cls.get("MIGRATIONS_DIR"))).expanduser()
