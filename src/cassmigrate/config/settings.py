"""Utility functions for reading and writing configuration files."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict

import yaml

# Constants
SETTINGS_FILE = "settings.yaml"
MISSING_MESSAGE = "Missing required setting: {}"
NOT_GIVEN = object()


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------


def get_system_file_path(filename: str) -> Path:
    """Return the path to the configuration file for the current OS."""
    import platform

    os_name = platform.system()
    if os_name in {"Linux", "Darwin"}:
        return Path.home() / ".config" / "cassmigrate" / filename
    elif os_name == "Windows":
        appdata = os.getenv("APPDATA")
        if appdata is not None:
            return Path(appdata) / "cassmigrate" / filename
        return Path("data") / filename
    return Path("data") / filename


# ---------------------------------------------------------------------------
# Settings helpers
# ---------------------------------------------------------------------------


def load_settings(settings_file: Path | None = None) -> Dict[str, Any]:
    """Load settings from the YAML settings file, if there is one."""
    settings_file = settings_file or get_system_file_path(SETTINGS_FILE)

    if not settings_file.exists():
        return {}

    with open(settings_file, "r") as f:
        settings = yaml.safe_load(f) or {}

    if not isinstance(settings, dict):
        raise ValueError(f"Settings file {settings_file} must contain a mapping")
    return settings


def get_value(
    key: str,
    settings: Dict[str, Any],
    default_env: Dict[str, Any],
    default: Any = NOT_GIVEN,
) -> Any:
    """Retrieve a configuration value from settings, the environment or defaults."""
    value = settings.get(key)
    if value is None or str(value) == "":
        value = os.environ.get(key)

    if value is None:
        value = default_env.get(key, default)

    if value is not NOT_GIVEN:
        return value
    raise KeyError(MISSING_MESSAGE.format(key))
