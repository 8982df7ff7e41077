"""
User configuration file support.

Reads/writes ``~/.httpspeed/config.json``.

Supported keys::

    server_url = "http://localhost:8080"
    connection_mode = "multi"      # "single" (1 stream) or "multi" (4)
    ping_count = 8
    download_duration = 10.0
    upload_duration = 10.0
    upload_size_mb = 30
    log_level = "WARNING"
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

from .constants import (
    DEFAULT_CONNECTION_MODE,
    DEFAULT_DURATION,
    DEFAULT_PING_COUNT,
    DEFAULT_SERVER_URL,
    DEFAULT_UPLOAD_MB,
)

LOGGER = logging.getLogger(__name__)

_CONFIG_DIR = os.path.join(Path.home(), ".httpspeed")
_CONFIG_FILE = "config.json"


def _config_path() -> str:
    return os.path.join(_CONFIG_DIR, _CONFIG_FILE)


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULTS: Dict[str, Any] = {
    "server_url": DEFAULT_SERVER_URL,
    "connection_mode": DEFAULT_CONNECTION_MODE,
    "ping_count": DEFAULT_PING_COUNT,
    "download_duration": DEFAULT_DURATION,
    "upload_duration": DEFAULT_DURATION,
    "upload_size_mb": DEFAULT_UPLOAD_MB,
    "log_level": "WARNING",
}


# ---------------------------------------------------------------------------
# Read / Write
# ---------------------------------------------------------------------------

def load_config() -> Dict[str, Any]:
    """Load config from disk, returning defaults for missing keys."""
    path = _config_path()
    config = dict(DEFAULTS)

    if not os.path.isfile(path):
        return config

    try:
        with open(path, encoding="utf-8") as fh:
            user = json.load(fh)
        if isinstance(user, dict):
            config.update(user)
    except (json.JSONDecodeError, IOError) as exc:
        LOGGER.warning("Ignoring unreadable config %s: %s", path, exc)

    return config


def save_config(config: Dict[str, Any]) -> str:
    """Write *config* to disk.  Returns the file path."""
    path = _config_path()
    os.makedirs(os.path.dirname(path), exist_ok=True)

    with open(path, "w", encoding="utf-8") as fh:
        json.dump(config, fh, indent=2, ensure_ascii=False)

    return path


def get_config_value(key: str) -> Any:
    """Get a single config value."""
    return load_config().get(key, DEFAULTS.get(key))


def set_config_value(key: str, value: Any) -> str:
    """Set a single config value and persist.  Returns file path."""
    if key not in DEFAULTS:
        raise KeyError(f"Unknown config key: {key}")
    config = load_config()
    config[key] = _coerce(key, value)
    return save_config(config)


def _coerce(key: str, value: Any) -> Any:
    """Convert CLI strings to the type of the key's default."""
    default = DEFAULTS[key]
    if not isinstance(value, str) or isinstance(default, str):
        return value
    if isinstance(default, int):
        return int(value)
    if isinstance(default, float):
        return float(value)
    return value


def config_path() -> str:
    """Return the config file path (for display purposes)."""
    return _config_path()
