"""
Measurement parameters and user configuration file support.

``MeasurementConfig`` is the immutable per-run parameter set handed to
``LibreSpeedClient``.  The user file lives at
``~/.librespeed-tui/config.json``.

Supported keys::

    server = ""              # custom backend base URL
    server_list = "..."      # server-list JSON URL
    max_servers = 10         # candidates probed during selection
    connections = 3          # parallel streams
    ping_count = 10
    download_duration = 15.0
    upload_duration = 15.0
    chunk_size = 100         # download ckSize in MB
    upload_size = 1048576    # upload payload in bytes
    log_level = "WARNING"
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

from .constants import (
    DEFAULT_CHUNK_MB,
    DEFAULT_CONNECTIONS,
    DEFAULT_DURATION,
    DEFAULT_MAX_SERVERS,
    DEFAULT_PING_COUNT,
    DEFAULT_UPLOAD_SIZE,
    SERVER_LIST_URL,
)

logger = logging.getLogger(__name__)

_CONFIG_DIR = os.path.join(Path.home(), ".librespeed-tui")
_CONFIG_FILE = "config.json"


def _config_path() -> str:
    return os.path.join(_CONFIG_DIR, _CONFIG_FILE)


# ---------------------------------------------------------------------------
# Per-run parameters
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MeasurementConfig:
    """Parameters for one measurement run."""

    streams: int = DEFAULT_CONNECTIONS
    download_duration: float = DEFAULT_DURATION
    upload_duration: float = DEFAULT_DURATION
    ping_count: int = DEFAULT_PING_COUNT
    download_chunk_mb: int = DEFAULT_CHUNK_MB
    upload_size: int = DEFAULT_UPLOAD_SIZE
    on_download_progress: Optional[Callable[[float], None]] = None
    on_upload_progress: Optional[Callable[[float], None]] = None

    def __post_init__(self) -> None:
        if self.streams < 1:
            raise ValueError("Parallel stream count must be at least 1")
        if self.download_duration <= 0:
            raise ValueError("Download duration must be positive")
        if self.upload_duration <= 0:
            raise ValueError("Upload duration must be positive")
        if self.ping_count < 1:
            raise ValueError("Ping count must be at least 1")
        if self.download_chunk_mb <= 0:
            raise ValueError("Download chunk size must be positive")
        if self.upload_size <= 0:
            raise ValueError("Upload size must be positive")

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> MeasurementConfig:
        """Build from user-config style keys, ignoring unrelated ones."""
        return cls(
            streams=int(values.get("connections", DEFAULT_CONNECTIONS)),
            download_duration=float(values.get("download_duration", DEFAULT_DURATION)),
            upload_duration=float(values.get("upload_duration", DEFAULT_DURATION)),
            ping_count=int(values.get("ping_count", DEFAULT_PING_COUNT)),
            download_chunk_mb=int(values.get("chunk_size", DEFAULT_CHUNK_MB)),
            upload_size=int(values.get("upload_size", DEFAULT_UPLOAD_SIZE)),
        )


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULTS: Dict[str, Any] = {
    "server": "",
    "server_list": SERVER_LIST_URL,
    "max_servers": DEFAULT_MAX_SERVERS,
    "connections": DEFAULT_CONNECTIONS,
    "ping_count": DEFAULT_PING_COUNT,
    "download_duration": DEFAULT_DURATION,
    "upload_duration": DEFAULT_DURATION,
    "chunk_size": DEFAULT_CHUNK_MB,
    "upload_size": DEFAULT_UPLOAD_SIZE,
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
        logger.warning("Ignoring unreadable config file %s: %s", path, exc)

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
    config = load_config()
    config[key] = value
    return save_config(config)


def config_path() -> str:
    """Return the config file path (for display purposes)."""
    return _config_path()
