"""Server configuration, data directory and environment overrides."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_PORT = 41888


def get_data_dir() -> Path:
    env = os.environ.get("SWITCHBOARD_DATA_DIR")
    if env:
        return Path(env)
    return Path.home() / ".switchboard" / "data"


def get_port_lock_path() -> Path:
    return get_data_dir() / "port.lock"


@dataclass
class Config:
    port: int = DEFAULT_PORT
    host: str = "127.0.0.1"


def load_config(path: Path | None = None) -> Config:
    """Load server config from the ``server`` section of a JSON file."""
    config = Config()

    if path and path.exists():
        try:
            data = json.loads(path.read_text())
            section = data.get("server", {})
            if isinstance(section, dict):
                if isinstance(section.get("port"), int):
                    config.port = section["port"]
                if isinstance(section.get("host"), str):
                    config.host = section["host"]
        except (json.JSONDecodeError, OSError):
            pass

    port_env = os.environ.get("SWITCHBOARD_PORT")
    if port_env:
        config.port = int(port_env)

    return config


def get_api_url() -> str:
    """Read API URL from the port.lock file, falling back to the default port."""
    try:
        data = json.loads(get_port_lock_path().read_text())
        port = int(data.get("port", DEFAULT_PORT))
    except (FileNotFoundError, json.JSONDecodeError, OSError, ValueError):
        port = DEFAULT_PORT
    return f"http://127.0.0.1:{port}"
