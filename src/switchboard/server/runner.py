"""Serve a DispatchEngine over HTTP and advertise the port through port.lock."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from switchboard.config import Config, get_port_lock_path, load_config
from switchboard.engine.config import CONFIG_FILENAME
from switchboard.engine.service import DispatchEngine
from switchboard.server.app import create_app

logger = logging.getLogger(__name__)


def write_port_lock(port: int) -> Path:
    lock_path = get_port_lock_path()
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    lock_path.write_text(json.dumps({"port": port, "pid": os.getpid()}))
    return lock_path


def run_server(engine: DispatchEngine, config: Config | None = None) -> None:
    """Block serving ``engine`` until uvicorn shuts down.

    The caller builds the engine, so an invalid registry is reported before
    anything binds the port. port.lock exists only while the server runs.
    """
    import uvicorn

    if config is None:
        config = load_config(Path.cwd() / CONFIG_FILENAME)

    app = create_app(engine=engine)
    lock_path = write_port_lock(config.port)
    logger.info(
        "Serving registry %s (%d agents) on %s:%d",
        engine.registry.digest[:12],
        len(engine.registry),
        config.host,
        config.port,
    )
    try:
        uvicorn.run(app, host=config.host, port=config.port)
    finally:
        lock_path.unlink(missing_ok=True)
