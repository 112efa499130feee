"""Starlette app factory with lifespan for engine management."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from starlette.applications import Starlette

from switchboard.engine.config import CONFIG_FILENAME, EngineConfig, load_engine_config
from switchboard.engine.service import DispatchEngine
from switchboard.server.routes_engine import routes as engine_routes
from switchboard.server.routes_system import routes as system_routes


def create_app(
    engine: DispatchEngine | None = None,
    config: EngineConfig | None = None,
) -> Starlette:
    """Create a Starlette app around an engine.

    When no engine is given one is built at startup from ``config`` (or
    .switchboard.json in the working directory); a RegistryError then aborts
    startup.
    """

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncGenerator[None, None]:
        if engine is not None:
            app.state.engine = engine
        else:
            engine_config = config or load_engine_config(Path.cwd() / CONFIG_FILENAME)
            app.state.engine = DispatchEngine.from_config(engine_config)
        yield

    return Starlette(routes=system_routes + engine_routes, lifespan=lifespan)
