"""System routes: health, version."""

from __future__ import annotations

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from switchboard import __version__ as VERSION


async def health(request: Request) -> JSONResponse:
    engine = request.app.state.engine
    return JSONResponse(
        {
            "status": "ok",
            "registry": engine.registry.digest,
            "generation": engine.holder.generation,
        }
    )


async def version(request: Request) -> JSONResponse:
    return JSONResponse({"version": VERSION})


routes = [
    Route("/health", health),
    Route("/api/version", version),
]
