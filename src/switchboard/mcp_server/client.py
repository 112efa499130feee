"""Async httpx client wrapper for the engine HTTP API."""

from __future__ import annotations

import httpx


class EngineClient:
    def __init__(self, base_url: str | None = None, timeout: float = 60.0) -> None:
        if base_url is None:
            from switchboard.config import get_api_url

            base_url = get_api_url()
        self._base_url = base_url
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def close(self) -> None:
        await self._client.aclose()

    async def match(self, task: str) -> dict:
        resp = await self._client.post("/api/match", json={"task": task})
        resp.raise_for_status()
        return resp.json()

    async def dispatch(self, task: str) -> dict:
        resp = await self._client.post("/api/dispatch", json={"task": task})
        resp.raise_for_status()
        return resp.json()

    async def run(self, plan_id: str, *, follow_handoffs: bool | None = None) -> dict:
        body: dict = {}
        if follow_handoffs is not None:
            body["follow_handoffs"] = follow_handoffs
        resp = await self._client.post(f"/api/plans/{plan_id}/run", json=body)
        # unknown or already running plans carry an error body
        if resp.status_code in (404, 409):
            return resp.json()
        resp.raise_for_status()
        return resp.json()

    async def reload_registry(self, sources: list[str] | None = None) -> dict:
        body: dict = {}
        if sources:
            body["sources"] = sources
        resp = await self._client.post("/api/registry/reload", json=body)
        # 422 carries the validation problems; surface them instead of raising
        if resp.status_code == 422:
            return resp.json()
        resp.raise_for_status()
        return resp.json()
