"""Step collaborators: whatever performs the work a step describes."""

from __future__ import annotations

from typing import Protocol

import httpx

from switchboard.engine.config import EngineConfig
from switchboard.engine.models import StepOutcome, StepResult
from switchboard.registry.models import Skill


class StepCollaborator(Protocol):
    def perform_step(
        self,
        instruction: str,
        skills: list[Skill],
        prior_results: list[StepResult],
    ) -> StepOutcome: ...


class EchoCollaborator:
    """Dry-run collaborator: reports the instruction back as the step output."""

    def perform_step(
        self,
        instruction: str,
        skills: list[Skill],
        prior_results: list[StepResult],
    ) -> StepOutcome:
        suffix = f" [skills: {', '.join(s.name for s in skills)}]" if skills else ""
        return StepOutcome(status="ok", output=f"{instruction}{suffix}")


class HttpCollaborator:
    """POSTs each step to an HTTP endpoint that does the actual work.

    The endpoint receives ``{"instruction", "skills", "prior_results"}`` and
    answers ``{"status": "ok" | "failed", "output": str}``.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._url = url
        self._client = client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def perform_step(
        self,
        instruction: str,
        skills: list[Skill],
        prior_results: list[StepResult],
    ) -> StepOutcome:
        payload = {
            "instruction": instruction,
            "skills": [s.model_dump(mode="json") for s in skills],
            "prior_results": [r.model_dump(mode="json") for r in prior_results],
        }
        try:
            resp = self._client.post(self._url, json=payload)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as e:
            return StepOutcome(status="failed", output=f"collaborator request failed: {e}")
        except ValueError:
            return StepOutcome(status="failed", output="collaborator returned invalid JSON")
        if not isinstance(data, dict):
            return StepOutcome(status="failed", output="collaborator returned invalid JSON")
        status = "ok" if data.get("status", "ok") == "ok" else "failed"
        return StepOutcome(status=status, output=str(data.get("output", "")))


def build_collaborator(config: EngineConfig) -> StepCollaborator:
    if config.collaborator == "http":
        if not config.collaborator_url:
            raise ValueError("collaborator 'http' requires collaborator_url")
        return HttpCollaborator(config.collaborator_url, timeout=config.step_timeout)
    return EchoCollaborator()
