"""Tests for step collaborators."""

from __future__ import annotations

from unittest.mock import MagicMock

import httpx
import pytest

from switchboard.engine.collaborators import (
    EchoCollaborator,
    HttpCollaborator,
    build_collaborator,
)
from switchboard.engine.config import EngineConfig
from switchboard.engine.models import StepResult, StepStatus
from switchboard.registry.models import Skill

SKILLS = [Skill(name="run-tests", description="Run the suite")]


def _prior() -> list[StepResult]:
    return [
        StepResult(
            index=1,
            instruction="Reproduce",
            action="diagnose",
            status=StepStatus.COMPLETED,
            output="1 failed",
        )
    ]


def _client(json_body: object = None, *, status: int = 200, exc: Exception | None = None):
    client = MagicMock()
    if exc is not None:
        client.post.side_effect = exc
        return client
    resp = MagicMock()
    resp.status_code = status
    if status >= 400:
        resp.raise_for_status.side_effect = httpx.HTTPStatusError(
            "boom", request=MagicMock(), response=MagicMock()
        )
    resp.json.return_value = json_body
    client.post.return_value = resp
    return client


@pytest.mark.unit
def test_echo_reports_instruction_and_skills():
    outcome = EchoCollaborator().perform_step("Fix the test", SKILLS, [])
    assert outcome.ok
    assert outcome.output == "Fix the test [skills: run-tests]"


@pytest.mark.unit
def test_echo_without_skills():
    assert EchoCollaborator().perform_step("Look", [], []).output == "Look"


@pytest.mark.unit
def test_http_posts_step_payload():
    client = _client({"status": "ok", "output": "green"})
    outcome = HttpCollaborator("http://worker/step", client=client).perform_step(
        "Fix the test", SKILLS, _prior()
    )
    assert outcome.ok
    assert outcome.output == "green"

    args, kwargs = client.post.call_args
    assert args == ("http://worker/step",)
    payload = kwargs["json"]
    assert payload["instruction"] == "Fix the test"
    assert payload["skills"][0]["name"] == "run-tests"
    assert payload["prior_results"][0]["output"] == "1 failed"


@pytest.mark.unit
def test_http_failed_status():
    client = _client({"status": "failed", "output": "still red"})
    outcome = HttpCollaborator("http://worker/step", client=client).perform_step("x", [], [])
    assert not outcome.ok
    assert outcome.output == "still red"


@pytest.mark.unit
def test_http_error_status_code():
    client = _client(status=500)
    outcome = HttpCollaborator("http://worker/step", client=client).perform_step("x", [], [])
    assert not outcome.ok
    assert "request failed" in outcome.output


@pytest.mark.unit
def test_http_connection_error():
    client = _client(exc=httpx.ConnectError("refused"))
    outcome = HttpCollaborator("http://worker/step", client=client).perform_step("x", [], [])
    assert not outcome.ok


@pytest.mark.unit
def test_http_non_object_response():
    client = _client(["not", "an", "object"])
    outcome = HttpCollaborator("http://worker/step", client=client).perform_step("x", [], [])
    assert not outcome.ok
    assert "invalid JSON" in outcome.output


@pytest.mark.unit
def test_http_close():
    client = MagicMock()
    HttpCollaborator("http://worker/step", client=client).close()
    client.close.assert_called_once()


@pytest.mark.unit
def test_build_collaborator():
    assert isinstance(build_collaborator(EngineConfig()), EchoCollaborator)
    http = build_collaborator(
        EngineConfig(collaborator="http", collaborator_url="http://worker/step")
    )
    assert isinstance(http, HttpCollaborator)
    http.close()


@pytest.mark.unit
def test_build_http_requires_url():
    with pytest.raises(ValueError, match="collaborator_url"):
        build_collaborator(EngineConfig(collaborator="http"))
