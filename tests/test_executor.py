"""Tests for WorkflowExecutor step execution."""

from __future__ import annotations

import json
import os
import subprocess
import sys
import textwrap
import threading
import time
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from conftest import build_registry, make_registry_data

from switchboard.engine.collaborators import EchoCollaborator
from switchboard.engine.dispatcher import Dispatcher
from switchboard.engine.executor import WorkflowExecutor, resolve_skills
from switchboard.engine.models import (
    ErrorKind,
    ExecutionPlan,
    OutcomeKind,
    StepOutcome,
    StepResult,
    StepStatus,
)
from switchboard.errors import UnknownSkill
from switchboard.registry.loader import Registry
from switchboard.registry.models import Skill

TASK = "pytest is showing errors"


class RecordingCollaborator:
    def __init__(self, fail_on: str | None = None) -> None:
        self.calls: list[tuple[str, list[str], int]] = []
        self.fail_on = fail_on

    def perform_step(
        self, instruction: str, skills: list[Skill], prior_results: list[StepResult]
    ) -> StepOutcome:
        self.calls.append((instruction, [s.name for s in skills], len(prior_results)))
        if instruction == self.fail_on:
            return StepOutcome(status="failed", output="assertion still fails")
        return StepOutcome(output=f"done: {instruction}")


class HangingCollaborator:
    def __init__(self) -> None:
        self.release = threading.Event()

    def perform_step(self, instruction, skills, prior_results) -> StepOutcome:
        self.release.wait(timeout=5)
        return StepOutcome(output="too late")


def _plan(registry: Registry, task: str = TASK) -> ExecutionPlan:
    return Dispatcher().dispatch(task, registry)


@pytest.mark.unit
def test_scenario_a_completes(registry: Registry):
    collaborator = RecordingCollaborator()
    plan = WorkflowExecutor(collaborator).execute(_plan(registry))

    assert plan.outcome is not None
    assert plan.outcome.kind == OutcomeKind.COMPLETED
    assert plan.finished_at is not None
    assert [s.status for s in plan.steps] == [StepStatus.COMPLETED] * 3
    assert [s.index for s in plan.steps] == [1, 2, 3]
    assert plan.exit_code() == 0


@pytest.mark.unit
def test_collaborator_receives_resolved_skills_and_prior_results(registry: Registry):
    collaborator = RecordingCollaborator()
    WorkflowExecutor(collaborator).execute(_plan(registry))
    assert collaborator.calls == [
        ("Reproduce the failure", ["run-tests"], 0),
        ("Read the traceback", ["read-traceback"], 1),
        ("Fix the test", ["run-tests"], 2),
    ]


@pytest.mark.unit
def test_step_records_output_and_skills(registry: Registry):
    plan = WorkflowExecutor(RecordingCollaborator()).execute(_plan(registry))
    first = plan.steps[0]
    assert first.output == "done: Reproduce the failure"
    assert first.skills_invoked == ["run-tests"]
    assert first.action == "diagnose"
    assert first.duration_ms >= 0


@pytest.mark.unit
def test_failed_step_stops_workflow(registry: Registry):
    collaborator = RecordingCollaborator(fail_on="Read the traceback")
    plan = WorkflowExecutor(collaborator).execute(_plan(registry))

    assert len(collaborator.calls) == 2
    assert [s.status for s in plan.steps] == [StepStatus.COMPLETED, StepStatus.FAILED]
    assert plan.outcome is not None
    assert plan.outcome.kind == OutcomeKind.REJECTED
    assert plan.outcome.error == ErrorKind.STEP_FAILED
    assert plan.outcome.reason == "Step 2 failed: assertion still fails"
    assert plan.exit_code() == 1


@pytest.mark.unit
def test_collaborator_exception_is_step_failure(registry: Registry):
    collaborator = MagicMock()
    collaborator.perform_step.side_effect = RuntimeError("sandbox crashed")
    plan = WorkflowExecutor(collaborator).execute(_plan(registry))

    assert len(plan.steps) == 1
    assert plan.steps[0].reason == "RuntimeError: sandbox crashed"
    assert plan.outcome is not None
    assert plan.outcome.error == ErrorKind.STEP_FAILED


@pytest.mark.unit
def test_step_timeout(registry: Registry):
    collaborator = HangingCollaborator()
    try:
        plan = WorkflowExecutor(collaborator, step_timeout=0.05).execute(_plan(registry))
    finally:
        collaborator.release.set()

    assert len(plan.steps) == 1
    assert plan.steps[0].status == StepStatus.FAILED
    assert "timed out" in (plan.steps[0].reason or "")
    assert plan.outcome is not None
    assert plan.outcome.error == ErrorKind.STEP_TIMEOUT


HUNG_STEP_SCRIPT = textwrap.dedent(
    """
    import sys
    import time

    from switchboard.engine.config import EngineConfig
    from switchboard.engine.models import StepOutcome
    from switchboard.engine.service import DispatchEngine


    class Hung:
        def perform_step(self, instruction, skills, prior_results):
            time.sleep(60)
            return StepOutcome(output="never")


    config = EngineConfig(sources=[sys.argv[1]], step_timeout=0.2)
    plan = DispatchEngine.from_config(config, collaborator=Hung()).submit("pytest is showing errors")
    print(plan.outcome.error)
    """
)


@pytest.mark.integration
def test_timed_out_step_does_not_block_process_exit(tmp_path: Path, registry_data: dict):
    source = tmp_path / "registry.json"
    source.write_text(json.dumps(registry_data))
    src = Path(__file__).resolve().parents[1] / "src"
    pythonpath = os.pathsep.join([str(src), os.environ.get("PYTHONPATH", "")])
    env = {**os.environ, "PYTHONPATH": pythonpath}

    started = time.monotonic()
    proc = subprocess.run(
        [sys.executable, "-c", HUNG_STEP_SCRIPT, str(source)],
        capture_output=True,
        text=True,
        env=env,
        timeout=30,
    )

    assert proc.returncode == 0, proc.stderr
    assert proc.stdout.strip() == "step_timeout"
    assert time.monotonic() - started < 20


@pytest.mark.unit
def test_unknown_skill_rejects_at_step():
    steps = [
        {"instruction": "Reproduce", "action": "diagnose", "skills": ["run-tests"]},
        {"instruction": "Profile", "action": "diagnose", "skills": ["profiler"]},
    ]
    registry = build_registry(make_registry_data(debug_steps=steps))
    collaborator = RecordingCollaborator()
    plan = WorkflowExecutor(collaborator).execute(_plan(registry))

    assert len(collaborator.calls) == 1
    assert plan.steps[-1].status == StepStatus.FAILED
    assert plan.outcome is not None
    assert plan.outcome.error == ErrorKind.UNKNOWN_SKILL
    assert "profiler" in (plan.outcome.reason or "")


@pytest.mark.unit
def test_resolve_skills_raises(registry: Registry):
    agent = registry.lookup("debug-test-failure")
    step = agent.default_workflow.steps[0].model_copy(update={"skills": ("nope",)})
    with pytest.raises(UnknownSkill) as exc_info:
        resolve_skills(registry, step, 4)
    assert exc_info.value.step_index == 4


@pytest.mark.unit
def test_cancel_before_start(registry: Registry):
    cancel = threading.Event()
    cancel.set()
    collaborator = RecordingCollaborator()
    plan = WorkflowExecutor(collaborator).execute(_plan(registry), cancel=cancel)

    assert collaborator.calls == []
    assert plan.steps == []
    assert plan.outcome is not None
    assert plan.outcome.error == ErrorKind.CANCELLED


@pytest.mark.unit
def test_cancel_between_steps(registry: Registry):
    cancel = threading.Event()
    seen: list[int] = []

    def on_step(plan: ExecutionPlan, result: StepResult) -> None:
        seen.append(result.index)
        cancel.set()

    plan = WorkflowExecutor(EchoCollaborator()).execute(
        _plan(registry), cancel=cancel, on_step=on_step
    )
    assert seen == [1]
    assert plan.outcome is not None
    assert plan.outcome.error == ErrorKind.CANCELLED
    assert plan.outcome.reason == "cancelled before step 2"


@pytest.mark.unit
def test_on_step_streams_every_result(registry: Registry):
    seen: list[StepStatus] = []
    WorkflowExecutor(EchoCollaborator()).execute(
        _plan(registry), on_step=lambda plan, result: seen.append(result.status)
    )
    assert seen == [StepStatus.COMPLETED] * 3


@pytest.mark.unit
def test_finished_plan_is_not_rerun(registry: Registry):
    collaborator = RecordingCollaborator()
    executor = WorkflowExecutor(collaborator)
    plan = executor.execute(_plan(registry))
    executor.execute(plan)
    assert len(collaborator.calls) == 3


@pytest.mark.unit
def test_plan_without_agent_is_rejected():
    plan = WorkflowExecutor(EchoCollaborator()).execute(ExecutionPlan(task="x"))
    assert plan.outcome is not None
    assert plan.outcome.error == ErrorKind.NO_MATCH


@pytest.mark.unit
def test_unbound_plan_raises(registry: Registry):
    stored = ExecutionPlan.model_validate(_plan(registry).model_dump(mode="json"))
    with pytest.raises(ValueError, match="not bound"):
        WorkflowExecutor(EchoCollaborator()).execute(stored)
