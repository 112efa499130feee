"""Tests for registry pydantic models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from switchboard.registry.models import (
    Agent,
    AgentCategory,
    Capabilities,
    SkillTier,
    Step,
    Workflow,
)


def _agent(**overrides) -> Agent:
    data = {
        "name": "debug-test-failure",
        "category": "quality",
        "triggers": ["pytest"],
        "workflows": [
            {"name": "first", "steps": [{"instruction": "Look", "action": "diagnose"}]},
            {"name": "second", "steps": [{"instruction": "Fix", "action": "fix_test"}]},
        ],
        "capabilities": {"will": ["diagnose"], "will_not": ["implement_feature"]},
    }
    data.update(overrides)
    return Agent.model_validate(data)


@pytest.mark.unit
def test_category_enum_values():
    assert {c.value for c in AgentCategory} == {
        "implementation",
        "operations",
        "architecture",
        "communication",
        "quality",
    }


@pytest.mark.unit
def test_unknown_category_rejected():
    with pytest.raises(ValidationError):
        _agent(category="marketing")


@pytest.mark.unit
def test_agent_is_frozen():
    agent = _agent()
    with pytest.raises(ValidationError):
        agent.name = "other"  # type: ignore[misc]


@pytest.mark.unit
def test_default_workflow_is_first_declared():
    assert _agent().default_workflow.name == "first"


@pytest.mark.unit
def test_will_and_will_not():
    agent = _agent()
    assert agent.will("diagnose")
    assert not agent.will("fix_test")
    assert agent.will_not("implement_feature")
    assert not agent.will_not("diagnose")


@pytest.mark.unit
def test_focus_areas_accept_plain_strings():
    agent = _agent(focus_areas=["flaky suites", {"label": "stack traces", "keywords": ["frame"]}])
    assert agent.focus_areas[0].label == "flaky suites"
    assert agent.focus_areas[1].keywords == ("frame",)


@pytest.mark.unit
def test_workflow_skill_table_coerces_strings():
    wf = Workflow(
        name="w",
        steps=(Step(instruction="x", action="diagnose"),),
        skills=["run-tests", {"skill": "read-traceback", "tier": "secondary"}],
    )
    assert wf.skill_tier("run-tests") == SkillTier.PRIMARY
    assert wf.skill_tier("read-traceback") == SkillTier.SECONDARY
    assert wf.skill_tier("write-code") is None


@pytest.mark.unit
def test_capabilities_serialize_sorted():
    caps = Capabilities(will=frozenset({"b", "a", "c"}), will_not=frozenset())
    assert caps.model_dump(mode="json") == {"will": ["a", "b", "c"], "will_not": []}


@pytest.mark.unit
def test_step_defaults():
    step = Step(instruction="Reproduce", action="diagnose")
    assert step.skills == ()
    assert step.expected_output is None
