"""Shared fixtures for switchboard tests."""

from __future__ import annotations

import copy
import json
from pathlib import Path

import pytest

from switchboard.registry.loader import Registry, parse_registry_data

SKILLS = [
    {"name": "run-tests", "description": "Run the project test suite"},
    {"name": "read-traceback", "description": "Locate the failing frame"},
    {"name": "write-code", "description": "Edit source files"},
]

DEBUG_AGENT = {
    "name": "debug-test-failure",
    "description": "Diagnoses and fixes failing tests",
    "category": "quality",
    "triggers": ["tests are failing", "pytest", "fix * test"],
    "focus_areas": ["flaky suites", "stack traces"],
    "workflows": [
        {
            "name": "diagnose-and-fix",
            "when_to_use": "a test suite is red",
            "skills": ["run-tests", {"skill": "read-traceback", "tier": "secondary"}],
            "steps": [
                {
                    "instruction": "Reproduce the failure",
                    "action": "diagnose",
                    "skills": ["run-tests"],
                },
                {
                    "instruction": "Read the traceback",
                    "action": "diagnose",
                    "skills": ["read-traceback"],
                },
                {"instruction": "Fix the test", "action": "fix_test", "skills": ["run-tests"]},
            ],
        }
    ],
    "capabilities": {"will": ["diagnose", "fix_test"], "will_not": ["implement_feature"]},
    "related_agents": ["implement-feature"],
}

IMPLEMENT_AGENT = {
    "name": "implement-feature",
    "description": "Builds new features",
    "category": "implementation",
    "triggers": ["implement feature", "new endpoint", "new * endpoint"],
    "focus_areas": ["api design"],
    "workflows": [
        {
            "name": "build-feature",
            "when_to_use": "new functionality is requested",
            "skills": ["write-code", "run-tests"],
            "steps": [
                {
                    "instruction": "Write the code",
                    "action": "implement_feature",
                    "skills": ["write-code"],
                },
                {
                    "instruction": "Run the suite",
                    "action": "implement_feature",
                    "skills": ["run-tests"],
                },
            ],
        }
    ],
    "capabilities": {"will": ["implement_feature"], "will_not": []},
    "related_agents": ["debug-test-failure"],
}


def make_registry_data(
    *,
    debug_steps: list[dict] | None = None,
    debug_category: str = "quality",
    implement_category: str = "implementation",
) -> dict:
    """Two-agent registry with a related-agent cycle between them."""
    debug = copy.deepcopy(DEBUG_AGENT)
    implement = copy.deepcopy(IMPLEMENT_AGENT)
    debug["category"] = debug_category
    implement["category"] = implement_category
    if debug_steps is not None:
        debug["workflows"][0]["steps"] = debug_steps
    return {"skills": copy.deepcopy(SKILLS), "agents": [debug, implement]}


def build_registry(data: dict) -> Registry:
    return Registry(*parse_registry_data(data, origin="<test>"))


# Debug workflow with an out-of-scope step authored into it.
OUT_OF_SCOPE_STEPS = [
    {"instruction": "Reproduce the failure", "action": "diagnose", "skills": ["run-tests"]},
    {
        "instruction": "Add the missing endpoint",
        "action": "implement_feature",
        "skills": ["write-code"],
    },
    {"instruction": "Fix the test", "action": "fix_test", "skills": ["run-tests"]},
]


@pytest.fixture
def registry_data() -> dict:
    return make_registry_data()


@pytest.fixture
def registry(registry_data: dict) -> Registry:
    return build_registry(registry_data)


@pytest.fixture
def handoff_registry() -> Registry:
    return build_registry(make_registry_data(debug_steps=OUT_OF_SCOPE_STEPS))


@pytest.fixture
def registry_file(tmp_path: Path, registry_data: dict) -> Path:
    path = tmp_path / "registry.json"
    path.write_text(json.dumps(registry_data))
    return path


DEBUG_DOC = """\
---
name: debug-test-failure
description: Diagnoses and fixes failing tests
category: quality
triggers: tests are failing, pytest, fix * test
focus: flaky suites, stack traces
will: diagnose, fix_test
will_not: implement_feature
related: implement-feature
---

# Debug test failure

Find out why the suite is red and make it green again.

## Workflow: diagnose-and-fix
When to use: a test suite is red
Skills: run-tests (primary), read-traceback (secondary)

1. [diagnose] Reproduce the failure {skills: run-tests} -> failing test id
2. [diagnose] Read the traceback {skills: read-traceback}
3. [fix_test] Fix the test {skills: run-tests} -> green suite

## Workflow: flaky-triage
When to use: intermittent flaky failures
Skills: run-tests

1. [diagnose] Rerun the suite repeatedly {skills: run-tests}

## Notes

Anything below here is not part of a workflow.
"""

IMPLEMENT_DOC = """\
---
name: implement-feature
description: Builds new features
category: implementation
triggers: implement feature, new endpoint, new * endpoint
focus: api design
will: implement_feature
related: debug-test-failure
---

## Workflow: build-feature
When to use: new functionality is requested
Skills: write-code, run-tests

1. [implement_feature] Write the code {skills: write-code}
2. [implement_feature] Run the suite {skills: run-tests}
"""


def _skill_doc(name: str, description: str) -> str:
    return f"---\nname: {name}\ndescription: {description}\n---\n\n# {name}\n"


@pytest.fixture
def agents_dir(tmp_path: Path) -> Path:
    """Markdown registry: two agent documents plus SKILL.md files."""
    root = tmp_path / "agents"
    root.mkdir()
    (root / "debug-test-failure.md").write_text(DEBUG_DOC)
    (root / "implement-feature.md").write_text(IMPLEMENT_DOC)
    (root / "README.md").write_text("# Agents\n\nNot an agent document.\n")
    for skill in SKILLS:
        skill_dir = root / "skills" / skill["name"]
        skill_dir.mkdir(parents=True)
        (skill_dir / "SKILL.md").write_text(_skill_doc(skill["name"], skill["description"]))
    return root
