"""Load-time invariants and non-fatal registry checks."""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING

from switchboard.registry.models import Agent, Skill

if TYPE_CHECKING:
    from switchboard.registry.loader import Registry


class ValidationWarning:
    """A non-fatal validation finding."""

    def __init__(self, message: str) -> None:
        self.message = message

    def __repr__(self) -> str:
        return f"ValidationWarning({self.message!r})"


def check_invariants(agents: list[Agent], skills: list[Skill]) -> list[str]:
    """Return every fatal problem found in a candidate registry.

    An empty list means the definitions may be loaded.
    """
    problems: list[str] = []
    names = {a.name for a in agents}

    for name, count in Counter(a.name for a in agents).items():
        if count > 1:
            problems.append(f"Duplicate agent identifier '{name}' ({count} definitions)")
    for name, count in Counter(s.name for s in skills).items():
        if count > 1:
            problems.append(f"Duplicate skill identifier '{name}' ({count} definitions)")

    for agent in agents:
        label = f"Agent '{agent.name}'"
        if not agent.name.strip():
            problems.append(f"Agent defined in {agent.path or '<unknown>'} has an empty name")
        if not agent.triggers:
            problems.append(f"{label} declares no triggers")
        for i, trigger in enumerate(agent.triggers):
            if not trigger.strip().strip("*?").strip():
                problems.append(f"{label} has an empty trigger pattern at position {i}")
        if not agent.workflows:
            problems.append(f"{label} declares no workflows")
        for workflow in agent.workflows:
            if not workflow.steps:
                problems.append(f"{label} workflow '{workflow.name}' has zero steps")
            for n, step in enumerate(workflow.steps, start=1):
                if not step.action.strip():
                    problems.append(
                        f"{label} workflow '{workflow.name}' step {n} has no action tag"
                    )
        overlap = agent.capabilities.will & agent.capabilities.will_not
        if overlap:
            problems.append(
                f"{label} lists {sorted(overlap)} in both will and will_not"
            )
        for related in agent.related_agents:
            if related not in names:
                problems.append(f"{label} references unknown related agent '{related}'")

    return problems


def validate_registry(registry: Registry) -> list[ValidationWarning]:
    """Flag authoring smells that do not prevent loading."""
    warnings: list[ValidationWarning] = []

    for agent in registry.all_agents():
        declared = agent.capabilities.will | agent.capabilities.will_not
        for workflow in agent.workflows:
            table = {ref.skill for ref in workflow.skills}
            for n, step in enumerate(workflow.steps, start=1):
                where = f"Agent '{agent.name}' workflow '{workflow.name}' step {n}"
                if declared and step.action not in declared:
                    warnings.append(
                        ValidationWarning(
                            f"{where}: action '{step.action}' is in neither will nor will_not"
                        )
                    )
                for skill in step.skills:
                    if registry.get_skill(skill) is None:
                        warnings.append(
                            ValidationWarning(f"{where}: skill '{skill}' is not defined")
                        )
                    elif table and skill not in table:
                        warnings.append(
                            ValidationWarning(
                                f"{where}: skill '{skill}' missing from the workflow skill table"
                            )
                        )
            for ref in workflow.skills:
                if registry.get_skill(ref.skill) is None:
                    warnings.append(
                        ValidationWarning(
                            f"Agent '{agent.name}' workflow '{workflow.name}' lists "
                            f"undefined skill '{ref.skill}'"
                        )
                    )

    return warnings
