"""Exception taxonomy shared by the registry and the engine."""

from __future__ import annotations


class SwitchboardError(Exception):
    """Base class for all switchboard errors."""


class RegistryError(SwitchboardError):
    """Malformed or contradictory registry definitions. Fatal at load."""

    def __init__(self, problems: list[str] | str) -> None:
        if isinstance(problems, str):
            problems = [problems]
        self.problems = problems
        super().__init__("; ".join(problems))


class NotFound(SwitchboardError, LookupError):
    """Raised when an agent or plan id is not present."""


class DispatchError(SwitchboardError):
    """Base class for matching failures surfaced to the caller."""


class NoMatch(DispatchError):
    def __init__(self, task: str) -> None:
        self.task = task
        super().__init__(f"No agent matched task: {task!r}")


class AmbiguousMatch(DispatchError):
    def __init__(self, candidates: list[str], score: float) -> None:
        self.candidates = candidates
        self.score = score
        super().__init__(
            f"Ambiguous match between {', '.join(candidates)} (score {score:g})"
        )


class UnknownSkill(SwitchboardError):
    def __init__(self, skill: str, step_index: int) -> None:
        self.skill = skill
        self.step_index = step_index
        super().__init__(f"Unknown skill '{skill}' referenced by step {step_index}")


class StepFailed(SwitchboardError):
    def __init__(self, step_index: int, reason: str) -> None:
        self.step_index = step_index
        self.reason = reason
        super().__init__(f"Step {step_index} failed: {reason}")


class HandoffExhausted(SwitchboardError):
    """No related agent can accept an out-of-scope step."""


class PlanRunning(SwitchboardError):
    """The plan is already being executed by another caller."""
