"""Pydantic models and enums for execution plans."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, Field, PrivateAttr

from switchboard.registry.loader import Registry
from switchboard.registry.models import Agent, Workflow


class StepStatus(StrEnum):
    COMPLETED = "completed"
    FAILED = "failed"
    BLOCKED = "blocked"  # halted by the boundary enforcer, never performed


class OutcomeKind(StrEnum):
    COMPLETED = "completed"
    HANDED_OFF = "handed_off"
    REJECTED = "rejected"


class ErrorKind(StrEnum):
    NO_MATCH = "no_match"
    AMBIGUOUS_MATCH = "ambiguous_match"
    UNKNOWN_SKILL = "unknown_skill"
    STEP_FAILED = "step_failed"
    STEP_TIMEOUT = "step_timeout"
    OUT_OF_SCOPE = "out_of_scope"
    HANDOFF_EXHAUSTED = "handoff_exhausted"
    CANCELLED = "cancelled"
    REGISTRY_CHANGED = "registry_changed"


EXIT_CODES: dict[OutcomeKind, int] = {
    OutcomeKind.COMPLETED: 0,
    OutcomeKind.REJECTED: 1,
    OutcomeKind.HANDED_OFF: 2,
}


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def _new_plan_id() -> str:
    return uuid.uuid4().hex[:12]


class Outcome(BaseModel):
    kind: OutcomeKind
    target: str | None = None  # handoff target agent
    reason: str | None = None
    error: ErrorKind | None = None

    @classmethod
    def completed(cls) -> Outcome:
        return cls(kind=OutcomeKind.COMPLETED)

    @classmethod
    def handed_off(cls, target: str, reason: str | None = None) -> Outcome:
        return cls(kind=OutcomeKind.HANDED_OFF, target=target, reason=reason)

    @classmethod
    def rejected(cls, reason: str, error: ErrorKind | None = None) -> Outcome:
        return cls(kind=OutcomeKind.REJECTED, reason=reason, error=error)

    def __str__(self) -> str:
        if self.kind == OutcomeKind.HANDED_OFF:
            return f"HandedOff({self.target})"
        if self.kind == OutcomeKind.REJECTED:
            return f"Rejected({self.reason})"
        return "Completed"


class StepOutcome(BaseModel):
    """What a step collaborator reports back."""

    status: Literal["ok", "failed"] = "ok"
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.status == "ok"


class StepResult(BaseModel):
    index: int
    instruction: str
    action: str
    status: StepStatus
    output: str = ""
    reason: str | None = None
    skills_invoked: list[str] = Field(default_factory=list)
    started_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0


class ExecutionPlan(BaseModel):
    """Mutable record of one task's dispatch, execution and outcome."""

    id: str = Field(default_factory=_new_plan_id)
    task: str
    agent: Agent | None = None
    workflow: Workflow | None = None
    score: float = 0.0
    registry_digest: str = ""
    steps: list[StepResult] = Field(default_factory=list)
    outcome: Outcome | None = None
    handoff_chain: list[str] = Field(default_factory=list)
    handoff: ExecutionPlan | None = None
    created_at: str = Field(default_factory=_now_iso)
    finished_at: str | None = None

    _registry: Registry | None = PrivateAttr(default=None)

    @property
    def registry(self) -> Registry | None:
        """Registry snapshot the plan was dispatched against."""
        return self._registry

    def bind(self, registry: Registry) -> ExecutionPlan:
        self._registry = registry
        return self

    @property
    def done(self) -> bool:
        return self.outcome is not None

    def finish(self, outcome: Outcome) -> ExecutionPlan:
        self.outcome = outcome
        self.finished_at = _now_iso()
        return self

    def final(self) -> ExecutionPlan:
        """Last plan in the handoff chain."""
        plan = self
        while plan.handoff is not None:
            plan = plan.handoff
        return plan

    def chain(self) -> list[ExecutionPlan]:
        plans = [self]
        while plans[-1].handoff is not None:
            plans.append(plans[-1].handoff)  # type: ignore[arg-type]
        return plans

    def last_outcome(self) -> Outcome | None:
        """Outcome of the deepest plan in the chain that has one."""
        for plan in reversed(self.chain()):
            if plan.outcome is not None:
                return plan.outcome
        return None

    def exit_code(self) -> int:
        """0 completed, 1 rejected, 2 handed off (chain paused at a handoff)."""
        outcome = self.last_outcome()
        if outcome is None:
            return EXIT_CODES[OutcomeKind.REJECTED]
        return EXIT_CODES[outcome.kind]


ExecutionPlan.model_rebuild()
