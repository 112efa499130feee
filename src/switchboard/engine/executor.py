"""Workflow executor: run a plan's steps in order, fail fast."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

from switchboard.engine.boundary import BoundaryEnforcer
from switchboard.engine.collaborators import StepCollaborator
from switchboard.engine.models import (
    ErrorKind,
    ExecutionPlan,
    Outcome,
    StepOutcome,
    StepResult,
    StepStatus,
)
from switchboard.errors import StepFailed, UnknownSkill
from switchboard.registry.loader import Registry
from switchboard.registry.models import Skill, Step

logger = logging.getLogger(__name__)

StepCallback = Callable[[ExecutionPlan, StepResult], None]


def resolve_skills(registry: Registry, step: Step, index: int) -> list[Skill]:
    skills: list[Skill] = []
    for name in step.skills:
        skill = registry.get_skill(name)
        if skill is None:
            raise UnknownSkill(name, index)
        skills.append(skill)
    return skills


class WorkflowExecutor:
    """Runs the steps of one plan sequentially.

    Each collaborator call runs on a daemon thread and gets ``step_timeout``
    seconds; a timeout or an exception is a FAILED step and ends the workflow.
    A timed-out call is abandoned and never keeps the process alive.
    Cancellation is checked before every step, never during one.
    """

    def __init__(
        self,
        collaborator: StepCollaborator,
        enforcer: BoundaryEnforcer | None = None,
        *,
        step_timeout: float = 30.0,
    ) -> None:
        self.collaborator = collaborator
        self.enforcer = enforcer
        self.step_timeout = step_timeout

    def execute(
        self,
        plan: ExecutionPlan,
        *,
        cancel: threading.Event | None = None,
        on_step: StepCallback | None = None,
    ) -> ExecutionPlan:
        if plan.done:
            return plan
        if plan.agent is None or plan.workflow is None:
            return plan.finish(Outcome.rejected("plan has no agent", ErrorKind.NO_MATCH))
        registry = plan.registry
        if registry is None:
            raise ValueError(f"Plan {plan.id} is not bound to a registry snapshot")

        def record(result: StepResult) -> None:
            plan.steps.append(result)
            if on_step is not None:
                on_step(plan, result)

        for index, step in enumerate(plan.workflow.steps, start=1):
            if cancel is not None and cancel.is_set():
                logger.info("Plan %s cancelled before step %d", plan.id, index)
                return plan.finish(
                    Outcome.rejected(f"cancelled before step {index}", ErrorKind.CANCELLED)
                )

            if self.enforcer is not None:
                blocked = self.enforcer.check_step(plan, index, step)
                if blocked is not None:
                    record(blocked)
                    return self.enforcer.handoff(plan, step.action)

            try:
                skills = resolve_skills(registry, step, index)
            except UnknownSkill as e:
                logger.error("Plan %s: %s", plan.id, e)
                record(
                    StepResult(
                        index=index,
                        instruction=step.instruction,
                        action=step.action,
                        status=StepStatus.FAILED,
                        reason=str(e),
                    )
                )
                return plan.finish(Outcome.rejected(str(e), ErrorKind.UNKNOWN_SKILL))

            result, timed_out = self._perform(plan, index, step, skills)
            record(result)
            if result.status == StepStatus.FAILED:
                failure = StepFailed(index, result.reason or "unknown error")
                logger.warning("Plan %s: %s", plan.id, failure)
                kind = ErrorKind.STEP_TIMEOUT if timed_out else ErrorKind.STEP_FAILED
                return plan.finish(Outcome.rejected(str(failure), kind))

        plan.finish(Outcome.completed())
        logger.info("Plan %s completed (%d steps)", plan.id, len(plan.steps))
        if self.enforcer is not None:
            self.enforcer.enforce(plan)
        return plan

    def _perform(
        self,
        plan: ExecutionPlan,
        index: int,
        step: Step,
        skills: list[Skill],
    ) -> tuple[StepResult, bool]:
        result = StepResult(
            index=index,
            instruction=step.instruction,
            action=step.action,
            status=StepStatus.COMPLETED,
            skills_invoked=[s.name for s in skills],
        )
        started = time.monotonic()
        timed_out = False
        try:
            outcome = self._call(plan, index, step, skills)
        except TimeoutError:
            timed_out = True
            result.status = StepStatus.FAILED
            result.reason = f"timed out after {self.step_timeout:g}s"
        except Exception as e:
            result.status = StepStatus.FAILED
            result.reason = f"{type(e).__name__}: {e}"
        else:
            result.output = outcome.output
            if not outcome.ok:
                result.status = StepStatus.FAILED
                result.reason = outcome.output or "collaborator reported failure"
        result.duration_ms = int((time.monotonic() - started) * 1000)
        return result, timed_out

    def _call(
        self, plan: ExecutionPlan, index: int, step: Step, skills: list[Skill]
    ) -> StepOutcome:
        """Run the collaborator on a daemon thread. Raises TimeoutError."""
        prior = list(plan.steps)
        outcomes: list[StepOutcome] = []
        errors: list[Exception] = []

        def target() -> None:
            try:
                outcomes.append(self.collaborator.perform_step(step.instruction, skills, prior))
            except Exception as e:
                errors.append(e)

        worker = threading.Thread(target=target, name=f"plan-{plan.id}-step-{index}", daemon=True)
        worker.start()
        worker.join(self.step_timeout)
        if worker.is_alive():
            logger.warning("Plan %s step %d abandoned after %gs", plan.id, index, self.step_timeout)
            raise TimeoutError
        if errors:
            raise errors[0]
        if not outcomes:
            raise RuntimeError("collaborator returned no outcome")
        return outcomes[0]
