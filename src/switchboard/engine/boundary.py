"""Boundary enforcement: keep each agent inside its will / will_not set."""

from __future__ import annotations

import logging

from switchboard.engine.dispatcher import Dispatcher
from switchboard.engine.models import (
    ErrorKind,
    ExecutionPlan,
    Outcome,
    OutcomeKind,
    StepResult,
    StepStatus,
)
from switchboard.errors import AmbiguousMatch, HandoffExhausted, NoMatch
from switchboard.registry.models import Agent, Step

logger = logging.getLogger(__name__)

NO_HANDOFF_REASON = "out of scope, no handoff available"


class BoundaryEnforcer:
    """Blocks out-of-scope steps and hands the plan to a related agent.

    Handoff lookup is one hop over the agent's related_agents. Agents already
    present in the plan's handoff chain are never candidates, and a chain that
    has used ``max_handoff_depth`` handoffs is rejected instead.
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        *,
        max_handoff_depth: int = 3,
        strict: bool = False,
    ) -> None:
        self.dispatcher = dispatcher
        self.max_handoff_depth = max_handoff_depth
        self.strict = strict

    def violation(self, agent: Agent, action: str) -> str | None:
        if agent.will_not(action):
            return f"action '{action}' is outside the scope of '{agent.name}'"
        if self.strict and not agent.will(action):
            return f"action '{action}' is not declared by '{agent.name}'"
        return None

    def check_step(self, plan: ExecutionPlan, index: int, step: Step) -> StepResult | None:
        """Return a BLOCKED result when the step may not run for this agent."""
        if plan.agent is None:
            return None
        reason = self.violation(plan.agent, step.action)
        if reason is None:
            return None
        logger.warning("Plan %s step %d blocked: %s", plan.id, index, reason)
        return StepResult(
            index=index,
            instruction=step.instruction,
            action=step.action,
            status=StepStatus.BLOCKED,
            reason=reason,
        )

    def enforce(self, plan: ExecutionPlan) -> ExecutionPlan:
        """Audit a finished plan; a completed out-of-scope step forces a handoff."""
        if plan.agent is None or plan.outcome is None:
            return plan
        if plan.outcome.kind != OutcomeKind.COMPLETED:
            return plan
        for result in plan.steps:
            if result.status != StepStatus.COMPLETED:
                continue
            reason = self.violation(plan.agent, result.action)
            if reason is not None:
                logger.warning("Plan %s step %d recorded out of scope", plan.id, result.index)
                result.status = StepStatus.BLOCKED
                result.reason = reason
                return self.handoff(plan, result.action)
        return plan

    def handoff(self, plan: ExecutionPlan, action: str) -> ExecutionPlan:
        """Finish the plan as HandedOff to a related agent, or Rejected."""
        try:
            target = self._dispatch_handoff(plan, action)
        except HandoffExhausted as e:
            return plan.finish(Outcome.rejected(str(e), ErrorKind.HANDOFF_EXHAUSTED))
        except AmbiguousMatch as e:
            return plan.finish(
                Outcome.rejected(f"ambiguous handoff: {e}", ErrorKind.AMBIGUOUS_MATCH)
            )

        plan.handoff = target
        logger.info(
            "Plan %s handed off from '%s' to '%s' (plan %s)",
            plan.id,
            plan.agent.name if plan.agent else "?",
            target.agent.name if target.agent else "?",
            target.id,
        )
        return plan.finish(
            Outcome.handed_off(
                target.agent.name if target.agent else "",
                reason=f"action '{action}' handed to a related agent",
            )
        )

    def _dispatch_handoff(self, plan: ExecutionPlan, action: str) -> ExecutionPlan:
        agent = plan.agent
        registry = plan.registry
        if agent is None or registry is None:
            raise HandoffExhausted(NO_HANDOFF_REASON)

        handoffs_used = max(len(plan.handoff_chain) - 1, 0)
        if handoffs_used >= self.max_handoff_depth:
            logger.warning(
                "Plan %s: handoff depth %d reached at '%s'",
                plan.id,
                self.max_handoff_depth,
                agent.name,
            )
            raise HandoffExhausted(f"handoff depth {self.max_handoff_depth} exhausted")

        visited = set(plan.handoff_chain)
        candidates = [
            r for r in registry.related(agent) if r.name not in visited and r.will(action)
        ]
        if not candidates:
            logger.info(
                "Plan %s: no related agent of '%s' accepts '%s'", plan.id, agent.name, action
            )
            raise HandoffExhausted(NO_HANDOFF_REASON)

        try:
            return self.dispatcher.dispatch(
                plan.task,
                registry,
                candidates=candidates,
                include_all=True,
                chain=plan.handoff_chain,
            )
        except NoMatch as e:
            raise HandoffExhausted(str(e)) from e
