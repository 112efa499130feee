"""Dispatcher: pick the top-ranked agent and its workflow, emit a plan."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from switchboard.engine.matcher import MatchStrategy, TriggerMatcher, keywords
from switchboard.engine.models import ExecutionPlan
from switchboard.errors import AmbiguousMatch, NoMatch
from switchboard.registry.loader import Registry
from switchboard.registry.models import Agent, Workflow

logger = logging.getLogger(__name__)


def select_workflow(agent: Agent, task: str) -> Workflow:
    """First workflow whose "when to use" text shares a keyword with the task.

    Falls back to the agent's first declared workflow.
    """
    if len(agent.workflows) == 1:
        return agent.default_workflow
    task_keywords = keywords(task)
    for workflow in agent.workflows:
        if keywords(workflow.when_to_use) & task_keywords:
            return workflow
    return agent.default_workflow


class Dispatcher:
    def __init__(self, matcher: MatchStrategy | None = None) -> None:
        self.matcher = matcher or TriggerMatcher()

    def dispatch(
        self,
        task: str,
        registry: Registry,
        *,
        candidates: Iterable[Agent] | None = None,
        include_all: bool = False,
        chain: list[str] | None = None,
    ) -> ExecutionPlan:
        """Build an ExecutionPlan for the best agent.

        Raises NoMatch when nothing scores above threshold and AmbiguousMatch
        when the top two candidates tie on score and category.
        """
        ranked = self.matcher.match(
            task, registry, candidates=candidates, include_all=include_all
        )
        if not ranked:
            logger.info("No agent matched task %r", task)
            raise NoMatch(task)

        top = ranked[0]
        top_rank = self.matcher.category_rank(top.agent)
        tied = [
            m.agent.name
            for m in ranked
            if m.score == top.score and self.matcher.category_rank(m.agent) == top_rank
        ]
        if len(tied) > 1:
            logger.warning("Ambiguous match for %r: %s (score %s)", task, tied, top.score)
            raise AmbiguousMatch(tied, top.score)

        workflow = select_workflow(top.agent, task)
        plan = ExecutionPlan(
            task=task,
            agent=top.agent,
            workflow=workflow,
            score=top.score,
            registry_digest=registry.digest,
            handoff_chain=[*(chain or []), top.agent.name],
        ).bind(registry)
        logger.info(
            "Dispatched plan %s to %s/%s (score %s)",
            plan.id,
            top.agent.name,
            workflow.name,
            top.score,
        )
        return plan
