"""DispatchEngine: registry snapshot + matcher + dispatcher + executor + enforcer.

The engine keeps an in-process table of plans it dispatched so a host can run
or cancel them by id. The table holds at most ``max_plans`` entries; the oldest
finished plans are evicted first and a running plan never is. Long-term storage
is the host's concern (see PlanStore).
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from collections.abc import Iterable
from pathlib import Path

from switchboard.engine.boundary import BoundaryEnforcer
from switchboard.engine.collaborators import StepCollaborator, build_collaborator
from switchboard.engine.config import EngineConfig
from switchboard.engine.dispatcher import Dispatcher
from switchboard.engine.executor import StepCallback, WorkflowExecutor
from switchboard.engine.matcher import Match, MatchStrategy, TriggerMatcher
from switchboard.engine.models import ErrorKind, ExecutionPlan, Outcome
from switchboard.errors import AmbiguousMatch, NoMatch, NotFound, PlanRunning
from switchboard.registry.holder import RegistryHolder
from switchboard.registry.loader import Registry

logger = logging.getLogger(__name__)


class DispatchEngine:
    def __init__(
        self,
        holder: RegistryHolder,
        config: EngineConfig | None = None,
        *,
        collaborator: StepCollaborator | None = None,
        matcher: MatchStrategy | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.holder = holder
        self.matcher = matcher or TriggerMatcher(self.config)
        self.dispatcher = Dispatcher(self.matcher)
        self.enforcer = BoundaryEnforcer(
            self.dispatcher,
            max_handoff_depth=self.config.max_handoff_depth,
            strict=self.config.strict_capabilities,
        )
        self.executor = WorkflowExecutor(
            collaborator or build_collaborator(self.config),
            self.enforcer,
            step_timeout=self.config.step_timeout,
        )
        self._plans: OrderedDict[str, ExecutionPlan] = OrderedDict()
        self._cancel: dict[str, threading.Event] = {}
        self._running: set[str] = set()
        self._lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        config: EngineConfig | None = None,
        *,
        base_dir: Path | None = None,
        collaborator: StepCollaborator | None = None,
    ) -> DispatchEngine:
        """Load the registry named by ``config.sources``. Raises RegistryError."""
        config = config or EngineConfig()
        base = base_dir or Path.cwd()
        sources = [Path(s) if Path(s).is_absolute() else base / s for s in config.sources]
        return cls(RegistryHolder.load(sources), config, collaborator=collaborator)

    @property
    def registry(self) -> Registry:
        return self.holder.current()

    # -- Matching / dispatch ------------------------------------------------

    def match(self, task: str) -> list[Match]:
        return self.matcher.match(task, self.holder.current())

    def dispatch(self, task: str) -> ExecutionPlan:
        """Dispatch against the current snapshot.

        Matching failures come back as a plan with no agent and a Rejected
        outcome instead of an exception.
        """
        registry = self.holder.current()
        try:
            plan = self.dispatcher.dispatch(task, registry)
        except NoMatch as e:
            plan = ExecutionPlan(task=task, registry_digest=registry.digest).bind(registry)
            plan.finish(Outcome.rejected(str(e), ErrorKind.NO_MATCH))
        except AmbiguousMatch as e:
            plan = ExecutionPlan(task=task, registry_digest=registry.digest).bind(registry)
            plan.finish(Outcome.rejected(str(e), ErrorKind.AMBIGUOUS_MATCH))
        self.register(plan)
        return plan

    # -- Plan table ---------------------------------------------------------

    def register(
        self, plan: ExecutionPlan, cancel: threading.Event | None = None
    ) -> ExecutionPlan:
        """Add a plan to the table. ``cancel`` shares an existing cancellation flag."""
        with self._lock:
            self._register_locked(plan, cancel)
            self._evict_locked()
        return plan

    def _register_locked(
        self, plan: ExecutionPlan, cancel: threading.Event | None = None
    ) -> threading.Event:
        self._plans[plan.id] = plan
        self._plans.move_to_end(plan.id)
        if cancel is not None:
            self._cancel[plan.id] = cancel
            return cancel
        return self._cancel.setdefault(plan.id, threading.Event())

    def _evict_locked(self) -> None:
        excess = len(self._plans) - self.config.max_plans
        if excess <= 0:
            return
        idle = [pid for pid in self._plans if pid not in self._running]
        # Oldest finished plans go first, then plans that were never run.
        idle.sort(key=lambda pid: not self._plans[pid].done)
        for plan_id in idle[:excess]:
            del self._plans[plan_id]
            self._cancel.pop(plan_id, None)
            logger.debug("Evicted plan %s from the plan table", plan_id)

    def get_plan(self, plan_id: str) -> ExecutionPlan:
        with self._lock:
            plan = self._plans.get(plan_id)
        if plan is None:
            raise NotFound(f"Plan '{plan_id}' not found")
        return plan

    def list_plans(self) -> list[ExecutionPlan]:
        with self._lock:
            return list(self._plans.values())

    def cancel(self, plan_id: str) -> bool:
        """Request cancellation; takes effect before the plan's next step."""
        with self._lock:
            event = self._cancel.get(plan_id)
        if event is None:
            return False
        event.set()
        logger.info("Cancellation requested for plan %s", plan_id)
        return True

    # -- Execution ----------------------------------------------------------

    def run(
        self,
        plan: ExecutionPlan | str,
        *,
        on_step: StepCallback | None = None,
        follow_handoffs: bool | None = None,
    ) -> ExecutionPlan:
        """Execute a plan and, optionally, the handoff plans it produces.

        Returns the plan passed in; ``plan.final()`` is the last plan of the
        handoff chain. Raises PlanRunning if another caller is executing the
        plan. Followed handoff plans share the root plan's cancellation flag,
        so cancelling either id stops the chain before its next step.
        """
        if isinstance(plan, str):
            plan = self.get_plan(plan)
        follow = self.config.follow_handoffs if follow_handoffs is None else follow_handoffs

        with self._lock:
            if plan.id in self._running:
                raise PlanRunning(f"Plan '{plan.id}' is already running")
            self._running.add(plan.id)
            cancel = self._register_locked(plan)
        claimed = [plan.id]

        try:
            current_plan = plan
            while True:
                self._ensure_bound(current_plan)
                self.executor.execute(current_plan, cancel=cancel, on_step=on_step)
                child = current_plan.handoff
                if child is None:
                    break
                if not follow or child.done:
                    self.register(child)
                    break
                with self._lock:
                    if child.id in self._running:
                        raise PlanRunning(f"Plan '{child.id}' is already running")
                    self._running.add(child.id)
                    claimed.append(child.id)
                    self._register_locked(child, cancel)
                current_plan = child
        finally:
            with self._lock:
                self._running.difference_update(claimed)
                self._evict_locked()
        return plan

    def _ensure_bound(self, plan: ExecutionPlan) -> None:
        """Bind a plan loaded from storage to the current snapshot.

        A plan whose digest no longer matches the live registry is rejected
        rather than run against definitions it was not dispatched with.
        """
        if plan.registry is not None or plan.done:
            return
        current = self.holder.current()
        if plan.registry_digest and plan.registry_digest != current.digest:
            logger.warning(
                "Plan %s was dispatched against registry %s, current is %s",
                plan.id,
                plan.registry_digest[:12],
                current.digest[:12],
            )
            plan.finish(
                Outcome.rejected("registry changed since dispatch", ErrorKind.REGISTRY_CHANGED)
            )
            return
        plan.bind(current)

    def submit(self, task: str, *, on_step: StepCallback | None = None) -> ExecutionPlan:
        """Dispatch and run in one call."""
        plan = self.dispatch(task)
        if plan.done:
            return plan
        return self.run(plan, on_step=on_step)

    # -- Registry -----------------------------------------------------------

    def reload(self, sources: Iterable[Path | str] | None = None) -> Registry:
        """Atomically swap in a freshly loaded registry. Raises RegistryError."""
        return self.holder.reload(sources)
