"""Matching, dispatch, execution and boundary enforcement."""

from switchboard.engine.boundary import NO_HANDOFF_REASON, BoundaryEnforcer
from switchboard.engine.collaborators import (
    EchoCollaborator,
    HttpCollaborator,
    StepCollaborator,
    build_collaborator,
)
from switchboard.engine.config import EngineConfig, load_engine_config
from switchboard.engine.dispatcher import Dispatcher, select_workflow
from switchboard.engine.executor import WorkflowExecutor
from switchboard.engine.matcher import Match, MatchStrategy, TriggerMatcher
from switchboard.engine.models import (
    ErrorKind,
    ExecutionPlan,
    Outcome,
    OutcomeKind,
    StepOutcome,
    StepResult,
    StepStatus,
)
from switchboard.engine.plan_store import PlanStore
from switchboard.engine.service import DispatchEngine

__all__ = [
    "NO_HANDOFF_REASON",
    "BoundaryEnforcer",
    "DispatchEngine",
    "Dispatcher",
    "EchoCollaborator",
    "EngineConfig",
    "ErrorKind",
    "ExecutionPlan",
    "HttpCollaborator",
    "Match",
    "MatchStrategy",
    "Outcome",
    "OutcomeKind",
    "PlanStore",
    "StepCollaborator",
    "StepOutcome",
    "StepResult",
    "StepStatus",
    "TriggerMatcher",
    "WorkflowExecutor",
    "build_collaborator",
    "load_engine_config",
    "select_workflow",
]
