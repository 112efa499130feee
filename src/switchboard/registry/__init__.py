"""Agent registry: single source of truth for agent, skill and workflow definitions."""

from switchboard.registry.holder import RegistryHolder
from switchboard.registry.loader import (
    Registry,
    collect_sources,
    parse_agent_document,
    parse_skill_document,
    parse_workflows,
)
from switchboard.registry.models import (
    Agent,
    AgentCategory,
    Capabilities,
    FocusArea,
    Skill,
    SkillRef,
    SkillTier,
    Step,
    Workflow,
)
from switchboard.registry.validation import (
    ValidationWarning,
    check_invariants,
    validate_registry,
)

__all__ = [
    "Agent",
    "AgentCategory",
    "Capabilities",
    "FocusArea",
    "Registry",
    "RegistryHolder",
    "Skill",
    "SkillRef",
    "SkillTier",
    "Step",
    "ValidationWarning",
    "Workflow",
    "check_invariants",
    "collect_sources",
    "parse_agent_document",
    "parse_skill_document",
    "parse_workflows",
    "validate_registry",
]
