"""Pydantic models for the agent registry."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


class AgentCategory(StrEnum):
    IMPLEMENTATION = "implementation"
    OPERATIONS = "operations"
    ARCHITECTURE = "architecture"
    COMMUNICATION = "communication"
    QUALITY = "quality"


class SkillTier(StrEnum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


class Skill(BaseModel):
    """Shared capability reference. Many agents may point at the same skill."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    path: str = ""


class SkillRef(BaseModel):
    """One row of a workflow's skill relation table."""

    model_config = ConfigDict(frozen=True)

    skill: str
    tier: SkillTier = SkillTier.PRIMARY


class Step(BaseModel):
    model_config = ConfigDict(frozen=True)

    instruction: str
    action: str  # action tag checked against the agent's will / will_not
    skills: tuple[str, ...] = ()
    expected_output: str | None = None


class Workflow(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    when_to_use: str = ""
    steps: tuple[Step, ...] = ()
    skills: tuple[SkillRef, ...] = ()

    @field_validator("skills", mode="before")
    @classmethod
    def _coerce_skill_refs(cls, value: object) -> object:
        if isinstance(value, list | tuple):
            return tuple({"skill": v} if isinstance(v, str) else v for v in value)
        return value

    def skill_tier(self, name: str) -> SkillTier | None:
        for ref in self.skills:
            if ref.skill == name:
                return ref.tier
        return None


class FocusArea(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    keywords: tuple[str, ...] = ()


class Capabilities(BaseModel):
    model_config = ConfigDict(frozen=True)

    will: frozenset[str] = Field(default_factory=frozenset)
    will_not: frozenset[str] = Field(default_factory=frozenset)

    @field_serializer("will", "will_not")
    def _sorted(self, value: frozenset[str]) -> list[str]:
        return sorted(value)


class Agent(BaseModel):
    """A named role: triggers, focus areas, workflows and scope boundaries."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    category: AgentCategory
    triggers: tuple[str, ...] = ()
    focus_areas: tuple[FocusArea, ...] = ()
    workflows: tuple[Workflow, ...] = ()
    capabilities: Capabilities = Field(default_factory=Capabilities)
    related_agents: tuple[str, ...] = ()
    path: str = ""

    @field_validator("focus_areas", mode="before")
    @classmethod
    def _coerce_focus_areas(cls, value: object) -> object:
        if isinstance(value, list | tuple):
            return tuple({"label": v} if isinstance(v, str) else v for v in value)
        return value

    @property
    def default_workflow(self) -> Workflow:
        return self.workflows[0]

    def will(self, action: str) -> bool:
        return action in self.capabilities.will

    def will_not(self, action: str) -> bool:
        return action in self.capabilities.will_not
