"""Registry: load and query agent, skill and workflow definitions."""

from __future__ import annotations

import hashlib
import json
import logging
import re
from collections.abc import Iterable
from pathlib import Path
from types import MappingProxyType

from pydantic import ValidationError

from switchboard.errors import NotFound, RegistryError
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
from switchboard.registry.validation import check_invariants

logger = logging.getLogger(__name__)

_SKILL_FILE = "SKILL.md"

_WORKFLOW_HEADING = re.compile(r"^##\s+Workflow:\s*(?P<name>.+?)\s*$", re.IGNORECASE)
_WHEN_LINE = re.compile(r"^when to use:\s*(?P<text>.*)$", re.IGNORECASE)
_SKILLS_LINE = re.compile(r"^skills:\s*(?P<text>.*)$", re.IGNORECASE)
_STEP_LINE = re.compile(r"^\s*\d+[.)]\s+(?:\[(?P<action>[^\]]*)\]\s*)?(?P<rest>.+)$")
_STEP_SKILLS = re.compile(r"\{\s*skills:\s*(?P<skills>[^}]*)\}", re.IGNORECASE)
_SKILL_ITEM = re.compile(r"^(?P<name>[^()]+?)\s*(?:\((?P<tier>primary|secondary)\))?$")


def _parse_csv(value: str) -> list[str]:
    """Parse comma-separated string into list, filtering empty entries."""
    if not value:
        return []
    return [v.strip() for v in value.split(",") if v.strip()]


def split_frontmatter(text: str) -> tuple[dict[str, str], str] | None:
    """Split simple ``key: value`` front-matter from the document body.

    Returns None when the text has no front-matter block.
    """
    lines = text.split("\n")
    if not lines or lines[0].strip() != "---":
        return None

    frontmatter: dict[str, str] = {}
    for i, line in enumerate(lines[1:], start=1):
        if line.strip() == "---":
            return frontmatter, "\n".join(lines[i + 1 :])
        if ":" in line:
            key, _, value = line.partition(":")
            frontmatter[key.strip()] = value.strip().strip('"').strip("'")
    return None


def _parse_step(line: str) -> Step | None:
    m = _STEP_LINE.match(line)
    if m is None:
        return None
    rest = m.group("rest")
    skills: list[str] = []
    sm = _STEP_SKILLS.search(rest)
    if sm:
        skills = _parse_csv(sm.group("skills"))
        rest = rest[: sm.start()] + rest[sm.end() :]
    expected: str | None = None
    if " -> " in rest:
        rest, _, expected = rest.rpartition(" -> ")
        expected = expected.strip() or None
    return Step(
        instruction=" ".join(rest.split()),
        action=(m.group("action") or "").strip(),
        skills=tuple(skills),
        expected_output=expected,
    )


def _parse_skill_table(text: str) -> list[SkillRef]:
    refs: list[SkillRef] = []
    for item in _parse_csv(text):
        m = _SKILL_ITEM.match(item)
        if m is None:
            continue
        tier = SkillTier(m.group("tier").lower()) if m.group("tier") else SkillTier.PRIMARY
        refs.append(SkillRef(skill=m.group("name").strip(), tier=tier))
    return refs


def parse_workflows(body: str) -> list[Workflow]:
    """Parse ``## Workflow:`` sections from an agent document body."""
    workflows: list[Workflow] = []
    current: dict | None = None

    def flush() -> None:
        if current is not None:
            workflows.append(
                Workflow(
                    name=current["name"],
                    when_to_use=current["when"],
                    steps=tuple(current["steps"]),
                    skills=tuple(current["skills"]),
                )
            )

    for raw in body.splitlines():
        line = raw.strip()
        heading = _WORKFLOW_HEADING.match(line)
        if heading:
            flush()
            current = {"name": heading.group("name"), "when": "", "steps": [], "skills": []}
            continue
        if current is None:
            continue
        if line.startswith("## "):
            flush()
            current = None
            continue
        if m := _WHEN_LINE.match(line):
            current["when"] = m.group("text").strip()
        elif m := _SKILLS_LINE.match(line):
            current["skills"] = _parse_skill_table(m.group("text"))
        elif step := _parse_step(line):
            current["steps"].append(step)

    flush()
    return workflows


def parse_agent_document(md_path: Path) -> Agent:
    """Parse an agent persona document (front-matter plus workflow sections)."""
    try:
        text = md_path.read_text(encoding="utf-8")
    except OSError as e:
        raise RegistryError(f"{md_path}: cannot read agent document: {e}") from e

    parsed = split_frontmatter(text)
    if parsed is None:
        raise RegistryError(f"{md_path}: missing front-matter block")
    fm, body = parsed

    name = fm.get("name") or md_path.stem
    category_raw = fm.get("category", "").lower()
    if not category_raw:
        raise RegistryError(f"{md_path}: missing required front-matter field 'category'")
    try:
        category = AgentCategory(category_raw)
    except ValueError:
        raise RegistryError(
            f"{md_path}: unknown category '{category_raw}' "
            f"(expected one of {', '.join(c.value for c in AgentCategory)})"
        ) from None

    return Agent(
        name=name,
        description=fm.get("description", ""),
        category=category,
        triggers=tuple(_parse_csv(fm.get("triggers", ""))),
        focus_areas=tuple(FocusArea(label=label) for label in _parse_csv(fm.get("focus", ""))),
        workflows=tuple(parse_workflows(body)),
        capabilities=Capabilities(
            will=frozenset(_parse_csv(fm.get("will", ""))),
            will_not=frozenset(_parse_csv(fm.get("will_not", ""))),
        ),
        related_agents=tuple(_parse_csv(fm.get("related", ""))),
        path=str(md_path),
    )


def parse_skill_document(path: Path) -> Skill:
    """Parse a SKILL.md file. Name falls back to the containing directory."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise RegistryError(f"{path}: cannot read skill document: {e}") from e
    parsed = split_frontmatter(text)
    if parsed is None:
        raise RegistryError(f"{path}: missing front-matter block")
    fm, _ = parsed
    return Skill(
        name=fm.get("name") or path.parent.name,
        description=fm.get("description", ""),
        path=str(path),
    )


def _parse_json_source(path: Path) -> tuple[list[Agent], list[Skill]]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise RegistryError(f"{path}: cannot read registry file: {e}") from e
    return parse_registry_data(data, origin=str(path))


def parse_registry_data(data: object, origin: str) -> tuple[list[Agent], list[Skill]]:
    """Validate an in-memory registry document with "agents" and "skills" lists."""
    if isinstance(data, list):
        data = {"agents": data}
    if not isinstance(data, dict):
        raise RegistryError(f"{origin}: expected an object with 'agents' and 'skills'")
    try:
        skills = [Skill.model_validate(s) for s in data.get("skills", [])]
        agents = [
            Agent.model_validate({**a, "path": a.get("path") or origin})
            for a in data.get("agents", [])
        ]
    except ValidationError as e:
        problems = [
            f"{origin}: {'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in e.errors()
        ]
        raise RegistryError(problems) from e
    except (TypeError, AttributeError) as e:
        raise RegistryError(f"{origin}: malformed registry data: {e}") from e
    return agents, skills


def _scan_directory(root: Path) -> tuple[list[Agent], list[Skill]]:
    agents: list[Agent] = []
    skills: list[Skill] = []
    for path in sorted(p for p in root.rglob("*") if p.is_file()):
        if path.name == _SKILL_FILE:
            skills.append(parse_skill_document(path))
        elif path.suffix == ".json":
            found_agents, found_skills = _parse_json_source(path)
            agents.extend(found_agents)
            skills.extend(found_skills)
        elif path.suffix == ".md":
            if not path.read_text(encoding="utf-8").startswith("---"):
                logger.debug("Skipping %s: no front-matter", path)
                continue
            agents.append(parse_agent_document(path))
    return agents, skills


def collect_sources(sources: Iterable[Path | str]) -> tuple[list[Agent], list[Skill]]:
    """Parse every source in order. Raises RegistryError on the first bad file."""
    agents: list[Agent] = []
    skills: list[Skill] = []
    for source in sources:
        path = Path(source)
        if path.is_dir():
            found_agents, found_skills = _scan_directory(path)
        elif not path.exists():
            raise RegistryError(f"Registry source not found: {path}")
        elif path.suffix == ".json":
            found_agents, found_skills = _parse_json_source(path)
        elif path.name == _SKILL_FILE:
            found_agents, found_skills = [], [parse_skill_document(path)]
        else:
            found_agents, found_skills = [parse_agent_document(path)], []
        agents.extend(found_agents)
        skills.extend(found_skills)
    return agents, skills


def _digest(agents: list[Agent], skills: list[Skill]) -> str:
    payload = json.dumps(
        {
            "agents": [a.model_dump(mode="json", exclude={"path"}) for a in agents],
            "skills": [s.model_dump(mode="json", exclude={"path"}) for s in skills],
        },
        sort_keys=True,
    )
    return hashlib.sha256(payload.encode()).hexdigest()


class Registry:
    """Immutable catalog of agents and skills, loaded once and shared read-only."""

    def __init__(self, agents: list[Agent], skills: list[Skill]) -> None:
        problems = check_invariants(agents, skills)
        if problems:
            for problem in problems:
                logger.error("Registry invariant violated: %s", problem)
            raise RegistryError(problems)
        self._agents: tuple[Agent, ...] = tuple(agents)
        self._by_name = MappingProxyType({a.name: a for a in agents})
        self._skills = MappingProxyType({s.name: s for s in skills})
        self._digest = _digest(agents, skills)

    @classmethod
    def load(cls, sources: Iterable[Path | str]) -> Registry:
        """Load from files and directories, in the order given."""
        sources = list(sources)
        try:
            agents, skills = collect_sources(sources)
        except RegistryError as e:
            logger.error("Registry load failed: %s", e)
            raise
        registry = cls(agents, skills)
        logger.info(
            "Loaded registry %s: %d agents, %d skills from %d sources",
            registry.digest[:12],
            len(agents),
            len(skills),
            len(sources),
        )
        return registry

    @property
    def digest(self) -> str:
        return self._digest

    def lookup(self, name: str) -> Agent:
        agent = self._by_name.get(name)
        if agent is None:
            raise NotFound(f"Agent '{name}' not found in registry")
        return agent

    def all_agents(self) -> list[Agent]:
        return list(self._agents)

    def related(self, agent: Agent) -> list[Agent]:
        """One-hop related agents, in declaration order."""
        return [self._by_name[n] for n in agent.related_agents if n in self._by_name]

    def get_skill(self, name: str) -> Skill | None:
        return self._skills.get(name)

    def all_skills(self) -> list[Skill]:
        return list(self._skills.values())

    def __len__(self) -> int:
        return len(self._agents)
