"""EngineConfig dataclass and loader for matching and execution settings."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

from switchboard.registry.models import AgentCategory

DEFAULT_CATEGORY_PRIORITY: list[str] = [
    AgentCategory.IMPLEMENTATION,
    AgentCategory.OPERATIONS,
    AgentCategory.ARCHITECTURE,
    AgentCategory.COMMUNICATION,
    AgentCategory.QUALITY,
]

CONFIG_FILENAME = ".switchboard.json"


@dataclass
class EngineConfig:
    sources: list[str] = field(default_factory=lambda: ["agents"])
    min_score: float = 0.0
    trigger_weight: float = 1.0
    focus_weight: float = 0.25
    category_priority: list[str] = field(
        default_factory=lambda: [str(c) for c in DEFAULT_CATEGORY_PRIORITY]
    )
    step_timeout: float = 30.0
    max_handoff_depth: int = 3
    max_plans: int = 1000
    follow_handoffs: bool = True
    strict_capabilities: bool = False
    collaborator: str = "echo"  # "echo" | "http"
    collaborator_url: str | None = None


def load_engine_config(path: Path | None = None) -> EngineConfig:
    """Load engine config from .switchboard.json with env var overrides."""
    config = EngineConfig()
    if path and path.exists():
        try:
            text = path.read_text()
            if text.strip():
                data = json.loads(text)
                section = data.get("engine", {})
                if isinstance(section, dict):
                    _apply(config, section)
        except (json.JSONDecodeError, OSError):
            pass

    if env_sources := os.environ.get("SWITCHBOARD_SOURCES"):
        config.sources = [s for s in env_sources.split(os.pathsep) if s]
    if env_min := os.environ.get("SWITCHBOARD_MIN_SCORE"):
        config.min_score = float(env_min)
    if env_timeout := os.environ.get("SWITCHBOARD_STEP_TIMEOUT"):
        config.step_timeout = float(env_timeout)
    if env_depth := os.environ.get("SWITCHBOARD_MAX_HANDOFF_DEPTH"):
        config.max_handoff_depth = int(env_depth)
    if env_url := os.environ.get("SWITCHBOARD_COLLABORATOR_URL"):
        config.collaborator = "http"
        config.collaborator_url = env_url
    return config


def _apply(cfg: EngineConfig, data: dict[str, object]) -> None:
    sources = data.get("sources")
    if isinstance(sources, list) and all(isinstance(s, str) for s in sources):
        cfg.sources = list(sources)
    for key in ("min_score", "trigger_weight", "focus_weight", "step_timeout"):
        value = data.get(key)
        if isinstance(value, int | float) and not isinstance(value, bool):
            setattr(cfg, key, float(value))
    depth = data.get("max_handoff_depth")
    if isinstance(depth, int) and not isinstance(depth, bool) and depth >= 0:
        cfg.max_handoff_depth = depth
    max_plans = data.get("max_plans")
    if isinstance(max_plans, int) and not isinstance(max_plans, bool) and max_plans >= 1:
        cfg.max_plans = max_plans
    priority = data.get("category_priority")
    if isinstance(priority, list) and all(isinstance(p, str) for p in priority):
        cfg.category_priority = list(priority)
    for key in ("follow_handoffs", "strict_capabilities"):
        if key in data and isinstance(data[key], bool):
            setattr(cfg, key, data[key])
    if data.get("collaborator") in ("echo", "http"):
        cfg.collaborator = data["collaborator"]  # type: ignore[assignment]
    if isinstance(data.get("collaborator_url"), str):
        cfg.collaborator_url = data["collaborator_url"]  # type: ignore[assignment]
