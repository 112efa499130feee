"""Trigger and focus-area scoring of agents against free-text tasks.

Scoring policy for one agent:

    score = trigger_weight * sum(specificity(t) for each matched trigger t)
          + focus_weight * |focus keywords present in the task|

Specificity is the number of non-wildcard tokens in the trigger phrase, so
"tests are failing" outweighs "pytest". Literal triggers match on word
boundaries of the normalized task. A lone ``*`` spans zero or more words, ``?``
and an in-word ``*`` stand for one or any number of characters. A ``?`` that
ends the whole trigger is a question mark, not a wildcard, so
"why is ci failing?" is a literal phrase.

Ranking is by score descending, then configured category priority, then agent
name. Only agents scoring above ``min_score`` are returned.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from functools import lru_cache
from typing import Protocol

from switchboard.engine.config import DEFAULT_CATEGORY_PRIORITY, EngineConfig
from switchboard.registry.loader import Registry
from switchboard.registry.models import Agent

STOPWORDS = frozenset(
    {
        "a", "an", "and", "are", "as", "at", "be", "by", "for", "from", "in",
        "into", "is", "it", "its", "of", "on", "or", "so", "that", "the",
        "this", "to", "when", "with", "also", "use", "using",
    }
)

_TASK_JUNK = re.compile(r"[^a-z0-9]+")
_TRIGGER_JUNK = re.compile(r"[^a-z0-9*?]+")
_QUESTION_MARK = re.compile(r"\?+\s*$")
_SCORE_PRECISION = 6


def normalize(text: str) -> str:
    """Lowercase and collapse punctuation to single spaces."""
    return _TASK_JUNK.sub(" ", text.lower()).strip()


def normalize_trigger(trigger: str) -> str:
    text = _QUESTION_MARK.sub("", trigger.strip().lower())
    return _TRIGGER_JUNK.sub(" ", text).strip()


def keywords(text: str) -> set[str]:
    return {t for t in normalize(text).split() if t not in STOPWORDS}


def is_wildcard(trigger: str) -> bool:
    normalized = normalize_trigger(trigger)
    return "*" in normalized or "?" in normalized


def specificity(trigger: str) -> int:
    tokens = [t for t in normalize_trigger(trigger).split() if t.strip("*?")]
    return max(len(tokens), 1)


def _token_pattern(token: str) -> str:
    return "".join(
        "[a-z0-9]*" if c == "*" else "[a-z0-9]" if c == "?" else re.escape(c) for c in token
    )


@lru_cache(maxsize=1024)
def _wildcard_regex(trigger: str) -> re.Pattern[str]:
    # Every literal token is followed by a space; the task gets a trailing one.
    parts: list[str] = []
    for token in normalize_trigger(trigger).split():
        if token == "*":
            parts.append("(?:[a-z0-9]+ )*")  # zero or more whole words
        else:
            parts.append(_token_pattern(token) + " ")
    return re.compile(r"(?<![a-z0-9])" + "".join(parts))


def trigger_matches(trigger: str, normalized_task: str) -> bool:
    if is_wildcard(trigger):
        return _wildcard_regex(trigger).search(normalized_task + " ") is not None
    phrase = normalize_trigger(trigger)
    return bool(phrase) and f" {phrase} " in f" {normalized_task} "


def focus_keywords(agent: Agent) -> set[str]:
    found: set[str] = set()
    for area in agent.focus_areas:
        found |= keywords(area.label)
        for kw in area.keywords:
            found |= keywords(kw)
    return found


@dataclass(frozen=True)
class Match:
    agent: Agent
    score: float
    triggers: tuple[str, ...] = ()
    focus_hits: tuple[str, ...] = ()

    @property
    def name(self) -> str:
        return self.agent.name


class MatchStrategy(Protocol):
    """Anything that ranks agents for a task.

    Implementations must be deterministic and order ties by category
    priority, then agent name.
    """

    def match(
        self,
        task: str,
        registry: Registry,
        *,
        candidates: Iterable[Agent] | None = None,
        include_all: bool = False,
    ) -> list[Match]: ...

    def category_rank(self, agent: Agent) -> int: ...


class TriggerMatcher:
    """Default MatchStrategy: trigger specificity plus focus-area overlap."""

    def __init__(self, config: EngineConfig | None = None) -> None:
        config = config or EngineConfig()
        self.min_score = config.min_score
        self.trigger_weight = config.trigger_weight
        self.focus_weight = config.focus_weight
        priority = config.category_priority or [str(c) for c in DEFAULT_CATEGORY_PRIORITY]
        self._rank = {str(c): i for i, c in enumerate(priority)}

    def category_rank(self, agent: Agent) -> int:
        return self._rank.get(str(agent.category), len(self._rank))

    def score(self, task: str, agent: Agent) -> Match:
        normalized = normalize(task)
        matched = tuple(t for t in agent.triggers if trigger_matches(t, normalized))
        hits = tuple(sorted(focus_keywords(agent) & set(normalized.split())))
        raw = (
            self.trigger_weight * sum(specificity(t) for t in matched)
            + self.focus_weight * len(hits)
        )
        return Match(
            agent=agent,
            score=round(raw, _SCORE_PRECISION),
            triggers=matched,
            focus_hits=hits,
        )

    def match(
        self,
        task: str,
        registry: Registry,
        *,
        candidates: Iterable[Agent] | None = None,
        include_all: bool = False,
    ) -> list[Match]:
        """Rank agents for a task. Never mutates the registry.

        ``candidates`` restricts scoring to a subset (used for handoffs).
        ``include_all`` keeps agents at or below the threshold.
        """
        pool = list(candidates) if candidates is not None else registry.all_agents()
        scored = [self.score(task, agent) for agent in pool]
        if not include_all:
            scored = [m for m in scored if m.score > self.min_score]
        return sorted(scored, key=self._sort_key)

    def _sort_key(self, m: Match) -> tuple[float, int, str]:
        return (-m.score, self.category_rank(m.agent), m.agent.name)
