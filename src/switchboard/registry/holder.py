"""Process-wide registry reference with atomic reload."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from pathlib import Path

from switchboard.registry.loader import Registry

logger = logging.getLogger(__name__)


class RegistryHolder:
    """Holds the current Registry snapshot.

    Readers call current() and keep the returned object for as long as they
    need a consistent view. reload() builds the replacement completely before
    swapping the reference, so a failed reload leaves the old snapshot active.
    """

    def __init__(self, registry: Registry, sources: list[Path | str] | None = None) -> None:
        self._registry = registry
        self._sources = list(sources or [])
        self._reload_lock = threading.Lock()
        self._generation = 1

    @classmethod
    def load(cls, sources: Iterable[Path | str]) -> RegistryHolder:
        sources = list(sources)
        return cls(Registry.load(sources), sources)

    def current(self) -> Registry:
        return self._registry

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def sources(self) -> list[Path | str]:
        return list(self._sources)

    def reload(self, sources: Iterable[Path | str] | None = None) -> Registry:
        """Load a new registry and swap it in. Raises RegistryError on failure."""
        with self._reload_lock:
            new_sources = list(sources) if sources is not None else list(self._sources)
            registry = Registry.load(new_sources)
            previous = self._registry
            self._registry = registry
            self._sources = new_sources
            self._generation += 1
            logger.info(
                "Registry swapped %s -> %s (generation %d)",
                previous.digest[:12],
                registry.digest[:12],
                self._generation,
            )
            return registry
