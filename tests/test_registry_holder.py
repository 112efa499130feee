"""Tests for RegistryHolder atomic reload."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from switchboard.errors import RegistryError
from switchboard.registry.holder import RegistryHolder


@pytest.mark.unit
def test_load_and_current(registry_file: Path):
    holder = RegistryHolder.load([registry_file])
    assert len(holder.current()) == 2
    assert holder.generation == 1
    assert holder.sources == [registry_file]


@pytest.mark.unit
def test_reload_swaps_snapshot(registry_file: Path, registry_data: dict):
    holder = RegistryHolder.load([registry_file])
    before = holder.current()

    registry_data["agents"][0]["triggers"].append("red build")
    registry_file.write_text(json.dumps(registry_data))
    after = holder.reload()

    assert holder.current() is after
    assert after.digest != before.digest
    assert holder.generation == 2
    # Readers that kept the old snapshot still see it unchanged.
    assert "red build" not in before.lookup("debug-test-failure").triggers


@pytest.mark.unit
def test_failed_reload_keeps_old_snapshot(registry_file: Path, tmp_path: Path):
    holder = RegistryHolder.load([registry_file])
    before = holder.current()

    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"agents": [{"name": "x", "category": "quality"}]}))
    with pytest.raises(RegistryError):
        holder.reload([bad])

    assert holder.current() is before
    assert holder.generation == 1
    assert holder.sources == [registry_file]


@pytest.mark.unit
def test_reload_with_new_sources(registry_file: Path, agents_dir: Path):
    holder = RegistryHolder.load([registry_file])
    holder.reload([agents_dir])
    assert holder.sources == [agents_dir]
    assert len(holder.current().lookup("debug-test-failure").workflows) == 2

