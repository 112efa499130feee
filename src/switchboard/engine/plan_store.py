"""Plan JSON read/write so a dispatch and its run can happen in different processes."""

from __future__ import annotations

import json
import os
import re
import tempfile
from pathlib import Path

from pydantic import ValidationError

from switchboard.config import get_data_dir
from switchboard.engine.models import ExecutionPlan
from switchboard.errors import NotFound

_PLAN_ID = re.compile(r"^[A-Za-z0-9_-]+$")


class PlanStore:
    def __init__(self, root: Path | None = None) -> None:
        self._root = root or get_data_dir() / "plans"

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, plan_id: str) -> Path:
        if not _PLAN_ID.match(plan_id):
            raise NotFound(f"Invalid plan id '{plan_id}'")
        return self._root / f"{plan_id}.json"

    def save(self, plan: ExecutionPlan) -> Path:
        """Write the plan atomically, creating the directory as needed."""
        path = self._path(plan.id)
        path.parent.mkdir(parents=True, exist_ok=True)
        content = json.dumps(plan.model_dump(mode="json"), indent=2)
        fd, tmp = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(content)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        return path

    def load(self, plan_id: str) -> ExecutionPlan:
        """Read a stored plan. The result is not bound to any registry."""
        path = self._path(plan_id)
        try:
            data = json.loads(path.read_text())
        except FileNotFoundError:
            raise NotFound(f"Plan '{plan_id}' not found") from None
        except (json.JSONDecodeError, OSError) as e:
            raise NotFound(f"Plan '{plan_id}' is unreadable: {e}") from e
        try:
            return ExecutionPlan.model_validate(data)
        except ValidationError as e:
            raise NotFound(f"Plan '{plan_id}' is corrupt: {e}") from e
