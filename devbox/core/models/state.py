"""
ProjectState — the persisted state document.

Holds the build/migration bookkeeping of every module plus a summary
of the last operation. It's serialized to .devbox/state.json and
loaded at discovery time. The in-memory module graph itself is never
persisted, only each module's state.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from devbox.core.models.module import ModuleState


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class OperationRecord(BaseModel):
    """Summary of the last top-level operation."""

    operation_id: str = ""
    operation: str = ""          # start, stop, build, migrate, value, run
    target: str = ""
    started_at: str = ""
    ended_at: str = ""
    status: str = ""             # ok, failed
    changes_applied: int = 0
    error: str | None = None


class ProjectState(BaseModel):
    """Root state model — serialized to .devbox/state.json."""

    schema_version: int = 1

    created_at: str = Field(default_factory=_now_iso)
    updated_at: str = Field(default_factory=_now_iso)

    modules: dict[str, ModuleState] = Field(default_factory=dict)
    last_operation: OperationRecord = Field(default_factory=OperationRecord)

    metadata: dict[str, Any] = Field(default_factory=dict)

    def touch(self) -> None:
        """Update the updated_at timestamp."""
        self.updated_at = _now_iso()

    def module_state(self, name: str) -> ModuleState:
        """Return a copy of a module's stored state, or a fresh one."""
        stored = self.modules.get(name)
        return stored.model_copy(deep=True) if stored else ModuleState()

    def set_module_state(self, name: str, state: ModuleState) -> None:
        self.modules[name] = state.model_copy(deep=True)
