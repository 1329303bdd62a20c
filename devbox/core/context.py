"""
Execution context — everything one top-level operation works with.

One context is built per operation (start, stop, build, ...) and passed
by reference to every engine function. It owns the staged-change queue
and references the module registry and the external collaborators:

    registry        discovered modules/services for this invocation
    processes       process manager (spawn, stop, run commands)
    store           state persistence (save_state after each step)
    forked_reports  reports of builds executed on forked contexts

Nothing here is global; tests build contexts directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from devbox.core.models.change import StagedChange

if TYPE_CHECKING:
    from devbox.adapters.base import ProcessManager
    from devbox.core.config.discovery import ModuleStore
    from devbox.core.engine.reconciler import ReconcileReport
    from devbox.core.engine.registry import ModuleRegistry

DEFAULT_STATE_DIR = ".devbox"
DEFAULT_COMPOSE_FILE = "docker-compose.yml"


@dataclass
class ProjectOptions:
    """Ambient per-project options (from devbox.project.yml)."""

    root: Path = field(default_factory=Path.cwd)
    state_dir: str = DEFAULT_STATE_DIR
    compose_file: str = DEFAULT_COMPOSE_FILE

    @property
    def state_path(self) -> Path:
        return self.root / self.state_dir

    @property
    def compose_path(self) -> Path:
        return self.root / self.compose_file


@dataclass
class ExecutionContext:
    """Per-invocation context: project, collaborators, staged queue."""

    registry: ModuleRegistry
    processes: ProcessManager
    store: ModuleStore
    options: ProjectOptions = field(default_factory=ProjectOptions)
    staged: list[StagedChange] = field(default_factory=list)
    forked_reports: list[ReconcileReport] = field(default_factory=list)

    @property
    def project_root(self) -> Path:
        return self.options.root

    def stage(self, change: StagedChange) -> None:
        """Append a change to the queue (no deduplication)."""
        self.staged.append(change)

    def fork(self) -> ExecutionContext:
        """Same project and collaborators, fresh empty queue.

        Reports of work done on a fork are collected in the shared
        ``forked_reports`` list so the operation can account for them.
        """
        return ExecutionContext(
            registry=self.registry,
            processes=self.processes,
            store=self.store,
            options=self.options,
            forked_reports=self.forked_reports,
        )
