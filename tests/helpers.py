"""
Builders shared by the test modules.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from devbox.adapters.mock import MockProcessManager
from devbox.core.config.discovery import InMemoryModuleStore
from devbox.core.context import ExecutionContext, ProjectOptions
from devbox.core.engine.registry import ModuleRegistry
from devbox.core.models.module import Module, ModuleSpec, ModuleState


def make_module(
    name: str,
    services: dict[str, dict[str, Any]] | None = None,
    state: ModuleState | None = None,
    **spec: Any,
) -> Module:
    """Build a Module from plain config, the way devbox.yml would declare it."""
    return Module.from_spec(
        ModuleSpec.model_validate({"name": name, "services": services or {}, **spec}),
        state=state,
    )


def make_context(
    *modules: Module,
    processes: MockProcessManager | None = None,
    store: InMemoryModuleStore | None = None,
    root: Path | None = None,
) -> ExecutionContext:
    return ExecutionContext(
        registry=ModuleRegistry(modules),
        processes=processes if processes is not None else MockProcessManager(),
        store=store if store is not None else InMemoryModuleStore(modules),
        options=ProjectOptions(root=root or Path.cwd()),
    )
