"""
Module discovery — find modules on disk and persist their state.

Modules are declared by a devbox.yml file in their directory::

    name: api
    build: [npm ci, npm run build]
    migrations:
      001-init: npm run migrate -- 001
    services:
      api:
        port: 3000
        start: npm start
        dependencies: [postgres]

The persisted half of each module (build flag, applied migrations) is
kept in the project state file and attached at discovery time.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path

from devbox.core.config.loader import read_yaml_mapping
from devbox.core.context import ProjectOptions
from devbox.core.errors import ConfigError
from devbox.core.models.module import Module, ModuleSpec, ModuleState
from devbox.core.models.state import OperationRecord
from devbox.core.persistence.state_file import default_state_path, load_state, save_state

logger = logging.getLogger(__name__)

MODULE_FILES = ("devbox.yml", "devbox.yaml")
MAX_DEPTH = 4
_SKIP_DIRS = frozenset({"node_modules", "__pycache__", "venv", "dist", "build", "target"})


class ModuleStore(ABC):
    """Source of modules and sink for their state."""

    @abstractmethod
    def discover_modules(self, root: Path) -> list[Module]:
        """Modules declared by the project."""

    @abstractmethod
    def discover_internal_modules(self, root: Path) -> list[Module]:
        """Modules shipped with devbox itself."""

    @abstractmethod
    def save_state(self, module: Module) -> None:
        """Durably persist ``module.state``."""

    def record_operation(self, record: OperationRecord) -> None:
        """Remember the last operation. Optional."""


def load_module_file(path: Path, root: Path, state: ModuleState | None = None) -> Module:
    """Load one devbox.yml into a Module.

    The module name defaults to its directory name.

    Raises:
        ConfigError: If the file is unreadable or fails validation.
    """
    data = read_yaml_mapping(path)
    module_dir = path.parent.resolve()
    data.setdefault("name", module_dir.name)

    try:
        spec = ModuleSpec.model_validate(data)
    except (ValueError, ConfigError) as e:
        raise ConfigError(f"Invalid module configuration in {path}: {e}") from e

    try:
        rel_path = module_dir.relative_to(root.resolve()).as_posix()
    except ValueError:
        rel_path = module_dir.as_posix()

    return Module.from_spec(
        spec,
        state=state,
        path=rel_path or ".",
        absolute_path=module_dir,
    )


def find_module_files(root: Path, max_depth: int = MAX_DEPTH) -> list[Path]:
    """All module files under root, sorted by path.

    Hidden directories and dependency/build output directories are skipped.
    """
    found: list[Path] = []

    def _walk(directory: Path, depth: int) -> None:
        for name in MODULE_FILES:
            candidate = directory / name
            if candidate.is_file():
                found.append(candidate)
                break
        if depth >= max_depth:
            return
        try:
            children = sorted(directory.iterdir())
        except OSError as e:
            logger.debug("Cannot list %s: %s", directory, e)
            return
        for child in children:
            if not child.is_dir() or child.name.startswith(".") or child.name in _SKIP_DIRS:
                continue
            _walk(child, depth + 1)

    _walk(root, 0)
    return found


class FileModuleStore(ModuleStore):
    """Discover modules from devbox.yml files; state in <state_dir>/state.json."""

    def __init__(self, options: ProjectOptions):
        self._options = options

    @property
    def state_path(self) -> Path:
        return default_state_path(self._options.state_path)

    def discover_modules(self, root: Path) -> list[Module]:
        state = load_state(self.state_path)
        modules = []
        for path in find_module_files(root):
            module = load_module_file(path, root)
            module.state = state.module_state(module.name)
            modules.append(module)
        logger.info("Discovered %d modules under %s", len(modules), root)
        return modules

    def discover_internal_modules(self, root: Path) -> list[Module]:
        from devbox.modules import internal_module_specs

        state = load_state(self.state_path)
        return [
            Module.from_spec(
                spec,
                state=state.module_state(spec.name),
                path=".",
                absolute_path=root,
                internal=True,
            )
            for spec in internal_module_specs()
        ]

    def save_state(self, module: Module) -> None:
        state = load_state(self.state_path)
        state.set_module_state(module.name, module.state)
        save_state(state, self.state_path)

    def record_operation(self, record: OperationRecord) -> None:
        state = load_state(self.state_path)
        state.last_operation = record
        save_state(state, self.state_path)


class InMemoryModuleStore(ModuleStore):
    """Modules handed in directly; saves are recorded, not written.

    ``saves`` holds a (module name, state snapshot) pair per save_state call.
    """

    def __init__(self, modules: Iterable[Module] = (), internal: Iterable[Module] = ()):
        self._modules = list(modules)
        self._internal = list(internal)
        self.saves: list[tuple[str, ModuleState]] = []
        self.operations: list[OperationRecord] = []

    def discover_modules(self, root: Path) -> list[Module]:
        return list(self._modules)

    def discover_internal_modules(self, root: Path) -> list[Module]:
        return list(self._internal)

    def save_state(self, module: Module) -> None:
        self.saves.append((module.name, module.state.model_copy(deep=True)))

    def record_operation(self, record: OperationRecord) -> None:
        self.operations.append(record)

