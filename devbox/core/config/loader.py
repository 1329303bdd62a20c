"""
Project loader — locate the project root and read its options.

The project root is the nearest directory (walking up from the cwd)
holding a devbox.project.yml. The file is optional; without one the
cwd is the root and defaults apply::

    # devbox.project.yml
    state_dir: .devbox
    compose_file: docker-compose.yml
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel

from devbox.core.context import DEFAULT_COMPOSE_FILE, DEFAULT_STATE_DIR, ProjectOptions
from devbox.core.errors import ConfigError

logger = logging.getLogger(__name__)

PROJECT_CONFIG_FILE = "devbox.project.yml"


class ProjectConfig(BaseModel):
    """Schema of devbox.project.yml."""

    state_dir: str = DEFAULT_STATE_DIR
    compose_file: str = DEFAULT_COMPOSE_FILE


def find_project_file(start_dir: Path | None = None) -> Path | None:
    """Search for devbox.project.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to devbox.project.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / PROJECT_CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


def read_yaml_mapping(path: Path) -> dict:
    """Read a YAML file that must contain a mapping (empty file → {}).

    Raises:
        ConfigError: If the file cannot be read or is not a mapping.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")
    return data


def load_project_options(root: Path | None = None) -> ProjectOptions:
    """Resolve the project root and its options.

    Args:
        root: Explicit project root. If None, searches upward from the cwd
            for devbox.project.yml and falls back to the cwd.

    Raises:
        ConfigError: If devbox.project.yml exists but is invalid.
    """
    if root is not None:
        root = root.resolve()
        path: Path | None = root / PROJECT_CONFIG_FILE
        if not path.is_file():
            path = None
    else:
        path = find_project_file()
        root = path.parent if path else Path.cwd().resolve()

    if path is None:
        logger.debug("No %s, using defaults (root=%s)", PROJECT_CONFIG_FILE, root)
        return ProjectOptions(root=root)

    logger.debug("Loading project options from %s", path)
    try:
        config = ProjectConfig.model_validate(read_yaml_mapping(path))
    except ValueError as e:
        raise ConfigError(f"Invalid project configuration in {path}: {e}") from e

    return ProjectOptions(
        root=root,
        state_dir=config.state_dir,
        compose_file=config.compose_file,
    )
