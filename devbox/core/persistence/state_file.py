"""
Project state file — .devbox/state.json.

Only a missing file means "nothing recorded yet". A file that exists
but does not parse is an error: loading it as empty state would make
the next save forget every build flag and applied migration.

Saves go through a temp file in the same directory and a rename, so a
reader sees either the old document or the new one.
"""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path

from pydantic import ValidationError as SchemaError

from devbox.core.errors import StateFileError
from devbox.core.models.state import ProjectState

logger = logging.getLogger(__name__)

DEFAULT_STATE_FILE = "state.json"


def default_state_path(state_dir: Path) -> Path:
    return state_dir / DEFAULT_STATE_FILE


def load_state(path: Path) -> ProjectState:
    """Read the state document at ``path``.

    Raises:
        StateFileError: If the file exists but is unreadable, not JSON,
            or does not match the ProjectState schema.
    """
    if not path.exists():
        logger.debug("No state at %s yet", path)
        return ProjectState()

    try:
        state = ProjectState.model_validate_json(path.read_bytes())
    except (OSError, SchemaError) as e:
        logger.error("Refusing to use state file %s: %s", path, e)
        raise StateFileError(path, e) from e

    logger.debug("State loaded from %s (updated %s)", path, state.updated_at)
    return state


def save_state(state: ProjectState, path: Path) -> None:
    """Write ``state`` to ``path`` atomically, bumping ``updated_at``.

    OSError propagates to the caller after the temp file is removed.
    """
    state.touch()
    payload = json.dumps(state.model_dump(mode="json"), indent=2, ensure_ascii=False) + "\n"

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}_", suffix=".tmp")
    tmp = Path(name)
    try:
        with open(fd, "w", encoding="utf-8") as f:
            f.write(payload)
        tmp.replace(path)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise
    logger.debug("State written to %s", path)
