"""
Shared test fixtures and configuration.
"""

from pathlib import Path

import pytest

from devbox.adapters.mock import MockProcessManager
from devbox.core.config.discovery import InMemoryModuleStore


@pytest.fixture
def processes() -> MockProcessManager:
    return MockProcessManager()


@pytest.fixture
def store() -> InMemoryModuleStore:
    return InMemoryModuleStore()


@pytest.fixture
def tmp_state_dir(tmp_path: Path) -> Path:
    """Return a temporary directory for state files."""
    state_dir = tmp_path / ".devbox"
    state_dir.mkdir()
    return state_dir
