"""
Error taxonomy — every failure the engine raises.

All errors derive from DevboxError so the CLI can catch them in one
place. Errors that wrap an underlying failure are raised with
``raise ... from cause`` so the underlying traceback is preserved.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path


class DevboxError(Exception):
    """Base class for all orchestrator errors."""


class ConfigError(DevboxError):
    """Raised when a module or project configuration is invalid or missing."""


class ValidationError(DevboxError):
    """Raised when operation parameters fail validation."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Invalid parameters")


class NotFoundError(DevboxError):
    """A module, service or runnable lookup had no match.

    Carries the full list of known names for diagnostics.
    """

    def __init__(self, kind: str, name: str, known: Iterable[str] = ()):
        self.kind = kind
        self.name = name
        self.known = list(known)
        known_label = ", ".join(self.known) if self.known else "(none)"
        super().__init__(
            f'{kind.capitalize()} "{name}" not found. Known {kind}s: {known_label}'
        )


class ValueProviderNotFoundError(NotFoundError):
    """A service declares neither a static value nor a provider for a name."""

    def __init__(self, service: str, provider: str, known: Iterable[str] = ()):
        self.service = service
        self.provider = provider
        super().__init__("value provider", f"{service}.{provider}", known)


class NoBuildActionError(DevboxError):
    """A build was requested for a module that declares no build action."""

    def __init__(self, module: str):
        self.module = module
        super().__init__(f'Module "{module}" has no build action specified')


class UnhandledStateError(DevboxError):
    """A staged change the reconciler does not know how to apply."""


class CycleDetectedError(DevboxError):
    """Service dependencies form a cycle."""

    def __init__(self, path: list[str]):
        self.path = list(path)
        super().__init__(f"Dependency cycle detected: {' -> '.join(self.path)}")


class RunnableFailedError(DevboxError):
    """A command runnable exited with a non-zero status."""

    def __init__(self, command: str, returncode: int, output: str = ""):
        self.command = command
        self.returncode = returncode
        self.output = output
        super().__init__(f"Command failed with exit code {returncode}: {command}")


class MigrationFailedError(DevboxError):
    """A migration runnable failed. Earlier migrations stay recorded."""

    def __init__(self, module: str, migration_id: str, cause: BaseException | None = None):
        self.module = module
        self.migration_id = migration_id
        detail = f": {cause}" if cause else ""
        super().__init__(f'Migration "{migration_id}" of module "{module}" failed{detail}')


class ValueResolutionError(DevboxError):
    """Wraps any failure raised while resolving a value identifier."""

    def __init__(self, identifier: str, cause: BaseException | None = None):
        self.identifier = identifier
        detail = f": {cause}" if cause else ""
        super().__init__(f"Could not get {identifier} value{detail}")


class ProcessStartError(DevboxError):
    """A service process failed to start or never became healthy."""


class StateFileError(DevboxError):
    """The project state file exists but cannot be read back."""

    def __init__(self, path: Path, cause: BaseException | None = None):
        self.path = path
        detail = f": {cause}" if cause else ""
        super().__init__(f"Cannot read state file {path}{detail}. Fix or remove it to continue")
