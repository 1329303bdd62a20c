"""
Staged changes — desired-state deltas queued for reconciliation.

Staging calls append these to the ExecutionContext queue; the
reconciler consumes each exactly once, in FIFO order. The queue is
never deduplicated: staging the same target twice yields two entries.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from devbox.core.models.module import Module
from devbox.core.models.service import Service, ServiceProcessStatus


@dataclass(frozen=True, eq=False)
class BuildRequested:
    """Module should end up built."""

    module: Module

    def describe(self) -> str:
        return f"module {self.module.name}: built"


@dataclass(frozen=True, eq=False)
class MigrationsRequested:
    """Module should end up with all migrations applied."""

    module: Module

    def describe(self) -> str:
        return f"module {self.module.name}: migrations applied"


@dataclass(frozen=True, eq=False)
class ServiceStatusRequested:
    """Service process should end up in the given status."""

    service: Service
    status: ServiceProcessStatus

    def describe(self) -> str:
        return f"service {self.service.name}: {self.status}"


StagedChange = Union[BuildRequested, MigrationsRequested, ServiceStatusRequested]
