"""
Staging — turn requests into queued desired-state changes.

Staging is pure and synchronous: it only appends to ``ctx.staged``.
Nothing runs until the reconciler applies the queue.

    build        → BuildRequested            (only if not built and a build exists)
    migrations   → MigrationsRequested       (only if something is pending)
    start        → build?, migrations?, ServiceStatusRequested(Online)
    stop         → ServiceStatusRequested(Offline)
"""

from __future__ import annotations

import logging

from devbox.core.context import ExecutionContext
from devbox.core.engine.migrations import pending_migrations
from devbox.core.models.change import (
    BuildRequested,
    MigrationsRequested,
    ServiceStatusRequested,
)
from devbox.core.models.module import Module
from devbox.core.models.service import Service, ServiceProcessStatus

logger = logging.getLogger(__name__)


def stage_build(module: Module, ctx: ExecutionContext) -> None:
    """Stage an explicit (forced) build.

    Resets ``state.built`` so the reconciler runs the build even if the
    module was built before.
    """
    module.state.built = False
    ctx.stage(BuildRequested(module))


def stage_build_if_needed(module: Module, ctx: ExecutionContext) -> bool:
    """Stage a build only when the module has one and hasn't run it."""
    if module.state.built or not module.has_build:
        return False
    ctx.stage(BuildRequested(module))
    return True


def stage_migrations_if_needed(module: Module, ctx: ExecutionContext) -> bool:
    """Stage migrations only when at least one is pending."""
    if not pending_migrations(module):
        return False
    ctx.stage(MigrationsRequested(module))
    return True


def stage_service_status(
    service: Service,
    status: ServiceProcessStatus,
    ctx: ExecutionContext,
) -> None:
    ctx.stage(ServiceStatusRequested(service, status))


def stage_start(service: Service, ctx: ExecutionContext) -> None:
    """Stage build → migrate → start for a service's owning module."""
    stage_build_if_needed(service.module, ctx)
    stage_migrations_if_needed(service.module, ctx)
    stage_service_status(service, ServiceProcessStatus.ONLINE, ctx)


def stage_stop(service: Service, ctx: ExecutionContext) -> None:
    stage_service_status(service, ServiceProcessStatus.OFFLINE, ctx)
