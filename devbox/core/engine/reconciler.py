"""
Reconciler — apply the staged-change queue against current state.

The queue is walked once, front to back, and every change is consumed
whether it applies or is skipped. The first failure aborts the walk:
remaining changes are discarded and the error propagates. Effects that
already ran keep their persisted results.

Flow per change:
    BuildRequested          → build unless already built
    MigrationsRequested     → apply pending migrations (no-op if none)
    ServiceStatusRequested  → start_and_wait / stop_and_wait
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from devbox.core.context import ExecutionContext
from devbox.core.engine.builder import run_build
from devbox.core.engine.migrations import apply_migrations
from devbox.core.errors import UnhandledStateError
from devbox.core.models.change import (
    BuildRequested,
    MigrationsRequested,
    ServiceStatusRequested,
    StagedChange,
)
from devbox.core.models.service import Service, ServiceProcessStatus

logger = logging.getLogger(__name__)


@dataclass
class AppliedChange:
    """Outcome of one staged change."""

    description: str
    status: str = "applied"  # applied, skipped
    detail: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"change": self.description, "status": self.status, "detail": self.detail}


@dataclass
class ReconcileReport:
    """Everything one execute_staged call did."""

    changes: list[AppliedChange] = field(default_factory=list)

    @property
    def applied(self) -> int:
        return sum(1 for c in self.changes if c.status == "applied")

    @property
    def skipped(self) -> int:
        return sum(1 for c in self.changes if c.status == "skipped")

    def extend(self, other: ReconcileReport) -> None:
        self.changes.extend(other.changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "applied": self.applied,
            "skipped": self.skipped,
            "changes": [c.to_dict() for c in self.changes],
        }


def execute_staged(ctx: ExecutionContext) -> ReconcileReport:
    """Drain and apply the staged queue in insertion order.

    Safe to call on an empty queue.

    Raises:
        UnhandledStateError: For a change kind or status the engine
            cannot apply.
        Any error raised by a build, migration or process operation.
    """
    report = ReconcileReport()
    try:
        while ctx.staged:
            change = ctx.staged.pop(0)
            outcome = _apply(change, ctx)
            if outcome.status == "applied":
                logger.info("✓ %s", outcome.description)
            else:
                logger.debug("⊘ %s (%s)", outcome.description, outcome.detail)
            report.changes.append(outcome)
    except Exception:
        if ctx.staged:
            logger.warning("Discarding %d unapplied staged changes", len(ctx.staged))
        ctx.staged.clear()
        raise
    return report


def _apply(change: StagedChange, ctx: ExecutionContext) -> AppliedChange:
    if isinstance(change, BuildRequested):
        module = change.module
        if module.state.built:
            logger.debug("%s already built, skipping", module.name)
            return AppliedChange(change.describe(), "skipped", "already built")
        run_build(module, ctx)
        return AppliedChange(change.describe())

    if isinstance(change, MigrationsRequested):
        applied = apply_migrations(change.module, ctx)
        if not applied:
            return AppliedChange(change.describe(), "skipped", "no pending migrations")
        return AppliedChange(change.describe(), detail=", ".join(applied))

    if isinstance(change, ServiceStatusRequested):
        return _apply_service_status(change.service, change.status, ctx, change.describe())

    raise UnhandledStateError(f"Unhandled staged change: {change!r}")


def _apply_service_status(
    service: Service,
    status: ServiceProcessStatus,
    ctx: ExecutionContext,
    description: str,
) -> AppliedChange:
    if status == ServiceProcessStatus.ONLINE:
        logger.info("Service %s: starting", service.name)
        ctx.processes.start_and_wait(service, service_env(service, ctx), ctx)
    elif status == ServiceProcessStatus.OFFLINE:
        logger.info("Service %s: stopping", service.name)
        ctx.processes.stop_and_wait(service, ctx)
    else:
        raise UnhandledStateError(f"Unhandled ServiceProcessStatus {status}")

    service.state.process_status = status
    return AppliedChange(description)


def service_env(service: Service, ctx: ExecutionContext) -> dict[str, Any]:
    """Environment for a service process: module env, service env, provided values."""
    # values → reconciler import cycle
    from devbox.core.engine.values import provide_values

    env: dict[str, Any] = dict(service.module.spec.env)
    env.update(service.spec.env)
    if service.spec.provide_env_values:
        env.update(provide_values(service.spec.provide_env_values, ctx))
    return env
