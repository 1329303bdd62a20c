"""
Orchestrator — the top-level operations behind every CLI command.

An Orchestrator is built once per CLI invocation from the project
options and its two collaborators (module store, process manager). It
discovers modules lazily, then every operation:

    1. validates its parameters
    2. builds a fresh ExecutionContext
    3. stages changes (resolver / staging helpers)
    4. calls execute_staged once, if it staged anything
    5. records the outcome (audit ledger + last_operation)

Builds run on forked contexts (value providers) are merged into the
operation report. Failures are recorded and then re-raised unchanged.
Failing to record never masks the operation's own outcome.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from devbox.adapters.base import ProcessManager
from devbox.core.config.discovery import FileModuleStore, ModuleStore
from devbox.core.config.loader import load_project_options
from devbox.core.context import ExecutionContext, ProjectOptions
from devbox.core.engine.migrations import pending_migrations
from devbox.core.engine.reconciler import ReconcileReport, execute_staged
from devbox.core.engine.registry import ModuleRegistry
from devbox.core.engine.resolver import stage_start_with_dependencies
from devbox.core.engine.runner import run_runnable
from devbox.core.engine.staging import (
    stage_build,
    stage_build_if_needed,
    stage_migrations_if_needed,
    stage_stop,
)
from devbox.core.engine.values import provide_value
from devbox.core.errors import NoBuildActionError, NotFoundError, StateFileError
from devbox.core.models.runnable import Command, Runnable
from devbox.core.models.service import ServiceProcessStatus
from devbox.core.models.state import OperationRecord
from devbox.core.persistence.audit import (
    DEFAULT_AUDIT_FILE,
    AuditEntry,
    AuditWriter,
    generate_operation_id,
)
from devbox.core.use_cases.validation import (
    is_runnable_name,
    validate_module_name,
    validate_runnable_id,
    validate_service_name,
    validate_value_identifier,
)
from devbox.modules.compose import MODULE_NAME as COMPOSE_MODULE

logger = logging.getLogger(__name__)


@dataclass
class OperationResult:
    """Outcome of one top-level operation."""

    operation: str
    target: str = ""
    operation_id: str = ""
    status: str = "ok"              # ok, failed
    report: ReconcileReport = field(default_factory=ReconcileReport)
    output: Any = None
    duration_ms: int = 0
    error: str | None = None

    def to_dict(self) -> dict:
        result: dict = {
            "operation": self.operation,
            "target": self.target,
            "operation_id": self.operation_id,
            "status": self.status,
        }
        if self.error:
            result["error"] = self.error
            return result

        result["report"] = self.report.to_dict()
        if self.output is not None:
            result["output"] = self.output
        result["duration_ms"] = self.duration_ms
        return result


@dataclass
class ServiceStatusLine:
    """One row of ``list``."""

    service: str
    module: str
    status: str
    built: bool
    pending_migrations: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        pending = ", ".join(self.pending_migrations)
        built = "true" if self.built else "false"
        return f"{self.service} [{self.module}]: {self.status}, built: {built}, pending migrations: {pending}"

    def to_dict(self) -> dict:
        return {
            "service": self.service,
            "module": self.module,
            "status": self.status,
            "built": self.built,
            "pending_migrations": self.pending_migrations,
        }


class Orchestrator:
    """Session object owning the discovered modules of one invocation.

    Args:
        options: Project root and per-project settings.
        store: Module discovery and state persistence.
        processes: Process manager used for every side effect.
        audit: Audit ledger writer. Defaults to <state_dir>/audit.ndjson.
    """

    def __init__(
        self,
        options: ProjectOptions,
        store: ModuleStore,
        processes: ProcessManager,
        audit: AuditWriter | None = None,
    ):
        self._options = options
        self._store = store
        self._processes = processes
        self._audit = audit or AuditWriter(options.state_path / DEFAULT_AUDIT_FILE)
        self._registry: ModuleRegistry | None = None

    @classmethod
    def for_project(
        cls,
        root: Path | None = None,
        processes: ProcessManager | None = None,
    ) -> Orchestrator:
        """Production wiring: devbox.project.yml, devbox.yml files, local processes."""
        from devbox.adapters.process.manager import LocalProcessManager

        options = load_project_options(root)
        return cls(options, FileModuleStore(options), processes or LocalProcessManager())

    @property
    def options(self) -> ProjectOptions:
        return self._options

    @property
    def processes(self) -> ProcessManager:
        return self._processes

    @property
    def registry(self) -> ModuleRegistry:
        """Discovered modules; project modules first, then internal ones."""
        if self._registry is None:
            root = self._options.root
            modules = self._store.discover_modules(root)
            modules.extend(self._store.discover_internal_modules(root))
            self._registry = ModuleRegistry(modules)
        return self._registry

    def new_context(self) -> ExecutionContext:
        return ExecutionContext(
            registry=self.registry,
            processes=self._processes,
            store=self._store,
            options=self._options,
        )

    # ── Operations ──────────────────────────────────────────────

    def start(self, service_name: str) -> OperationResult:
        """Start a service after its dependencies (build/migrate as needed)."""
        name = validate_service_name(service_name).unwrap()
        with self._operation("start", name) as (ctx, result):
            _, service = ctx.registry.find_service(name)
            stage_start_with_dependencies(service, ctx)
            result.report = execute_staged(ctx)
        return result

    def stop(self, service_name: str) -> OperationResult:
        """Stop one service. Dependencies are left running."""
        name = validate_service_name(service_name).unwrap()
        with self._operation("stop", name) as (ctx, result):
            _, service = ctx.registry.find_service(name)
            stage_stop(service, ctx)
            result.report = execute_staged(ctx)
        return result

    def build(self, module_name: str, force: bool = False) -> OperationResult:
        """Build a module unless it is already built.

        Args:
            force: Reset the built flag first so the build always runs.

        Raises:
            NoBuildActionError: If the module declares no build action.
        """
        name = validate_module_name(module_name).unwrap()
        with self._operation("build", name) as (ctx, result):
            module = ctx.registry.find_module(name)
            if not module.has_build:
                raise NoBuildActionError(module.name)
            if force:
                stage_build(module, ctx)
            else:
                stage_build_if_needed(module, ctx)
            result.report = execute_staged(ctx)
        return result

    def migrate(self, module_name: str) -> OperationResult:
        """Apply every pending migration of a module."""
        name = validate_module_name(module_name).unwrap()
        with self._operation("migrate", name) as (ctx, result):
            module = ctx.registry.find_module(name)
            stage_migrations_if_needed(module, ctx)
            result.report = execute_staged(ctx)
        return result

    def value(self, identifier: str) -> OperationResult:
        """Resolve ``<service>.<name>``; the value is in ``result.output``."""
        ident = validate_value_identifier(identifier).unwrap()
        with self._operation("value", ident) as (ctx, result):
            result.output = provide_value(ident, ctx)
        return result

    def run(self, module_name: str, runnable_id: str) -> OperationResult:
        """Run a module's named runnable, or an ad-hoc command in its directory.

        A name that matches a declared runnable runs that runnable. A
        plain name that matches nothing is a NotFoundError; anything
        else (e.g. ``npm test``) runs as a shell command.
        """
        name = validate_module_name(module_name).unwrap()
        rid = validate_runnable_id(runnable_id).unwrap()
        with self._operation("run", f"{name}:{rid}") as (ctx, result):
            module = ctx.registry.find_module(name)
            runnable = _lookup_runnable(module.spec.runnables, module.name, rid)
            run_runnable(module, runnable, ctx)
        return result

    def compose(self) -> OperationResult:
        """Write the docker-compose file for every docker-enabled module."""
        result = self.run(COMPOSE_MODULE, "generate")
        result.output = str(self._options.compose_path)
        return result

    def list(self) -> list[ServiceStatusLine]:
        """Status of every service. Read-only: nothing is staged or audited."""
        ctx = self.new_context()
        lines = []
        for module in ctx.registry.all_modules():
            pending = pending_migrations(module)
            for service in module.services.values():
                process = ctx.processes.find_service_process(service, ctx)
                status = process.status if process else ServiceProcessStatus.UNKNOWN
                lines.append(
                    ServiceStatusLine(
                        service=service.name,
                        module=module.name,
                        status=str(status),
                        built=module.state.built,
                        pending_migrations=pending,
                    )
                )
        return lines

    def history(self, limit: int = 20) -> list[AuditEntry]:
        """The most recent audit entries, oldest first. Not itself audited."""
        return self._audit.read_recent(limit)

    def shutdown(self) -> None:
        """Let the process manager release whatever it holds."""
        self._processes.on_shutdown()

    # ── Bookkeeping ─────────────────────────────────────────────

    @contextmanager
    def _operation(self, operation: str, target: str) -> Iterator[tuple[ExecutionContext, OperationResult]]:
        result = OperationResult(
            operation=operation,
            target=target,
            operation_id=generate_operation_id(),
        )
        started_at = datetime.now(UTC).isoformat()
        start = time.monotonic()
        logger.info("%s %s (%s)", operation, target, result.operation_id)

        ctx = None
        try:
            ctx = self.new_context()
            yield ctx, result
        except Exception as e:
            result.status = "failed"
            result.error = str(e)
            logger.error("%s %s failed: %s", operation, target, e)
            raise
        finally:
            if ctx is not None:
                for report in ctx.forked_reports:
                    result.report.extend(report)
            result.duration_ms = int((time.monotonic() - start) * 1000)
            self._record(result, started_at)

    def _record(self, result: OperationResult, started_at: str) -> None:
        self._audit.write(
            AuditEntry(
                operation_id=result.operation_id,
                operation=result.operation,
                target=result.target,
                status=result.status,
                changes=[c.to_dict() for c in result.report.changes],
                duration_ms=result.duration_ms,
                error=result.error,
                context={"root": str(self._options.root)},
            )
        )
        try:
            self._store.record_operation(
                OperationRecord(
                    operation_id=result.operation_id,
                    operation=result.operation,
                    target=result.target,
                    started_at=started_at,
                    ended_at=datetime.now(UTC).isoformat(),
                    status=result.status,
                    changes_applied=result.report.applied,
                    error=result.error,
                )
            )
        except (OSError, StateFileError) as e:
            logger.error("Failed to record last operation: %s", e)


def _lookup_runnable(runnables: dict[str, Runnable], module_name: str, runnable_id: str) -> Runnable:
    runnable = runnables.get(runnable_id)
    if runnable is not None:
        return runnable
    if is_runnable_name(runnable_id):
        raise NotFoundError("runnable", f"{module_name}:{runnable_id}", sorted(runnables))
    return Command(runnable_id)
