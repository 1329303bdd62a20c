"""
Migration tracker — compute and apply pending migrations.

Progress is persisted after every single migration, so a failure in
the middle of a batch keeps what already ran and the next invocation
resumes at the failing id. ``ran_all_migrations`` is only set once the
whole batch succeeds.
"""

from __future__ import annotations

import logging

from devbox.core.context import ExecutionContext
from devbox.core.engine.runner import run_runnable
from devbox.core.errors import MigrationFailedError
from devbox.core.models.module import Module

logger = logging.getLogger(__name__)


def pending_migrations(module: Module) -> list[str]:
    """Declared migration ids not yet applied, sorted lexicographically."""
    applied = set(module.state.ran_migrations)
    return sorted(mid for mid in module.spec.migrations if mid not in applied)


def apply_migrations(module: Module, ctx: ExecutionContext) -> list[str]:
    """Run every pending migration in order.

    Returns:
        The ids applied by this call (empty when nothing was pending).

    Raises:
        MigrationFailedError: On the first failing migration. Ids applied
            before it stay recorded; the rest are not attempted.
    """
    pending = pending_migrations(module)
    if not pending:
        logger.info("> No new migrations for %s", module.name)
        return []

    applied: list[str] = []
    for migration_id in pending:
        logger.info("> Migrating %s: %s", module.name, migration_id)
        try:
            run_runnable(module, module.spec.migrations[migration_id], ctx)
        except Exception as e:
            logger.error("> Migration %s of %s failed: %s", migration_id, module.name, e)
            raise MigrationFailedError(module.name, migration_id, e) from e

        module.state.ran_migrations.append(migration_id)
        ctx.store.save_state(module)
        applied.append(migration_id)

    module.state.ran_all_migrations = True
    ctx.store.save_state(module)
    logger.info("> All new migrations applied for %s (%d)", module.name, len(applied))
    return applied
