"""
Build orchestrator — run a module's build action and record it.

Once ``state.built`` is true the build never re-runs on its own; only
a forced ``build`` operation (which resets the flag) re-runs it.
"""

from __future__ import annotations

import logging

from devbox.core.context import ExecutionContext
from devbox.core.engine.runner import run_runnable
from devbox.core.errors import NoBuildActionError
from devbox.core.models.module import Module

logger = logging.getLogger(__name__)


def run_build(module: Module, ctx: ExecutionContext) -> None:
    """Execute the build runnable, then mark the module built and persist.

    Raises:
        NoBuildActionError: If the module declares no build action.
    """
    if module.spec.build is None:
        raise NoBuildActionError(module.name)

    logger.info("> Building %s", module.name)
    run_runnable(module, module.spec.build, ctx)

    module.state.built = True
    ctx.store.save_state(module)
    logger.info("> Built %s", module.name)
