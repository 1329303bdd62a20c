"""
Runnable executor — uniform execution of Command / Callback / Sequence.

Commands go to the process manager's interactive runner (terminal I/O
inherited). Callbacks run in-process. Sequences run their items
strictly in order; the first failure aborts the rest.
"""

from __future__ import annotations

import logging

from devbox.core.context import ExecutionContext
from devbox.core.errors import UnhandledStateError
from devbox.core.models.module import Module
from devbox.core.models.runnable import (
    Callback,
    Command,
    Runnable,
    RunnableParams,
    Sequence,
)

logger = logging.getLogger(__name__)


def run_runnable(module: Module, runnable: Runnable, ctx: ExecutionContext) -> None:
    """Execute a runnable on behalf of a module.

    Raises whatever the underlying command or callback raises.
    """
    if isinstance(runnable, Sequence):
        for item in runnable.items:
            run_runnable(module, item, ctx)
        return

    if isinstance(runnable, Callback):
        logger.debug("%s: calling %s", module.name, runnable.describe())
        runnable.fn(RunnableParams(module=module, ctx=ctx))
        return

    if isinstance(runnable, Command):
        logger.debug("%s: running %s", module.name, runnable.command)
        ctx.processes.run_interactive(module, runnable.command, dict(module.spec.env), ctx)
        return

    raise UnhandledStateError(f"Unknown runnable type: {type(runnable).__name__}")
