"""
Dependency resolver — expand a start request into its prerequisites.

For each declared dependency (in order) the resolver first stages that
dependency's own dependencies, then its start. The result is a
pre-order expansion in which prerequisites always precede dependents:

    a → b → c        staging start(a) yields  c, b, a

Shared prerequisites are staged once per path that reaches them.
A circular declaration fails fast before anything runs.
"""

from __future__ import annotations

import logging

from devbox.core.context import ExecutionContext
from devbox.core.engine.staging import stage_start
from devbox.core.errors import CycleDetectedError
from devbox.core.models.service import Service

logger = logging.getLogger(__name__)


def stage_start_dependencies(
    service: Service,
    ctx: ExecutionContext,
    _path: tuple[str, ...] = (),
) -> None:
    """Stage starts for every transitive dependency of ``service``.

    Does not stage the start of ``service`` itself.

    Raises:
        NotFoundError: If a dependency names an unknown service.
        CycleDetectedError: If the dependencies are circular.
    """
    path = _path + (service.name,)

    for dependency_name in service.spec.dependencies:
        if dependency_name in path:
            cycle_start = path.index(dependency_name)
            raise CycleDetectedError([*path[cycle_start:], dependency_name])

        _, dependency = ctx.registry.find_service(dependency_name)
        logger.debug("%s depends on %s", service.name, dependency.name)

        stage_start_dependencies(dependency, ctx, path)
        stage_start(dependency, ctx)


def stage_start_with_dependencies(service: Service, ctx: ExecutionContext) -> None:
    """Stage a service start preceded by all of its prerequisites."""
    stage_start_dependencies(service, ctx)
    stage_start(service, ctx)
