"""
Value provider resolver — resolve ``<service>.<name>`` identifiers.

Resolution order for ``api.url``:

    1. api's spec.values["url"]            static, returned as-is, no build
    2. api's spec.value_providers["url"]   build module if needed, run, return output
    3. neither                             ValueProviderNotFoundError

Every failure is re-raised as ValueResolutionError naming the
identifier. Nothing is cached: each call recomputes from current state.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from devbox.core.context import ExecutionContext
from devbox.core.engine.reconciler import execute_staged
from devbox.core.engine.staging import stage_build_if_needed
from devbox.core.errors import ValidationError, ValueProviderNotFoundError, ValueResolutionError

logger = logging.getLogger(__name__)


def split_identifier(identifier: str) -> tuple[str, str]:
    """Split ``service.provider`` on the first dot.

    Raises:
        ValidationError: If either part is empty or the dot is missing.
    """
    service_name, sep, provider_name = identifier.partition(".")
    if not sep or not service_name or not provider_name:
        raise ValidationError([f"Value identifier '{identifier}' must look like '<service>.<name>'"])
    return service_name, provider_name


def provide_value(identifier: str, ctx: ExecutionContext) -> Any:
    """Resolve one value identifier.

    Raises:
        ValueResolutionError: Wrapping whatever went wrong.
    """
    try:
        return _resolve(identifier, ctx)
    except ValueResolutionError:
        raise
    except Exception as e:
        raise ValueResolutionError(identifier, e) from e


def provide_values(identifiers: Mapping[str, str], ctx: ExecutionContext) -> dict[str, Any]:
    """Resolve several named values, independently and in mapping order."""
    return {name: provide_value(identifier, ctx) for name, identifier in identifiers.items()}


def _resolve(identifier: str, ctx: ExecutionContext) -> Any:
    service_name, provider_name = split_identifier(identifier)
    module, service = ctx.registry.find_service(service_name)
    spec = service.spec

    if provider_name in spec.values:
        logger.debug("Value %s: static", identifier)
        return spec.values[provider_name]

    runnable = spec.value_providers.get(provider_name)
    if runnable is None:
        known = sorted({*spec.values, *spec.value_providers})
        raise ValueProviderNotFoundError(service_name, provider_name, known)

    # Build just this module, without touching the caller's queue
    build_ctx = ctx.fork()
    if stage_build_if_needed(module, build_ctx):
        ctx.forked_reports.append(execute_staged(build_ctx))

    env: dict[str, Any] = dict(module.spec.env)
    env.update(spec.env)
    logger.debug("Value %s: running provider %s", identifier, runnable.describe())
    return ctx.processes.run(module, runnable, env, ctx)
