"""Internal modules — shipped with devbox, discovered alongside project modules."""

from __future__ import annotations

from devbox.core.models.module import ModuleSpec


def internal_module_specs() -> list[ModuleSpec]:
    """Specs of every internal module, in registration order."""
    from devbox.modules import compose

    return [compose.module_spec()]
