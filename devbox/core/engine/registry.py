"""
Module registry — lookup over the modules discovered for one run.

Built once per invocation from discovery output and never reshaped:
only the nested module/service ``state`` objects change afterwards.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from devbox.core.errors import ConfigError, NotFoundError
from devbox.core.models.module import Module
from devbox.core.models.service import Service

logger = logging.getLogger(__name__)


class ModuleRegistry:
    """Static snapshot of modules and their services.

    Module names and service names must each be unique across the
    whole snapshot; duplicates are a configuration error.
    """

    def __init__(self, modules: Iterable[Module]):
        self._modules: list[Module] = []
        self._services: dict[str, tuple[Module, Service]] = {}

        seen_modules: set[str] = set()
        for module in modules:
            if module.name in seen_modules:
                raise ConfigError(f'Duplicate module name "{module.name}"')
            seen_modules.add(module.name)
            self._modules.append(module)

            for service in module.services.values():
                if service.name in self._services:
                    owner = self._services[service.name][0].name
                    raise ConfigError(
                        f'Service "{service.name}" is declared by both '
                        f'"{owner}" and "{module.name}"'
                    )
                self._services[service.name] = (module, service)

        logger.debug(
            "Registry: %d modules, %d services",
            len(self._modules),
            len(self._services),
        )

    def all_modules(self) -> list[Module]:
        """All modules in discovery order."""
        return list(self._modules)

    def all_services(self) -> list[Service]:
        """All services, grouped by module in discovery order."""
        return [s for m in self._modules for s in m.services.values()]

    def module_names(self) -> list[str]:
        return [m.name for m in self._modules]

    def service_names(self) -> list[str]:
        return list(self._services.keys())

    def find_module(self, name: str) -> Module:
        """Look up a module by exact name.

        Raises:
            NotFoundError: listing every known module name.
        """
        for module in self._modules:
            if module.name == name:
                return module
        raise NotFoundError("module", name, self.module_names())

    def find_service(self, name: str) -> tuple[Module, Service]:
        """Look up a service by exact name, with its owning module.

        Raises:
            NotFoundError: listing every known service name.
        """
        found = self._services.get(name)
        if found is None:
            raise NotFoundError("service", name, self.service_names())
        return found

    def __len__(self) -> int:
        return len(self._modules)
