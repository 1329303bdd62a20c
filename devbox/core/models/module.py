"""
Module model — a unit of deployable functionality.

Each module has a declared spec (from its devbox.yml), a persisted
state (build and migration bookkeeping) and the services it owns.

    spec    static, validated once at discovery
    state   mutable, saved after every build/migration step
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, model_validator

from devbox.core.models.service import RunnableSpec, Service, ServiceSpec


class DockerSpec(BaseModel):
    """Container metadata used by compose generation."""

    image: str | None = None
    file: str | None = None                               # Dockerfile, relative to the module
    volumes: dict[str, str] = Field(default_factory=dict)  # host path -> container path


class ModuleSpec(BaseModel):
    """Declared configuration of a module (devbox.yml)."""

    name: str
    build: RunnableSpec | None = None
    migrations: dict[str, RunnableSpec] = Field(default_factory=dict)
    runnables: dict[str, RunnableSpec] = Field(default_factory=dict)
    docker: DockerSpec | None = None
    env: dict[str, Any] = Field(default_factory=dict)
    services: dict[str, ServiceSpec] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _default_service_names(cls, data: Any) -> Any:
        """Services keyed by name may omit the name field."""
        if not isinstance(data, dict) or not isinstance(data.get("services"), dict):
            return data
        services = {}
        for key, raw in data["services"].items():
            if isinstance(raw, ServiceSpec):
                services[key] = raw
                continue
            raw = dict(raw or {})
            raw.setdefault("name", key)
            services[key] = raw
        return {**data, "services": services}


class ModuleState(BaseModel):
    """Persisted build/migration bookkeeping of a module."""

    ran_migrations: list[str] = Field(default_factory=list)
    ran_all_migrations: bool = False
    built: bool = False


@dataclass(eq=False)
class Module:
    """A discovered module with its services for one invocation."""

    name: str
    spec: ModuleSpec
    state: ModuleState = field(default_factory=ModuleState)
    path: str = "."
    absolute_path: Path = field(default_factory=Path.cwd)
    internal: bool = False
    services: dict[str, Service] = field(default_factory=dict)

    @classmethod
    def from_spec(
        cls,
        spec: ModuleSpec,
        state: ModuleState | None = None,
        path: str = ".",
        absolute_path: Path | None = None,
        internal: bool = False,
    ) -> Module:
        """Build a module and bind a Service for each declared service spec."""
        module = cls(
            name=spec.name,
            spec=spec,
            state=state or ModuleState(),
            path=path,
            absolute_path=absolute_path or Path.cwd(),
            internal=internal,
        )
        for key, service_spec in spec.services.items():
            module.services[key] = Service(
                name=service_spec.name,
                spec=service_spec,
                module=module,
            )
        return module

    @property
    def has_build(self) -> bool:
        return self.spec.build is not None
