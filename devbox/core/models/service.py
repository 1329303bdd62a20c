"""
Service model — one runnable process exposed by a module.

The ServiceSpec is declared in the owning module's devbox.yml under
``services:``. The state is runtime-only: process status is observed
from the process manager, never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Annotated, Any

from pydantic import BaseModel, Field, PlainValidator

from devbox.core.models.runnable import parse_runnable

if TYPE_CHECKING:
    from devbox.core.models.module import Module

# A Runnable parsed from config (see models/runnable.py)
RunnableSpec = Annotated[Any, PlainValidator(parse_runnable)]


class ServiceProcessStatus(StrEnum):
    """Observed state of a service process."""

    UNKNOWN = "Unknown"
    ONLINE = "Online"
    OFFLINE = "Offline"


class HealthCheckSpec(BaseModel):
    """Resources to wait on before a started service counts as up.

    Resources are ``http://…`` / ``https://…`` URLs (any 2xx/3xx
    response) or ``tcp:host:port`` sockets (connect succeeds).
    """

    resources: list[str] = Field(default_factory=list)
    timeout: float = 60.0
    interval: float = 0.5


class ServiceSpec(BaseModel):
    """Declared configuration of a service."""

    name: str
    port: int | None = None
    container_port: int | None = None
    start: str | None = None
    dependencies: list[str] = Field(default_factory=list)
    env: dict[str, Any] = Field(default_factory=dict)
    provide_env_values: dict[str, str] = Field(default_factory=dict)  # ENV_NAME -> "svc.provider"
    value_providers: dict[str, RunnableSpec] = Field(default_factory=dict)
    values: dict[str, Any] = Field(default_factory=dict)
    health_check: HealthCheckSpec | None = None


@dataclass
class ServiceState:
    process_status: ServiceProcessStatus = ServiceProcessStatus.UNKNOWN


@dataclass(eq=False)
class Service:
    """A service bound to its owning module for one invocation."""

    name: str
    spec: ServiceSpec
    module: Module = field(repr=False)
    state: ServiceState = field(default_factory=ServiceState)
