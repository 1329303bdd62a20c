"""
Domain models for the orchestrator.

All models are re-exported here for convenient access:

    from devbox.core.models import Module, Service, Command, BuildRequested, ProjectState
"""

from devbox.core.models.change import (
    BuildRequested,
    MigrationsRequested,
    ServiceStatusRequested,
    StagedChange,
)
from devbox.core.models.module import DockerSpec, Module, ModuleSpec, ModuleState
from devbox.core.models.runnable import (
    Callback,
    Command,
    Runnable,
    RunnableParams,
    Sequence,
    parse_runnable,
)
from devbox.core.models.service import (
    HealthCheckSpec,
    Service,
    ServiceProcessStatus,
    ServiceSpec,
    ServiceState,
)
from devbox.core.models.state import OperationRecord, ProjectState

__all__ = [
    # change.py
    "BuildRequested",
    # runnable.py
    "Callback",
    "Command",
    # module.py
    "DockerSpec",
    # service.py
    "HealthCheckSpec",
    "MigrationsRequested",
    "Module",
    "ModuleSpec",
    "ModuleState",
    # state.py
    "OperationRecord",
    "ProjectState",
    "Runnable",
    "RunnableParams",
    "Sequence",
    "Service",
    "ServiceProcessStatus",
    "ServiceSpec",
    "ServiceState",
    "ServiceStatusRequested",
    "StagedChange",
    "parse_runnable",
]
