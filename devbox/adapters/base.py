"""
Process manager base — the contract between the engine and processes.

The engine never spawns or signals processes itself. Everything that
touches the operating system goes through a ProcessManager:

    start_and_wait        spawn a service, return once it is up
    stop_and_wait         stop a service, return once it is gone
    find_service_process  observe a service's process, if any
    run                   run a runnable, capture and return output
    run_interactive       run a command attached to the terminal
    on_shutdown           release resources when the CLI exits
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from devbox.core.models.service import ServiceProcessStatus

if TYPE_CHECKING:
    from devbox.core.context import ExecutionContext
    from devbox.core.models.module import Module
    from devbox.core.models.runnable import Runnable
    from devbox.core.models.service import Service


@dataclass(frozen=True)
class ServiceProcess:
    """Observed process of a service."""

    name: str
    status: ServiceProcessStatus
    pid: int | None = None


class ProcessManager(ABC):
    """Abstract base class for process managers.

    Implementations raise DevboxError subclasses on failure
    (RunnableFailedError, ProcessStartError); the engine propagates them.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Identifier (e.g., 'local', 'mock')."""

    @abstractmethod
    def start_and_wait(self, service: Service, env: dict[str, Any], ctx: ExecutionContext) -> None:
        """Start the service process and wait until it is up."""

    @abstractmethod
    def stop_and_wait(self, service: Service, ctx: ExecutionContext) -> None:
        """Stop the service process and wait until it has exited."""

    @abstractmethod
    def find_service_process(self, service: Service, ctx: ExecutionContext) -> ServiceProcess | None:
        """Return the service's process, or None when nothing is known."""

    @abstractmethod
    def run(
        self,
        module: Module,
        runnable: Runnable,
        env: dict[str, Any],
        ctx: ExecutionContext,
    ) -> str:
        """Run a runnable in the module directory and return its output."""

    @abstractmethod
    def run_interactive(
        self,
        module: Module,
        command: str,
        env: dict[str, Any],
        ctx: ExecutionContext,
    ) -> None:
        """Run a command in the module directory with terminal I/O."""

    def on_shutdown(self) -> None:
        """Hook called once when the CLI exits. Default: nothing to release."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
