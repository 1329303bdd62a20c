"""
Mock process manager — test double for every process operation.

Records each call instead of touching the operating system. Failures
and outputs are configurable per command / service name, so tests can
script exactly which step breaks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from devbox.adapters.base import ProcessManager, ServiceProcess
from devbox.core.errors import ProcessStartError, RunnableFailedError
from devbox.core.models.runnable import Callback, Command, RunnableParams, Sequence
from devbox.core.models.service import ServiceProcessStatus

if TYPE_CHECKING:
    from devbox.core.context import ExecutionContext
    from devbox.core.models.module import Module
    from devbox.core.models.runnable import Runnable
    from devbox.core.models.service import Service


@dataclass
class MockCall:
    """One recorded call."""

    operation: str   # start, stop, run, run_interactive
    target: str      # service name or command
    module: str = ""
    env: dict[str, Any] = field(default_factory=dict)


class MockProcessManager(ProcessManager):
    """Universal mock process manager for testing.

    By default every operation succeeds, ``run`` returns
    ``default_output`` and started services report Online.
    """

    def __init__(self, default_output: str = "[mock] output"):
        self._default_output = default_output
        self._outputs: dict[str, str] = {}
        self._failing_commands: set[str] = set()
        self._failing_services: set[str] = set()
        self._processes: dict[str, ServiceProcessStatus] = {}
        self._calls: list[MockCall] = []
        self.shutdown_called = False

    @property
    def name(self) -> str:
        return "mock"

    @property
    def calls(self) -> list[MockCall]:
        """All calls this mock has received, in order."""
        return self._calls

    @property
    def call_count(self) -> int:
        return len(self._calls)

    def calls_for(self, operation: str) -> list[str]:
        """Targets of every recorded call of one operation, in order."""
        return [c.target for c in self._calls if c.operation == operation]

    # ── Configuration ───────────────────────────────────────────

    def set_output(self, command: str, output: str) -> None:
        """Output returned by ``run`` for a command."""
        self._outputs[command] = output

    def fail_command(self, command: str) -> None:
        """Make a command fail (exit code 1) in run and run_interactive."""
        self._failing_commands.add(command)

    def fail_service(self, service_name: str) -> None:
        """Make start_and_wait fail for a service."""
        self._failing_services.add(service_name)

    def set_process_status(self, service_name: str, status: ServiceProcessStatus) -> None:
        self._processes[service_name] = status

    def reset(self) -> None:
        """Clear call log and scripted behaviour."""
        self._calls.clear()
        self._outputs.clear()
        self._failing_commands.clear()
        self._failing_services.clear()
        self._processes.clear()

    # ── ProcessManager ──────────────────────────────────────────

    def start_and_wait(self, service: Service, env: dict[str, Any], ctx: ExecutionContext) -> None:
        self._calls.append(MockCall("start", service.name, service.module.name, dict(env)))
        if service.name in self._failing_services:
            raise ProcessStartError(f'Service "{service.name}" failed to start: [mock] failure')
        self._processes[service.name] = ServiceProcessStatus.ONLINE

    def stop_and_wait(self, service: Service, ctx: ExecutionContext) -> None:
        self._calls.append(MockCall("stop", service.name, service.module.name))
        self._processes[service.name] = ServiceProcessStatus.OFFLINE

    def find_service_process(self, service: Service, ctx: ExecutionContext) -> ServiceProcess | None:
        status = self._processes.get(service.name)
        if status is None:
            return None
        return ServiceProcess(name=service.name, status=status)

    def run(
        self,
        module: Module,
        runnable: Runnable,
        env: dict[str, Any],
        ctx: ExecutionContext,
    ) -> str:
        if isinstance(runnable, Sequence):
            output = ""
            for item in runnable.items:
                output = self.run(module, item, env, ctx)
            return output

        if isinstance(runnable, Callback):
            self._calls.append(MockCall("run", runnable.describe(), module.name, dict(env)))
            result = runnable.fn(RunnableParams(module=module, ctx=ctx))
            return "" if result is None else str(result)

        assert isinstance(runnable, Command)
        self._calls.append(MockCall("run", runnable.command, module.name, dict(env)))
        if runnable.command in self._failing_commands:
            raise RunnableFailedError(runnable.command, 1, "[mock] failure")
        return self._outputs.get(runnable.command, self._default_output)

    def run_interactive(
        self,
        module: Module,
        command: str,
        env: dict[str, Any],
        ctx: ExecutionContext,
    ) -> None:
        self._calls.append(MockCall("run_interactive", command, module.name, dict(env)))
        if command in self._failing_commands:
            raise RunnableFailedError(command, 1)

    def on_shutdown(self) -> None:
        self.shutdown_called = True
