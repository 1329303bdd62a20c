"""
Local process manager — subprocess-based service processes.

Services run detached in their own session so they outlive the CLI
invocation that started them. Each one is tracked through a pid file:

    .devbox/pids/<service>.pid     process group leader pid
    .devbox/logs/<service>.log     combined stdout/stderr (appended)

Commands run for builds and migrations inherit the terminal; value
providers run with captured output.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

from devbox.adapters.base import ProcessManager, ServiceProcess
from devbox.adapters.process.health import wait_for_resources
from devbox.core.errors import ProcessStartError, RunnableFailedError
from devbox.core.models.runnable import Callback, Command, RunnableParams, Sequence
from devbox.core.models.service import ServiceProcessStatus

if TYPE_CHECKING:
    from devbox.core.context import ExecutionContext
    from devbox.core.models.module import Module
    from devbox.core.models.runnable import Runnable
    from devbox.core.models.service import Service

logger = logging.getLogger(__name__)


class LocalProcessManager(ProcessManager):
    """Spawn and track service processes on the local machine.

    Args:
        stop_timeout: Seconds to wait after SIGTERM before SIGKILL.
        settle_time: Seconds to watch a service with nothing to health
            check before declaring it up.
    """

    def __init__(self, stop_timeout: float = 10.0, settle_time: float = 0.5):
        self._stop_timeout = stop_timeout
        self._settle_time = settle_time

    @property
    def name(self) -> str:
        return "local"

    # ── Services ────────────────────────────────────────────────

    def start_and_wait(self, service: Service, env: dict[str, Any], ctx: ExecutionContext) -> None:
        command = service.spec.start
        if not command:
            raise ProcessStartError(f'Service "{service.name}" has no start command')

        current = self.find_service_process(service, ctx)
        if current is not None and current.status == ServiceProcessStatus.ONLINE:
            logger.info("Service %s already running (pid %s)", service.name, current.pid)
            return

        log_path = self._log_path(service, ctx)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        logger.debug("Starting %s: %s (cwd=%s)", service.name, command, service.module.absolute_path)
        with log_path.open("ab") as log:
            proc = subprocess.Popen(
                command,
                shell=True,
                cwd=service.module.absolute_path,
                env=_process_env(env),
                stdin=subprocess.DEVNULL,
                stdout=log,
                stderr=subprocess.STDOUT,
                start_new_session=True,
            )
        self._write_pid(service, ctx, proc.pid)

        ok, message = self._wait_until_up(service, proc)
        if not ok:
            if proc.poll() is None:
                _signal_group(proc.pid, signal.SIGTERM)
                try:
                    proc.wait(timeout=self._stop_timeout)
                except subprocess.TimeoutExpired:
                    _signal_group(proc.pid, signal.SIGKILL)
            self._pid_path(service, ctx).unlink(missing_ok=True)
            raise ProcessStartError(
                f'Service "{service.name}" failed to start: {message} (log: {log_path})'
            )

        logger.info("Service %s online (pid %d)", service.name, proc.pid)

    def stop_and_wait(self, service: Service, ctx: ExecutionContext) -> None:
        pid_path = self._pid_path(service, ctx)
        pid = self._read_pid(service, ctx)
        if pid is None or not _pid_alive(pid):
            logger.info("Service %s is not running", service.name)
            pid_path.unlink(missing_ok=True)
            return

        _signal_group(pid, signal.SIGTERM)
        deadline = time.monotonic() + self._stop_timeout
        while _pid_alive(pid):
            if time.monotonic() >= deadline:
                logger.warning("Service %s ignored SIGTERM, killing", service.name)
                _signal_group(pid, signal.SIGKILL)
                break
            time.sleep(0.1)

        pid_path.unlink(missing_ok=True)
        logger.info("Service %s offline", service.name)

    def find_service_process(self, service: Service, ctx: ExecutionContext) -> ServiceProcess | None:
        pid = self._read_pid(service, ctx)
        if pid is None:
            return None
        status = ServiceProcessStatus.ONLINE if _pid_alive(pid) else ServiceProcessStatus.OFFLINE
        return ServiceProcess(name=service.name, status=status, pid=pid)

    # ── Runnables ───────────────────────────────────────────────

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
            result = runnable.fn(RunnableParams(module=module, ctx=ctx))
            return "" if result is None else str(result)

        assert isinstance(runnable, Command)
        logger.debug("Running %s (cwd=%s)", runnable.command, module.absolute_path)
        result = subprocess.run(
            runnable.command,
            shell=True,
            cwd=module.absolute_path,
            env=_process_env(env),
            capture_output=True,
            text=True,
        )
        if result.returncode != 0:
            raise RunnableFailedError(runnable.command, result.returncode, result.stderr.strip())
        return result.stdout.strip()

    def run_interactive(
        self,
        module: Module,
        command: str,
        env: dict[str, Any],
        ctx: ExecutionContext,
    ) -> None:
        logger.debug("Running interactively %s (cwd=%s)", command, module.absolute_path)
        result = subprocess.run(
            command,
            shell=True,
            cwd=module.absolute_path,
            env=_process_env(env),
        )
        if result.returncode != 0:
            raise RunnableFailedError(command, result.returncode)

    # ── Internals ───────────────────────────────────────────────

    def _wait_until_up(self, service: Service, proc: subprocess.Popen) -> tuple[bool, str]:
        def alive() -> bool:
            return proc.poll() is None

        health = service.spec.health_check
        if health and health.resources:
            try:
                return wait_for_resources(
                    health.resources,
                    timeout=health.timeout,
                    interval=health.interval,
                    alive=alive,
                )
            except ValueError as e:
                return False, str(e)

        if service.spec.port:
            timeout = health.timeout if health else 60.0
            return wait_for_resources([f"tcp:localhost:{service.spec.port}"], timeout=timeout, alive=alive)

        time.sleep(self._settle_time)
        if not alive():
            return False, f"process exited with code {proc.returncode}"
        return True, ""

    def _pid_path(self, service: Service, ctx: ExecutionContext) -> Path:
        return ctx.options.state_path / "pids" / f"{service.name}.pid"

    def _log_path(self, service: Service, ctx: ExecutionContext) -> Path:
        return ctx.options.state_path / "logs" / f"{service.name}.log"

    def _write_pid(self, service: Service, ctx: ExecutionContext, pid: int) -> None:
        path = self._pid_path(service, ctx)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"{pid}\n", encoding="utf-8")

    def _read_pid(self, service: Service, ctx: ExecutionContext) -> int | None:
        path = self._pid_path(service, ctx)
        if not path.is_file():
            return None
        try:
            return int(path.read_text(encoding="utf-8").strip())
        except (OSError, ValueError):
            logger.warning("Ignoring unreadable pid file %s", path)
            return None


def _process_env(env: dict[str, Any]) -> dict[str, str]:
    """Current environment overlaid with stringified values."""
    merged = dict(os.environ)
    merged.update({key: str(value) for key, value in env.items() if value is not None})
    return merged


def _pid_alive(pid: int) -> bool:
    # Reap our own exited children first; a zombie still answers kill(0)
    try:
        waited, _ = os.waitpid(pid, os.WNOHANG)
        if waited == pid:
            return False
    except ChildProcessError:
        pass

    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


def _signal_group(pid: int, sig: signal.Signals) -> None:
    try:
        os.killpg(pid, sig)
    except ProcessLookupError:
        pass
