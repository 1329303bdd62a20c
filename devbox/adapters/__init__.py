"""Adapters — process management bindings.

Public re-exports for convenient access.
"""

from devbox.adapters.base import ProcessManager, ServiceProcess
from devbox.adapters.mock import MockCall, MockProcessManager
from devbox.adapters.process.manager import LocalProcessManager

__all__ = [
    "LocalProcessManager",
    "MockCall",
    "MockProcessManager",
    "ProcessManager",
    "ServiceProcess",
]
