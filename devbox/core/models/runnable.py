"""
Runnable model — a unit of executable work.

A runnable is one of three shapes:

    Command   a shell-style command string (run by the process manager)
    Callback  an in-process Python callable
    Sequence  an ordered list of runnables, executed strictly in order

In module files (devbox.yml) they are written as::

    build: npm ci                         # Command
    build: [npm ci, npm run build]        # Sequence
    build: {call: "mypkg.tasks:build"}    # Callback
"""

from __future__ import annotations

import importlib
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Union

from devbox.core.errors import ConfigError

if TYPE_CHECKING:
    from devbox.core.context import ExecutionContext
    from devbox.core.models.module import Module


@dataclass(frozen=True)
class RunnableParams:
    """What a Callback runnable receives."""

    module: Module
    ctx: ExecutionContext


@dataclass(frozen=True)
class Command:
    command: str

    def describe(self) -> str:
        return self.command


@dataclass(frozen=True)
class Callback:
    fn: Callable[[RunnableParams], Any]
    name: str = ""

    def describe(self) -> str:
        return self.name or getattr(self.fn, "__qualname__", repr(self.fn))


@dataclass(frozen=True)
class Sequence:
    items: tuple[Runnable, ...] = ()

    def describe(self) -> str:
        return " && ".join(item.describe() for item in self.items)


Runnable = Union[Command, Callback, Sequence]


def import_callable(path: str) -> Callable[..., Any]:
    """Resolve a ``package.module:function`` path to a callable."""
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigError(f"Invalid callable path '{path}', expected 'package.module:function'")

    try:
        target: Any = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigError(f"Cannot import '{module_name}' for callable '{path}': {e}") from e

    for part in attr.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as e:
            raise ConfigError(f"'{path}' does not resolve to an attribute") from e

    if not callable(target):
        raise ConfigError(f"'{path}' is not callable")
    return target


def parse_runnable(raw: Any) -> Runnable:
    """Convert a configuration value into a Runnable.

    Raises:
        ConfigError: If the value has no runnable interpretation.
    """
    if isinstance(raw, (Command, Callback, Sequence)):
        return raw

    if isinstance(raw, str):
        if not raw.strip():
            raise ConfigError("Empty command runnable")
        return Command(raw)

    if isinstance(raw, (list, tuple)):
        return Sequence(tuple(parse_runnable(item) for item in raw))

    if isinstance(raw, dict):
        call = raw.get("call")
        if isinstance(call, str):
            return Callback(import_callable(call), name=call)
        raise ConfigError(f"Runnable mapping must have a 'call' key, got {sorted(raw)}")

    if callable(raw):
        return Callback(raw)

    raise ConfigError(f"Cannot interpret {type(raw).__name__} as a runnable")
