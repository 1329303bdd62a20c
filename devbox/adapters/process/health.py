"""
Health checks — wait until a started service answers.

Resources follow the wait-on conventions:

    http://host:port/path    any response below 400
    https://host:port/path   same, over TLS
    tcp:host:port            TCP connect succeeds
    tcp:port                 shorthand for tcp:localhost:port
"""

from __future__ import annotations

import logging
import socket
import time
import urllib.error
import urllib.request
from collections.abc import Callable

logger = logging.getLogger(__name__)


def probe_http(url: str, timeout: float = 2.0) -> bool:
    """True if the URL answers with a status below 400."""
    try:
        req = urllib.request.Request(url, method="GET", headers={"User-Agent": "devbox/1.0"})
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            return resp.status < 400
    except urllib.error.HTTPError as e:
        return e.code < 400
    except (urllib.error.URLError, OSError):
        return False


def probe_tcp(host: str, port: int, timeout: float = 2.0) -> bool:
    """True if a TCP connection to host:port succeeds."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


def probe(resource: str, timeout: float = 2.0) -> bool:
    """Probe a single resource string.

    Raises:
        ValueError: For a resource string in an unknown format.
    """
    if resource.startswith(("http://", "https://")):
        return probe_http(resource, timeout)

    if resource.startswith("tcp:"):
        target = resource[len("tcp:"):]
        host, _, port = target.rpartition(":")
        if not port.isdigit():
            raise ValueError(f"Invalid tcp resource '{resource}'")
        return probe_tcp(host or "localhost", int(port), timeout)

    raise ValueError(f"Unsupported health check resource '{resource}'")


def wait_for_resources(
    resources: list[str],
    timeout: float = 60.0,
    interval: float = 0.5,
    alive: Callable[[], bool] | None = None,
) -> tuple[bool, str]:
    """Poll until every resource is up, the timeout passes, or the process dies.

    Args:
        resources: Resource strings to wait on (all must pass).
        timeout: Overall deadline in seconds.
        interval: Delay between polling rounds.
        alive: Optional liveness check of the spawned process; waiting
            stops early when it returns False.

    Returns:
        (ok, message). message is empty when ok.
    """
    deadline = time.monotonic() + timeout
    remaining = list(resources)

    while True:
        remaining = [r for r in remaining if not probe(r)]
        if not remaining:
            return True, ""

        if alive is not None and not alive():
            return False, "process exited before becoming healthy"

        if time.monotonic() >= deadline:
            return False, f"timed out after {timeout:g}s waiting for {', '.join(remaining)}"

        logger.debug("Waiting for %s", ", ".join(remaining))
        time.sleep(interval)
