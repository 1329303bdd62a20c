"""
Compose module — generate docker-compose.yml from discovered modules.

Every service of every module that declares ``docker`` becomes one
compose service:

    docker.image      → image
    docker.file       → build (module dir + Dockerfile), image devbox-<module>,
                        source mounted at /devbox
    docker.volumes    → volumes
    module/service env → environment
    port              → "<port>:<container_port or port>"
    dependencies      → depends_on (only services that are in the file)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from devbox.core.models.module import Module, ModuleSpec
from devbox.core.models.runnable import Callback, RunnableParams

logger = logging.getLogger(__name__)

MODULE_NAME = "devbox-compose"
WORKDIR = "/devbox"


def build_compose(modules: list[Module]) -> dict[str, Any]:
    """Compose document for all docker-enabled modules."""
    docker_modules = [m for m in modules if m.spec.docker is not None]
    compose_names = {s.name for m in docker_modules for s in m.services.values()}

    services: dict[str, Any] = {}
    for module in docker_modules:
        docker = module.spec.docker
        assert docker is not None
        module_dir = f"./{module.path}" if module.path != "." else "."

        for service in module.services.values():
            entry: dict[str, Any] = {}
            volumes: list[str] = []

            if docker.image:
                entry["image"] = docker.image

            if docker.file:
                entry["image"] = f"devbox-{module.name}"
                entry["build"] = {"context": module_dir, "dockerfile": docker.file}
                entry["working_dir"] = WORKDIR
                volumes.append(f"{module_dir}:{WORKDIR}")

            for host_path, container_path in docker.volumes.items():
                volumes.append(f"{host_path}:{container_path}")

            environment = {**module.spec.env, **service.spec.env}
            if environment:
                entry["environment"] = {k: _env_str(v) for k, v in environment.items()}

            if service.spec.port:
                container_port = service.spec.container_port or service.spec.port
                entry["ports"] = [f"{service.spec.port}:{container_port}"]

            depends_on = [d for d in service.spec.dependencies if d in compose_names]
            if depends_on:
                entry["depends_on"] = depends_on

            if volumes:
                entry["volumes"] = volumes

            services[service.name] = entry

    return {"services": services}


def write_compose(modules: list[Module], path: Path) -> Path:
    """Render the compose document and replace ``path`` with it."""
    document = build_compose(modules)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(document, sort_keys=False, default_flow_style=False), encoding="utf-8")
    logger.info("Wrote %s (%d services)", path, len(document["services"]))
    return path


def generate(params: RunnableParams) -> str:
    """Callback runnable: write the project's compose file."""
    ctx = params.ctx
    path = write_compose(ctx.registry.all_modules(), ctx.options.compose_path)
    return str(path)


def module_spec() -> ModuleSpec:
    return ModuleSpec(
        name=MODULE_NAME,
        runnables={"generate": Callback(generate, name="generate-compose")},
    )


def _env_str(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
