"""
devbox — CLI entrypoint.

Usage:
    devbox --help
    devbox start api
    devbox value postgres.url
    devbox list --json
"""

from __future__ import annotations

import json
import os
import sys
from collections.abc import Callable
from pathlib import Path

import click

from devbox import __version__
from devbox.core.errors import DevboxError, ValidationError
from devbox.core.observability.logging_config import (
    ENV_FILE,
    ENV_FILE_LEVEL,
    resolve_level,
    setup_logging,
)
from devbox.core.use_cases.orchestrator import OperationResult, Orchestrator


@click.group()
@click.version_option(version=__version__, prog_name="devbox")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--root",
    "root",
    type=click.Path(file_okay=False),
    default=None,
    help="Project root (default: nearest devbox.project.yml, else cwd).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    root: str | None,
) -> None:
    """devbox — build, migrate and run your local development services."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["root"] = Path(root) if root else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet),
        log_file=os.environ.get(ENV_FILE),
        log_file_level=os.environ.get(ENV_FILE_LEVEL),
    )


def _orchestrator(ctx: click.Context) -> Orchestrator:
    """The invocation's Orchestrator; tests may inject one via ``obj``."""
    orchestrator = ctx.obj.get("orchestrator")
    if orchestrator is None:
        orchestrator = Orchestrator.for_project(ctx.obj.get("root"))
        ctx.obj["orchestrator"] = orchestrator
        ctx.call_on_close(orchestrator.shutdown)
    return orchestrator


def _invoke(fn: Callable[[], OperationResult]) -> OperationResult:
    """Run an operation; print the error and exit 1 on failure."""
    try:
        return fn()
    except ValidationError as e:
        click.secho("❌ Invalid parameters:", fg="red", bold=True)
        for err in e.errors:
            click.echo(f"   • {err}")
        sys.exit(1)
    except DevboxError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)


def _print_report(ctx: click.Context, title: str, result: OperationResult) -> None:
    quiet = ctx.obj.get("quiet", False)
    if not quiet:
        for change in result.report.changes:
            if change.status == "applied":
                click.secho(f"   ✓ {change.description}", fg="green", nl=False)
                click.echo(f" ({change.detail})" if change.detail else "")
            else:
                click.secho(f"   ⊘ {change.description} ", fg="yellow", nl=False)
                click.echo(f"({change.detail})")
    timing = f" ({result.duration_ms}ms)" if ctx.obj.get("verbose") else ""
    click.secho(f"✅ {title}{timing}", fg="green", bold=True)


# ── Service commands ───────────────────────────────────────────


@cli.command()
@click.argument("service")
@click.pass_context
def start(ctx: click.Context, service: str) -> None:
    """Start SERVICE and everything it depends on.

    Builds and migrates owning modules first when needed.
    """
    orchestrator = _orchestrator(ctx)
    result = _invoke(lambda: orchestrator.start(service))
    _print_report(ctx, f"{service} started", result)


@cli.command()
@click.argument("service")
@click.pass_context
def stop(ctx: click.Context, service: str) -> None:
    """Stop SERVICE (its dependencies keep running)."""
    orchestrator = _orchestrator(ctx)
    result = _invoke(lambda: orchestrator.stop(service))
    _print_report(ctx, f"{service} stopped", result)


@cli.command()
@click.argument("identifier")
@click.pass_context
def value(ctx: click.Context, identifier: str) -> None:
    """Print the value IDENTIFIER (``<service>.<name>``)."""
    orchestrator = _orchestrator(ctx)
    result = _invoke(lambda: orchestrator.value(identifier))
    click.echo(result.output)


@cli.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_services(ctx: click.Context, as_json: bool) -> None:
    """List every service with its status, build flag and pending migrations."""
    orchestrator = _orchestrator(ctx)
    try:
        lines = orchestrator.list()
    except DevboxError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps([line.to_dict() for line in lines], indent=2))
        return

    if not lines:
        click.secho("No services found.", fg="yellow")
        return
    for line in lines:
        click.echo(str(line))


@cli.command()
@click.option("-n", "limit", default=20, show_default=True, help="Number of entries to show.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def history(ctx: click.Context, limit: int, as_json: bool) -> None:
    """Show the most recent operations from the audit ledger."""
    entries = _orchestrator(ctx).history(limit)

    if as_json:
        click.echo(json.dumps([e.model_dump(mode="json") for e in entries], indent=2))
        return

    if not entries:
        click.secho("No operations recorded yet.", fg="yellow")
        return
    for entry in entries:
        icon = "✓" if entry.status == "ok" else "❌"
        line = f"{icon} {entry.timestamp}  {entry.operation} {entry.target}"
        if entry.error:
            line += f": {entry.error}"
        click.echo(line)


# ── Module commands ────────────────────────────────────────────


@cli.command()
@click.argument("module")
@click.option("--force", is_flag=True, help="Rebuild even if the module is already built.")
@click.pass_context
def build(ctx: click.Context, module: str, force: bool) -> None:
    """Build MODULE unless it is already built."""
    orchestrator = _orchestrator(ctx)
    result = _invoke(lambda: orchestrator.build(module, force=force))
    if not result.report.applied:
        click.secho(f"⊘ {module} is already built (use --force to rebuild)", fg="yellow")
        return
    _print_report(ctx, f"{module} built", result)


@cli.command()
@click.argument("module")
@click.pass_context
def migrate(ctx: click.Context, module: str) -> None:
    """Apply pending migrations of MODULE."""
    orchestrator = _orchestrator(ctx)
    result = _invoke(lambda: orchestrator.migrate(module))
    if not result.report.applied:
        click.secho(f"⊘ {module}: no pending migrations", fg="yellow")
        return
    _print_report(ctx, f"{module} migrated", result)


@cli.command()
@click.argument("module")
@click.argument("runnable")
@click.pass_context
def run(ctx: click.Context, module: str, runnable: str) -> None:
    """Run RUNNABLE of MODULE.

    RUNNABLE is a name declared under ``runnables`` in the module's
    devbox.yml, or a shell command run in the module directory.

    Examples:

        devbox run api test

        devbox run api "npm outdated"
    """
    orchestrator = _orchestrator(ctx)
    result = _invoke(lambda: orchestrator.run(module, runnable))
    _print_report(ctx, f"{module}: {runnable} done", result)


@cli.command()
@click.pass_context
def compose(ctx: click.Context) -> None:
    """Generate docker-compose.yml for docker-enabled modules."""
    orchestrator = _orchestrator(ctx)
    result = _invoke(orchestrator.compose)
    click.secho(f"✅ Wrote {result.output}", fg="green", bold=True)


if __name__ == "__main__":
    cli()
