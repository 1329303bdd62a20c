"""
Tests for the CLI — command wiring, output and exit codes.
"""

import json
import textwrap
from pathlib import Path

from click.testing import CliRunner

from devbox import __version__
from devbox.adapters.mock import MockProcessManager
from devbox.core.config.discovery import FileModuleStore
from devbox.core.config.loader import load_project_options
from devbox.core.use_cases.orchestrator import Orchestrator
from devbox.main import cli


def _write_project(root: Path) -> None:
    (root / "api").mkdir()
    (root / "api" / "devbox.yml").write_text(
        textwrap.dedent(
            """\
            build: touch built.flag
            runnables:
              hello: echo hello > hello.txt
            services:
              api:
                start: npm start
                dependencies: [postgres]
                values:
                  port: 3000
            """
        )
    )
    (root / "db").mkdir()
    (root / "db" / "devbox.yml").write_text(
        textwrap.dedent(
            """\
            migrations:
              001-init: touch 001.flag
              002-users: touch 002.flag
            docker:
              image: postgres:16
            services:
              postgres:
                port: 5432
            """
        )
    )


def _mocked(root: Path) -> tuple[dict, MockProcessManager]:
    """CLI obj with an Orchestrator over real files and mocked processes."""
    processes = MockProcessManager()
    options = load_project_options(root)
    orchestrator = Orchestrator(options, FileModuleStore(options), processes)
    return {"orchestrator": orchestrator}, processes


# ── Basics ───────────────────────────────────────────────────────────


class TestCliBasics:
    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("start", "stop", "build", "migrate", "value", "list", "history", "run", "compose"):
            assert command in result.output

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_start_requires_service(self):
        result = CliRunner().invoke(cli, ["start"])
        assert result.exit_code != 0
        assert "SERVICE" in result.output


# ── Commands against a real project ──────────────────────────────────


class TestCliCommands:
    def test_build_runs_command(self, tmp_path: Path):
        _write_project(tmp_path)
        result = CliRunner().invoke(cli, ["--root", str(tmp_path), "build", "api"])
        assert result.exit_code == 0, result.output
        assert (tmp_path / "api" / "built.flag").is_file()
        assert "✅ api built" in result.output

        state = json.loads((tmp_path / ".devbox" / "state.json").read_text())
        assert state["modules"]["api"]["built"] is True
        assert state["last_operation"]["operation"] == "build"

    def test_build_again_is_noop(self, tmp_path: Path):
        _write_project(tmp_path)
        runner = CliRunner()
        runner.invoke(cli, ["--root", str(tmp_path), "build", "api"])
        (tmp_path / "api" / "built.flag").unlink()

        result = runner.invoke(cli, ["--root", str(tmp_path), "build", "api"])
        assert result.exit_code == 0
        assert "already built" in result.output
        assert not (tmp_path / "api" / "built.flag").exists()

    def test_build_force(self, tmp_path: Path):
        _write_project(tmp_path)
        runner = CliRunner()
        runner.invoke(cli, ["--root", str(tmp_path), "build", "api"])
        (tmp_path / "api" / "built.flag").unlink()

        result = runner.invoke(cli, ["--root", str(tmp_path), "build", "api", "--force"])
        assert result.exit_code == 0
        assert (tmp_path / "api" / "built.flag").is_file()

    def test_build_without_action_fails(self, tmp_path: Path):
        _write_project(tmp_path)
        result = CliRunner().invoke(cli, ["--root", str(tmp_path), "build", "db"])
        assert result.exit_code == 1
        assert "has no build action" in result.output

    def test_migrate(self, tmp_path: Path):
        _write_project(tmp_path)
        result = CliRunner().invoke(cli, ["--root", str(tmp_path), "migrate", "db"])
        assert result.exit_code == 0, result.output
        assert (tmp_path / "db" / "001.flag").is_file()
        assert (tmp_path / "db" / "002.flag").is_file()
        assert "001-init, 002-users" in result.output

        again = CliRunner().invoke(cli, ["--root", str(tmp_path), "migrate", "db"])
        assert "no pending migrations" in again.output

    def test_value(self, tmp_path: Path):
        _write_project(tmp_path)
        result = CliRunner().invoke(cli, ["--root", str(tmp_path), "value", "api.port"])
        assert result.exit_code == 0
        assert result.output.strip() == "3000"

    def test_value_unknown(self, tmp_path: Path):
        _write_project(tmp_path)
        result = CliRunner().invoke(cli, ["--root", str(tmp_path), "value", "api.secret"])
        assert result.exit_code == 1
        assert "Could not get api.secret value" in result.output

    def test_value_malformed(self, tmp_path: Path):
        _write_project(tmp_path)
        result = CliRunner().invoke(cli, ["--root", str(tmp_path), "value", "api"])
        assert result.exit_code == 1
        assert "Invalid parameters" in result.output

    def test_run_named(self, tmp_path: Path):
        _write_project(tmp_path)
        result = CliRunner().invoke(cli, ["--root", str(tmp_path), "run", "api", "hello"])
        assert result.exit_code == 0, result.output
        assert (tmp_path / "api" / "hello.txt").read_text().strip() == "hello"

    def test_run_failing_command(self, tmp_path: Path):
        _write_project(tmp_path)
        result = CliRunner().invoke(cli, ["--root", str(tmp_path), "run", "api", "exit 4"])
        assert result.exit_code == 1
        assert "exit code 4" in result.output

    def test_list(self, tmp_path: Path):
        _write_project(tmp_path)
        result = CliRunner().invoke(cli, ["--root", str(tmp_path), "list"])
        assert result.exit_code == 0
        assert "api [api]: Unknown, built: false, pending migrations: " in result.output
        assert "postgres [db]: Unknown, built: false, pending migrations: 001-init, 002-users" in result.output

    def test_list_json(self, tmp_path: Path):
        _write_project(tmp_path)
        result = CliRunner().invoke(cli, ["--root", str(tmp_path), "list", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert [row["service"] for row in data] == ["api", "postgres"]

    def test_list_empty_project(self, tmp_path: Path):
        result = CliRunner().invoke(cli, ["--root", str(tmp_path), "list"])
        assert result.exit_code == 0
        assert "No services found" in result.output

    def test_compose(self, tmp_path: Path):
        _write_project(tmp_path)
        result = CliRunner().invoke(cli, ["--root", str(tmp_path), "compose"])
        assert result.exit_code == 0, result.output
        assert "postgres:16" in (tmp_path / "docker-compose.yml").read_text()

    def test_history(self, tmp_path: Path):
        _write_project(tmp_path)
        runner = CliRunner()
        runner.invoke(cli, ["--root", str(tmp_path), "build", "api"])
        runner.invoke(cli, ["--root", str(tmp_path), "build", "db"])

        result = runner.invoke(cli, ["--root", str(tmp_path), "history"])
        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert lines[0].startswith("✓ ") and lines[0].endswith("build api")
        assert lines[1].startswith("❌ ") and "has no build action" in lines[1]

        result = runner.invoke(cli, ["--root", str(tmp_path), "history", "-n", "1", "--json"])
        data = json.loads(result.output)
        assert [(e["operation"], e["target"], e["status"]) for e in data] == [("build", "db", "failed")]

    def test_history_empty(self, tmp_path: Path):
        result = CliRunner().invoke(cli, ["--root", str(tmp_path), "history"])
        assert result.exit_code == 0
        assert "No operations recorded yet" in result.output

    def test_failure_reported_when_state_dir_unwritable(self, tmp_path: Path):
        _write_project(tmp_path)
        (tmp_path / "db" / "devbox.yml").write_text("migrations:\n  m1: 'false'\n")
        (tmp_path / ".devbox").write_text("not a directory")
        result = CliRunner().invoke(cli, ["--root", str(tmp_path), "migrate", "db"])
        assert result.exit_code == 1
        assert '❌ Migration "m1" of module "db" failed' in result.output

    def test_corrupt_state_file(self, tmp_path: Path):
        _write_project(tmp_path)
        (tmp_path / ".devbox").mkdir()
        (tmp_path / ".devbox" / "state.json").write_text("{not json")
        result = CliRunner().invoke(cli, ["--root", str(tmp_path), "build", "api"])
        assert result.exit_code == 1
        assert "❌ Cannot read state file" in result.output
        assert not (tmp_path / "api" / "built.flag").exists()

    def test_invalid_module_file(self, tmp_path: Path):
        (tmp_path / "devbox.yml").write_text("services: nope\n")
        result = CliRunner().invoke(cli, ["--root", str(tmp_path), "list"])
        assert result.exit_code == 1
        assert "devbox.yml" in result.output


# ── Service commands (mocked processes) ──────────────────────────────


class TestCliServices:
    def test_start_with_dependencies(self, tmp_path: Path):
        _write_project(tmp_path)
        obj, processes = _mocked(tmp_path)
        result = CliRunner().invoke(cli, ["start", "api"], obj=obj)
        assert result.exit_code == 0, result.output
        assert processes.calls_for("start") == ["postgres", "api"]
        assert "✓ service postgres: Online" in result.output
        assert "✅ api started" in result.output

    def test_start_quiet(self, tmp_path: Path):
        _write_project(tmp_path)
        obj, _ = _mocked(tmp_path)
        result = CliRunner().invoke(cli, ["--quiet", "start", "api"], obj=obj)
        assert result.exit_code == 0
        assert "✓" not in result.output

    def test_start_unknown(self, tmp_path: Path):
        _write_project(tmp_path)
        obj, _ = _mocked(tmp_path)
        result = CliRunner().invoke(cli, ["start", "ghost"], obj=obj)
        assert result.exit_code == 1
        assert 'Service "ghost" not found' in result.output

    def test_start_failure(self, tmp_path: Path):
        _write_project(tmp_path)
        obj, processes = _mocked(tmp_path)
        processes.fail_service("postgres")
        result = CliRunner().invoke(cli, ["start", "api"], obj=obj)
        assert result.exit_code == 1
        assert "failed to start" in result.output
        assert processes.calls_for("start") == ["postgres"]

    def test_stop(self, tmp_path: Path):
        _write_project(tmp_path)
        obj, processes = _mocked(tmp_path)
        result = CliRunner().invoke(cli, ["stop", "api"], obj=obj)
        assert result.exit_code == 0
        assert processes.calls_for("stop") == ["api"]
        assert "✅ api stopped" in result.output
