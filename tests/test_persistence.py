"""
Tests for persistence — state file and audit ledger.
"""

import json
from pathlib import Path

import pytest

from devbox.core.config.discovery import FileModuleStore
from devbox.core.context import ProjectOptions
from devbox.core.errors import StateFileError
from devbox.core.models import ModuleState, OperationRecord, ProjectState
from devbox.core.persistence.audit import AuditEntry, AuditWriter, generate_operation_id
from devbox.core.persistence.state_file import default_state_path, load_state, save_state

# ── State file ───────────────────────────────────────────────────────


class TestStateFile:
    def test_default_path(self, tmp_state_dir: Path):
        assert default_state_path(tmp_state_dir) == tmp_state_dir / "state.json"

    def test_load_missing_returns_fresh(self, tmp_path: Path):
        state = load_state(tmp_path / "nope.json")
        assert state.schema_version == 1
        assert state.modules == {}

    def test_save_and_load(self, tmp_state_dir: Path):
        path = default_state_path(tmp_state_dir)
        state = ProjectState()
        state.set_module_state("api", ModuleState(built=True, ran_migrations=["001", "002"]))
        state.last_operation = OperationRecord(operation_id="op-1", operation="build", status="ok")
        save_state(state, path)

        loaded = load_state(path)
        assert loaded.modules["api"].built is True
        assert loaded.modules["api"].ran_migrations == ["001", "002"]
        assert loaded.last_operation.operation == "build"

    def test_save_creates_parent(self, tmp_path: Path):
        path = tmp_path / "deep" / ".devbox" / "state.json"
        save_state(ProjectState(), path)
        assert path.is_file()

    def test_save_is_json(self, tmp_state_dir: Path):
        path = default_state_path(tmp_state_dir)
        save_state(ProjectState(), path)
        data = json.loads(path.read_text())
        assert data["schema_version"] == 1

    def test_no_temp_files_left(self, tmp_state_dir: Path):
        path = default_state_path(tmp_state_dir)
        save_state(ProjectState(), path)
        save_state(ProjectState(), path)
        assert [p.name for p in tmp_state_dir.iterdir()] == ["state.json"]

    def test_corrupt_file_raises(self, tmp_state_dir: Path):
        path = default_state_path(tmp_state_dir)
        path.write_text("{not json")
        with pytest.raises(StateFileError, match="state.json"):
            load_state(path)

    def test_wrong_shape_raises(self, tmp_state_dir: Path):
        path = default_state_path(tmp_state_dir)
        path.write_text(json.dumps({"modules": {"api": {"built": "maybe"}}}))
        with pytest.raises(StateFileError):
            load_state(path)

    def test_corrupt_file_left_untouched(self, tmp_path: Path):
        options = ProjectOptions(root=tmp_path)
        store = FileModuleStore(options)
        store.state_path.parent.mkdir()
        store.state_path.write_text("{not json")
        with pytest.raises(StateFileError):
            store.record_operation(OperationRecord(operation_id="op-1", operation="build"))
        assert store.state_path.read_text() == "{not json"

    def test_save_touches_updated_at(self, tmp_state_dir: Path):
        state = ProjectState(updated_at="2000-01-01T00:00:00+00:00")
        save_state(state, default_state_path(tmp_state_dir))
        assert state.updated_at != "2000-01-01T00:00:00+00:00"


# ── Audit ledger ─────────────────────────────────────────────────────


class TestAuditWriter:
    def test_write_and_read(self, tmp_state_dir: Path):
        writer = AuditWriter(tmp_state_dir / "audit.ndjson")
        writer.write(AuditEntry(operation_id="op-1", operation="start", target="api", status="ok"))
        writer.write(AuditEntry(operation_id="op-2", operation="stop", target="api", status="ok"))

        entries = writer.read_all()
        assert [e.operation_id for e in entries] == ["op-1", "op-2"]

    def test_one_line_per_entry(self, tmp_state_dir: Path):
        path = tmp_state_dir / "audit.ndjson"
        writer = AuditWriter(path)
        for i in range(3):
            writer.write(AuditEntry(operation_id=f"op-{i}", changes=[{"change": "x", "status": "applied"}]))
        lines = path.read_text().splitlines()
        assert len(lines) == 3
        assert json.loads(lines[0])["changes"][0]["change"] == "x"

    def test_read_recent(self, tmp_state_dir: Path):
        writer = AuditWriter(tmp_state_dir / "audit.ndjson")
        for i in range(5):
            writer.write(AuditEntry(operation_id=f"op-{i}"))
        assert [e.operation_id for e in writer.read_recent(2)] == ["op-3", "op-4"]

    def test_read_missing(self, tmp_path: Path):
        assert AuditWriter(tmp_path / "none.ndjson").read_all() == []

    def test_skips_corrupt_lines(self, tmp_state_dir: Path):
        path = tmp_state_dir / "audit.ndjson"
        writer = AuditWriter(path)
        writer.write(AuditEntry(operation_id="op-1"))
        with path.open("a") as f:
            f.write("garbage\n")
        writer.write(AuditEntry(operation_id="op-2"))
        assert [e.operation_id for e in writer.read_all()] == ["op-1", "op-2"]

    def test_write_failure_is_not_raised(self, tmp_path: Path):
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory")
        writer = AuditWriter(blocker / "audit.ndjson")
        writer.write(AuditEntry(operation_id="op-1"))
        assert writer.read_all() == []


class TestOperationId:
    def test_format(self):
        op_id = generate_operation_id()
        assert op_id.startswith("op-")
        assert len(op_id.split("-")) == 4

    def test_unique(self):
        assert len({generate_operation_id() for _ in range(50)}) == 50
