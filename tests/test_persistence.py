"""
Tests for the audit ledger — append, read back, corruption, failures.
"""

from __future__ import annotations

from pathlib import Path

from vpsetup.core.persistence.audit import AuditEntry, AuditWriter, default_audit_path


def _entry(op: str, status: str = "ok") -> AuditEntry:
    return AuditEntry(operation_id=op, mode="auto", status=status, resolved=["firewall"])


class TestDefaultPath:
    def test_env_override(self, tmp_path: Path):
        environ = {"VPS_SETUP_STATE_DIR": str(tmp_path)}
        assert default_audit_path(environ) == tmp_path / "audit.ndjson"

    def test_fallback(self):
        assert default_audit_path({}) == Path("/var/lib/vps-setup/audit.ndjson")

    def test_reads_process_env(self, tmp_path: Path):
        # isolated_env points VPS_SETUP_STATE_DIR at tmp_path / "state"
        assert default_audit_path() == tmp_path / "state" / "audit.ndjson"


class TestAuditWriter:
    def test_write_and_read(self, tmp_path: Path):
        writer = AuditWriter(tmp_path / "state" / "audit.ndjson")
        writer.write(_entry("op-1"))
        writer.write(_entry("op-2", status="failed"))

        entries = writer.read_all()
        assert [e.operation_id for e in entries] == ["op-1", "op-2"]
        assert entries[1].status == "failed"
        assert writer.entry_count() == 2

    def test_one_json_line_per_entry(self, tmp_path: Path):
        path = tmp_path / "audit.ndjson"
        writer = AuditWriter(path)
        writer.write(_entry("op-1"))
        writer.write(_entry("op-2"))
        lines = path.read_text().splitlines()
        assert len(lines) == 2
        assert lines[0].startswith("{")

    def test_read_recent(self, tmp_path: Path):
        writer = AuditWriter(tmp_path / "audit.ndjson")
        for i in range(5):
            writer.write(_entry(f"op-{i}"))
        assert [e.operation_id for e in writer.read_recent(2)] == ["op-3", "op-4"]
        assert writer.read_recent(0) == []
        assert len(writer.read_recent(50)) == 5

    def test_missing_file(self, tmp_path: Path):
        writer = AuditWriter(tmp_path / "nothing.ndjson")
        assert writer.read_all() == []
        assert writer.entry_count() == 0

    def test_corrupt_lines_skipped(self, tmp_path: Path):
        path = tmp_path / "audit.ndjson"
        writer = AuditWriter(path)
        writer.write(_entry("op-1"))
        with path.open("a") as f:
            f.write("{not json\n\n")
            f.write('{"modules_total": "many"}\n')
        writer.write(_entry("op-2"))

        assert [e.operation_id for e in writer.read_all()] == ["op-1", "op-2"]

    def test_write_failure_does_not_raise(self, tmp_path: Path, caplog):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")
        writer = AuditWriter(blocker / "audit.ndjson")
        writer.write(_entry("op-1"))
        assert "Failed to write audit entry" in caplog.text
        assert writer.read_all() == []
