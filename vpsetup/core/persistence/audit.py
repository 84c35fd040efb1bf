"""
Audit ledger — append-only history of setup runs.

Every run writes one entry to an NDJSON (newline-delimited JSON) file,
so an operator can see later what was provisioned, when, and where it
stopped. Entries are never modified or deleted.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_STATE_DIR = "/var/lib/vps-setup"
DEFAULT_AUDIT_FILE = "audit.ndjson"
STATE_DIR_ENV = "VPS_SETUP_STATE_DIR"


def default_audit_path(environ: Mapping[str, str] | None = None) -> Path:
    """Ledger location: ``$VPS_SETUP_STATE_DIR/audit.ndjson``."""
    environ = os.environ if environ is None else environ
    return Path(environ.get(STATE_DIR_ENV) or DEFAULT_STATE_DIR) / DEFAULT_AUDIT_FILE


class AuditEntry(BaseModel):
    """A single audit log entry."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    operation_id: str = ""
    mode: str = ""                 # interactive, quick, auto
    dry_run: bool = False

    # What was asked for and what ran
    requested: list[str] = Field(default_factory=list)
    resolved: list[str] = Field(default_factory=list)

    # Results
    status: str = ""               # ok, failed, dry-run, cancelled, error
    modules_total: int = 0
    modules_succeeded: int = 0
    modules_failed: int = 0
    modules_skipped: int = 0
    module_status: dict[str, str] = Field(default_factory=dict)

    errors: list[str] = Field(default_factory=list)


class AuditWriter:
    """Append-only audit ledger writer.

    Each call to write() appends a single JSON line to the ledger file.
    The file is created if it doesn't exist. Failures to write are
    logged; a broken ledger never fails a run.
    """

    def __init__(self, path: Path | None = None):
        self._path = path or default_audit_path()

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: AuditEntry) -> None:
        """Append an audit entry to the ledger."""
        line = json.dumps(entry.model_dump(mode="json"), ensure_ascii=False) + "\n"

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
            logger.debug("Audit entry written: %s (%s)", entry.operation_id, entry.status)
        except OSError as e:
            logger.error("Failed to write audit entry to %s: %s", self._path, e)

    def read_all(self) -> list[AuditEntry]:
        """Read all entries from the ledger, oldest first."""
        if not self._path.is_file():
            return []

        entries = []
        try:
            with self._path.open("r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entries.append(AuditEntry.model_validate(json.loads(line)))
                    except (json.JSONDecodeError, ValidationError) as e:
                        logger.warning("Skipping corrupt audit entry at line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Failed to read audit ledger: %s", e)

        return entries

    def read_recent(self, n: int = 20) -> list[AuditEntry]:
        """Read the most recent N entries."""
        if n <= 0:
            return []
        return self.read_all()[-n:]

    def entry_count(self) -> int:
        """Count entries without parsing them."""
        if not self._path.is_file():
            return 0
        try:
            with self._path.open("r", encoding="utf-8") as f:
                return sum(1 for line in f if line.strip())
        except OSError:
            return 0
