"""
Engine executor — the orchestration loop.

Takes a resolved list of module names, runs each module's action in
order, records one ModuleRun per attempted module, and stops at the
first failure. In dry-run mode every module is announced and marked
skipped without its action being called.

Flow:
    resolved names → announce → action → receipt → ModuleRun → report
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

from vpsetup.core.errors import UnknownModuleError
from vpsetup.core.models.module import ModuleRun, ModuleStatus
from vpsetup.core.models.receipt import Receipt
from vpsetup.core.persistence.audit import AuditEntry, AuditWriter

logger = logging.getLogger(__name__)

ModuleCallback = Callable[[ModuleRun], None]


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


@dataclass
class RunReport:
    """Result of running a resolved module list."""

    operation_id: str = ""
    dry_run: bool = False
    runs: list[ModuleRun] = field(default_factory=list)
    planned: list[str] = field(default_factory=list)
    log_file: str | None = None
    started_at: str = ""
    ended_at: str = ""

    @property
    def total(self) -> int:
        return len(self.runs)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.runs if r.status is ModuleStatus.SUCCESS)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.runs if r.status is ModuleStatus.FAILED)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.runs if r.status is ModuleStatus.SKIPPED)

    @property
    def halted(self) -> bool:
        """Whether a failure stopped the run before every planned module ran."""
        return self.failed > 0

    @property
    def not_run(self) -> list[str]:
        """Planned modules that never started because the run halted."""
        attempted = {r.name for r in self.runs}
        return [name for name in self.planned if name not in attempted]

    @property
    def all_ok(self) -> bool:
        return self.failed == 0

    @property
    def status(self) -> str:
        if self.failed:
            return "failed"
        if self.dry_run:
            return "dry-run"
        return "ok"

    @property
    def exit_code(self) -> int:
        return 1 if self.failed else 0

    def get(self, name: str) -> ModuleRun | None:
        for run in self.runs:
            if run.name == name:
                return run
        return None

    def to_dict(self) -> dict:
        return {
            "operation_id": self.operation_id,
            "status": self.status,
            "dry_run": self.dry_run,
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "not_run": self.not_run,
            "log_file": self.log_file,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "modules": [r.model_dump(mode="json") for r in self.runs],
        }


def _call_action(name: str, action: Callable[[], Receipt]) -> Receipt:
    """Invoke an action; anything it raises becomes a failed receipt."""
    start = time.monotonic()
    try:
        receipt = action()
    except Exception as e:
        logger.exception("Module '%s' raised an unexpected error", name)
        return Receipt.failure(
            module=name,
            error=f"{type(e).__name__}: {e}",
            duration_ms=int((time.monotonic() - start) * 1000),
        )
    if not isinstance(receipt, Receipt):
        return Receipt.failure(
            module=name,
            error=f"Module action returned {type(receipt).__name__}, expected Receipt",
        )
    return receipt


def run_modules(
    names: Sequence[str],
    actions: Mapping[str, Callable[[], Receipt]],
    *,
    dry_run: bool = False,
    describe: Callable[[str], str] | None = None,
    on_start: ModuleCallback | None = None,
    on_finish: ModuleCallback | None = None,
    operation_id: str | None = None,
    log_file: str | None = None,
) -> RunReport:
    """Execute modules in order, halting on the first failure.

    Args:
        names: Resolved module names (dependency order).
        actions: Zero-argument callables keyed by module name.
        dry_run: Announce and mark every module skipped; call nothing.
        describe: Optional name → description lookup for announcements.
        on_start: Called with the pending ModuleRun before each module.
        on_finish: Called with the finished ModuleRun after each module.
        operation_id: Identifier for this run (generated if omitted).
        log_file: Log location to carry on the report.

    Returns:
        RunReport with one ModuleRun per attempted module.

    Raises:
        UnknownModuleError: If a name has no action. Checked before
            anything runs.
    """
    for name in names:
        if name not in actions:
            raise UnknownModuleError(name)

    report = RunReport(
        operation_id=operation_id or generate_operation_id(),
        dry_run=dry_run,
        planned=list(names),
        log_file=log_file,
        started_at=_now_iso(),
    )

    for name in names:
        description = describe(name) if describe else name
        run = ModuleRun(name=name, description=description, started_at=_now_iso())
        report.runs.append(run)

        logger.info("Starting module: %s", description)
        if on_start:
            on_start(run)

        if dry_run:
            logger.info("[DRY RUN] Would execute: %s", name)
            run.finish(ModuleStatus.SKIPPED, output="dry run", ended_at=_now_iso())
        else:
            receipt = _call_action(name, actions[name])
            if receipt.failed:
                status = ModuleStatus.FAILED
            elif receipt.status == "skipped":
                status = ModuleStatus.SKIPPED
            else:
                status = ModuleStatus.SUCCESS
            run.finish(
                status,
                output=receipt.output,
                error=receipt.error,
                ended_at=_now_iso(),
                duration_ms=receipt.duration_ms,
            )

        marker = run.status.marker
        logger.info("%s %s → %s", marker, name, run.status.value)
        if on_finish:
            on_finish(run)

        if run.status is ModuleStatus.FAILED:
            logger.error("Module %s failed: %s", name, run.error or "unknown error")
            logger.error("Setup stopped due to module failure")
            break

    report.ended_at = _now_iso()
    return report


def write_audit_entry(
    report: RunReport,
    audit_writer: AuditWriter,
    *,
    mode: str = "",
    requested: Sequence[str] = (),
    error: str | None = None,
) -> None:
    """Write one run to the audit ledger."""
    entry = AuditEntry(
        operation_id=report.operation_id,
        mode=mode,
        dry_run=report.dry_run,
        requested=list(requested),
        resolved=list(report.planned),
        status=report.status,
        modules_total=report.total,
        modules_succeeded=report.succeeded,
        modules_failed=report.failed,
        modules_skipped=report.skipped,
        module_status={r.name: r.status.value for r in report.runs},
        errors=[e for e in [error, *(r.error for r in report.runs if r.error)] if e],
    )
    audit_writer.write(entry)


def generate_operation_id() -> str:
    """Generate a unique operation ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"op-{now}-{short}"
