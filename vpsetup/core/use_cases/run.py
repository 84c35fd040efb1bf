"""
Run use case — from a setup request to an audited execution.

Split in two so the CLI can show the plan and ask before anything
changes on the machine:

    plan_setup:    config → settings → module selection → resolution
    execute_setup: context → orchestrator → report → audit entry
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from vpsetup.adapters.shell.command import CommandRunner
from vpsetup.adapters.shell.filesystem import SystemFiles
from vpsetup.core.config.loader import ConfigMap, load_config
from vpsetup.core.config.settings import Settings
from vpsetup.core.config.validation import ZONEINFO_DIR, validate_config
from vpsetup.core.engine.executor import ModuleCallback, RunReport, run_modules, write_audit_entry
from vpsetup.core.engine.registry import ModuleRegistry
from vpsetup.core.engine.resolver import resolve
from vpsetup.core.errors import ConfigError, DependencyCycleError, UnknownModuleError
from vpsetup.core.models.module import ModuleDescriptor
from vpsetup.core.models.prompt import PromptKind
from vpsetup.core.persistence.audit import AuditWriter
from vpsetup.core.services.confirm import Confirmer, InputFunc
from vpsetup.provisioning.base import ModuleContext

logger = logging.getLogger(__name__)

ModuleSelector = Callable[[ModuleRegistry], list[str]]


class SetupMode(str, Enum):
    INTERACTIVE = "interactive"
    QUICK = "quick"
    AUTO = "auto"


@dataclass
class SetupPlan:
    """Everything decided before execution starts."""

    mode: SetupMode
    settings: Settings
    confirmer: Confirmer
    registry: ModuleRegistry
    requested: list[str] = field(default_factory=list)
    resolved: list[str] = field(default_factory=list)
    dry_run: bool = False
    config_path: Path | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def modules(self) -> list[ModuleDescriptor]:
        return [self.registry.describe(name) for name in self.resolved]

    @property
    def added_dependencies(self) -> list[str]:
        """Resolved modules that were pulled in rather than requested."""
        return [name for name in self.resolved if name not in self.requested]

    def to_dict(self) -> dict:
        return {
            "mode": self.mode.value,
            "dry_run": self.dry_run,
            "config_path": str(self.config_path) if self.config_path else None,
            "requested": self.requested,
            "resolved": self.resolved,
            "warnings": self.warnings,
        }


@dataclass
class RunResult:
    """Result of planning and (optionally) executing a setup run."""

    plan: SetupPlan | None = None
    report: RunReport | None = None
    cancelled: bool = False
    error: str | None = None

    @property
    def exit_code(self) -> int:
        if self.error:
            return 1
        if self.report is not None:
            return self.report.exit_code
        return 0

    def to_dict(self) -> dict:
        result: dict = {"exit_code": self.exit_code}
        if self.error:
            result["error"] = self.error
            return result
        if self.plan:
            result["plan"] = self.plan.to_dict()
        result["cancelled"] = self.cancelled
        if self.report:
            result["report"] = self.report.to_dict()
        return result


def select_modules(
    mode: SetupMode,
    registry: ModuleRegistry,
    explicit: list[str] | None = None,
    select: ModuleSelector | None = None,
) -> list[str]:
    """Pick the requested modules: explicit list, bundle, or interactive menu."""
    if explicit:
        return list(explicit)
    if mode is SetupMode.AUTO:
        return registry.bundle("auto")
    if mode is SetupMode.QUICK:
        return registry.bundle("quick")
    if select is None:
        return registry.bundle("quick")
    return select(registry)


def plan_setup(
    *,
    mode: SetupMode = SetupMode.INTERACTIVE,
    modules: list[str] | None = None,
    config_path: Path | None = None,
    dry_run: bool = False,
    username: str | None = None,
    ssh_port: int | None = None,
    env_answers: Mapping[PromptKind, str] | None = None,
    registry: ModuleRegistry | None = None,
    select: ModuleSelector | None = None,
    input_func: InputFunc | None = None,
    zoneinfo_dir: Path = ZONEINFO_DIR,
) -> RunResult:
    """Load config, build settings and resolve the modules to run.

    Nothing on the system is changed. Config and resolution problems
    are returned as ``RunResult.error``.
    """
    result = RunResult()

    if registry is None:
        from vpsetup.provisioning import build_registry

        registry = build_registry()

    # ── Configuration ───────────────────────────────────────────
    try:
        config = load_config(config_path) if config_path else ConfigMap()
    except ConfigError as e:
        result.error = str(e)
        return result

    config = config.with_overrides(user__username=username, ssh__ssh_port=ssh_port)
    validation = validate_config(config, zoneinfo_dir=zoneinfo_dir)
    if not validation.valid:
        result.error = "Configuration validation failed: " + "; ".join(validation.errors)
        return result
    for warning in validation.warnings:
        logger.warning(warning)

    # CLI flags outrank everything, including SETUP_* variables
    answers = dict(env_answers or {})
    if username:
        answers[PromptKind.USERNAME] = username
    if ssh_port:
        answers[PromptKind.SSH_PORT] = str(ssh_port)

    settings = Settings.from_config(
        config,
        auto_mode=mode is SetupMode.AUTO,
        env_answers=answers,
    )
    confirmer = Confirmer.from_settings(settings, input_func=input_func)

    # ── Selection and resolution ────────────────────────────────
    try:
        requested = select_modules(mode, registry, explicit=modules, select=select)
        resolved = resolve(requested, registry)
    except (UnknownModuleError, DependencyCycleError) as e:
        result.error = str(e)
        return result

    result.plan = SetupPlan(
        mode=mode,
        settings=settings,
        confirmer=confirmer,
        registry=registry,
        requested=requested,
        resolved=resolved,
        dry_run=dry_run,
        config_path=config_path,
        warnings=validation.warnings,
    )
    logger.info("Planned %s run: %s", mode.value, ", ".join(resolved) or "(nothing)")
    return result


def execute_setup(
    plan: SetupPlan,
    *,
    runner: CommandRunner | None = None,
    files: SystemFiles | None = None,
    audit_writer: AuditWriter | None = None,
    log_file: str | None = None,
    on_start: ModuleCallback | None = None,
    on_finish: ModuleCallback | None = None,
) -> RunResult:
    """Run a plan's modules in order and record the outcome."""
    context = ModuleContext(
        settings=plan.settings,
        confirmer=plan.confirmer,
        runner=runner or CommandRunner(),
        files=files or SystemFiles(),
    )
    actions = plan.registry.bind(context, plan.resolved)

    report = run_modules(
        plan.resolved,
        actions,
        dry_run=plan.dry_run,
        describe=lambda name: plan.registry.describe(name).description,
        on_start=on_start,
        on_finish=on_finish,
        log_file=log_file,
    )
    logger.info(
        "Setup %s: %d succeeded, %d failed, %d skipped",
        report.status,
        report.succeeded,
        report.failed,
        report.skipped,
    )

    if audit_writer is not None:
        write_audit_entry(report, audit_writer, mode=plan.mode.value, requested=plan.requested)

    return RunResult(plan=plan, report=report)
