"""
vps-setup — CLI entrypoint.

Usage:
    vps-setup --help
    vps-setup run                       # interactive module menu
    vps-setup run --quick               # essential security modules
    vps-setup run --auto                # everything recommended, no prompts
    vps-setup run -m docker_ufw --dry-run
    vps-setup modules
    vps-setup config example vps-setup.conf
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from vpsetup import __version__
from vpsetup.core.observability.logging_config import DEFAULT_LOG_FILE, resolve_level, setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="vps-setup")
@click.option("--verbose", "-v", is_flag=True, help="Show progress logging on the console.")
@click.option("--quiet", is_flag=True, help="Only show errors on the console.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False),
    default=None,
    help=f"Run log location (default: $VPS_SETUP_LOG_FILE or {DEFAULT_LOG_FILE}).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    log_file: str | None,
) -> None:
    """vps-setup — provision and harden a fresh Ubuntu server."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug

    # ── Logging setup (once, at process start) ──────────────────
    level = resolve_level(
        debug=debug,
        verbose=verbose,
        quiet=quiet,
        env_level=os.environ.get("VPS_SETUP_LOG_LEVEL"),
    )
    active = setup_logging(
        level=level,
        log_file=log_file or os.environ.get("VPS_SETUP_LOG_FILE") or DEFAULT_LOG_FILE,
        log_file_level="DEBUG" if debug else "INFO",
    )
    ctx.obj["log_file"] = str(active) if active else None


# ── Interactive module menu ─────────────────────────────────────


def _select_interactively(registry) -> list[str]:
    """Numbered menu; returns names (numbers translated, names passed through)."""
    names = registry.names()
    recommended = registry.bundle("quick")

    click.secho("\n📦 Available modules:", fg="cyan", bold=True)
    for index, descriptor in enumerate(registry, start=1):
        deps = f"  (needs {', '.join(descriptor.dependencies)})" if descriptor.dependencies else ""
        mark = " *" if descriptor.name in recommended else ""
        click.echo(f"   {index:>2}) {descriptor.name:<16} {descriptor.description}{mark}{deps}")
    click.echo("   * recommended")
    click.echo()

    while True:
        answer = click.prompt(
            "Select modules (numbers or names, comma-separated; 'all'; empty = recommended)",
            default="",
            show_default=False,
        ).strip()
        if not answer:
            return recommended
        if answer.lower() == "all":
            return names

        selected: list[str] = []
        bad: list[str] = []
        for token in (t.strip() for t in answer.split(",")):
            if not token:
                continue
            if token.isascii() and token.isdecimal():
                if 1 <= int(token) <= len(names):
                    selected.append(names[int(token) - 1])
                else:
                    bad.append(token)
            else:
                selected.append(token)
        if bad:
            click.secho(f"   Invalid choice: {', '.join(bad)}", fg="red")
            continue
        return selected


# ── Output helpers ──────────────────────────────────────────────


def _print_plan(plan) -> None:
    label = "[DRY RUN] " if plan.dry_run else ""
    click.secho(f"\n🚀 {label}vps-setup — {plan.mode.value} mode", fg="cyan", bold=True)
    if plan.config_path:
        click.echo(f"   Config: {plan.config_path}")
    click.echo("   The following modules will run, in order:")
    added = set(plan.added_dependencies)
    for descriptor in plan.modules:
        note = "  (dependency)" if descriptor.name in added else ""
        click.echo(f"     • {descriptor.name:<16} {descriptor.description}{note}")
    if plan.dry_run:
        click.secho("   No changes will be made.", fg="yellow")
    click.echo()


def _announce(run) -> None:
    click.secho(f"▶ {run.description or run.name}", fg="cyan", bold=True)


def _report_module(run) -> None:
    colors = {"success": "green", "failed": "red", "skipped": "yellow"}
    timing = f" ({run.duration_ms}ms)" if run.duration_ms else ""
    click.secho(f"   {run.status.marker} {run.name} — {run.status.value}{timing}", fg=colors.get(run.status.value))
    if run.error:
        for line in run.error.split("\n")[:5]:
            click.echo(f"     │ {line}")
    click.echo()


def _print_summary(report, log_file: str | None) -> None:
    click.secho("═══ Setup summary ═══", fg="white", bold=True)
    colors = {"success": "green", "failed": "red", "skipped": "yellow"}
    for run in report.runs:
        click.secho(f"   {run.status.marker} ", fg=colors.get(run.status.value), nl=False)
        click.echo(f"{run.name:<16} {run.description:<42} ", nl=False)
        click.secho(run.status.value, fg=colors.get(run.status.value))
    for name in report.not_run:
        click.echo(f"   · {name:<16} {'':<42} not run")

    click.echo()
    status_color = {"ok": "green", "dry-run": "yellow", "failed": "red"}.get(report.status, "white")
    click.secho(
        f"   Result: {report.succeeded}/{len(report.planned)} succeeded"
        + (f", {report.skipped} skipped" if report.skipped else ""),
        fg=status_color,
        bold=True,
    )
    click.echo(f"   Log file: {log_file or '(console only)'}")
    click.echo()


# ── Commands ────────────────────────────────────────────────────


@cli.command()
@click.option(
    "--mode",
    type=click.Choice(["interactive", "quick", "auto"]),
    default="interactive",
    show_default=True,
    help="Setup mode.",
)
@click.option("--quick", "-q", is_flag=True, help="Shortcut for --mode quick.")
@click.option("--auto", "-a", "auto", is_flag=True, help="Shortcut for --mode auto (no prompts).")
@click.option("--modules", "-m", "module_list", default=None, help="Comma-separated modules, or 'all'.")
@click.option("--dry-run", "-d", is_flag=True, help="Show what would run without changing anything.")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Setup config file (see 'vps-setup config example').",
)
@click.option("--username", default=None, help="Admin username (overrides config).")
@click.option("--ssh-port", type=click.IntRange(1024, 65535), default=None, help="SSH port (overrides config).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def run(
    ctx: click.Context,
    mode: str,
    quick: bool,
    auto: bool,
    module_list: str | None,
    dry_run: bool,
    config_path: Path | None,
    username: str | None,
    ssh_port: int | None,
    as_json: bool,
) -> None:
    """Provision this server.

    Examples:

        vps-setup run --auto

        vps-setup run -m ssh_hardening,firewall -c vps-setup.conf

        vps-setup run -m docker_ufw --dry-run
    """
    from click.core import ParameterSource

    from vpsetup.core.engine.resolver import parse_module_list
    from vpsetup.core.models.prompt import PromptKind, auto_mode_from_env, overrides_from_env
    from vpsetup.core.persistence.audit import AuditWriter, default_audit_path
    from vpsetup.core.use_cases.run import SetupMode, execute_setup, plan_setup
    from vpsetup.provisioning import build_registry

    mode_given = ctx.get_parameter_source("mode") is not ParameterSource.DEFAULT
    if not (auto or quick or mode_given) and auto_mode_from_env(os.environ):
        auto = True
    setup_mode = SetupMode.AUTO if auto else SetupMode.QUICK if quick else SetupMode(mode)
    registry = ctx.obj.get("registry") or build_registry()

    modules = parse_module_list(module_list, registry) if module_list is not None else None
    if module_list is not None and not modules:
        click.secho("❌ No modules given to --modules", fg="red")
        sys.exit(1)

    result = plan_setup(
        mode=setup_mode,
        modules=modules,
        config_path=config_path,
        dry_run=dry_run,
        username=username,
        ssh_port=ssh_port,
        env_answers=overrides_from_env(os.environ),
        registry=registry,
        select=_select_interactively,
    )

    if result.error:
        if as_json:
            click.echo(json.dumps(result.to_dict(), indent=2))
        else:
            click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    plan = result.plan
    assert plan is not None  # guaranteed after error check above

    if not plan.resolved:
        click.echo("No modules selected.")
        return

    if not as_json:
        _print_plan(plan)

    if not plan.dry_run and plan.mode is not SetupMode.AUTO:
        if not plan.confirmer.confirm(PromptKind.PROCEED, "Continue?"):
            result.cancelled = True
            if as_json:
                click.echo(json.dumps(result.to_dict(), indent=2))
            else:
                click.echo("Setup cancelled.")
            return

    result = execute_setup(
        plan,
        runner=ctx.obj.get("runner"),
        files=ctx.obj.get("files"),
        audit_writer=AuditWriter(ctx.obj.get("audit_path") or default_audit_path()),
        log_file=ctx.obj.get("log_file"),
        on_start=None if as_json else _announce,
        on_finish=None if as_json else _report_module,
    )
    report = result.report
    assert report is not None

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    _print_summary(report, ctx.obj.get("log_file"))

    if report.failed:
        click.secho("❌ Setup stopped due to module failure", fg="red", bold=True)
        sys.exit(1)

    if report.dry_run:
        click.secho("✅ Dry run complete — nothing was changed", fg="green", bold=True)
        return

    click.secho("✅ Setup complete", fg="green", bold=True)
    ssh_run = report.get("ssh_hardening")
    if ssh_run is not None and ssh_run.status.value == "success":
        click.secho(
            f"⚠️  Test SSH login as '{plan.settings.username}' in a new session before closing this one.",
            fg="yellow",
        )


@cli.command("modules")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_modules(ctx: click.Context, as_json: bool) -> None:
    """List available modules and their dependencies."""
    from vpsetup.provisioning import build_registry

    registry = ctx.obj.get("registry") or build_registry()

    if as_json:
        click.echo(
            json.dumps(
                {
                    "modules": [d.model_dump(mode="json") for d in registry],
                    "bundles": registry.bundles,
                },
                indent=2,
            )
        )
        return

    quick = set(registry.bundle("quick"))
    click.secho(f"\n📦 Modules: {len(registry)}", fg="cyan", bold=True)
    for descriptor in registry:
        mark = " *" if descriptor.name in quick else ""
        click.echo(f"   • {descriptor.name:<16} {descriptor.description}{mark}")
        if descriptor.dependencies:
            click.echo(f"     └ requires: {', '.join(descriptor.dependencies)}")
    click.echo()
    click.echo("   * part of --quick")
    click.echo()


# ── Register sub-command groups from vpsetup/ui/cli/ ─────────────

from vpsetup.ui.cli.config import config  # noqa: E402
from vpsetup.ui.cli.history import history  # noqa: E402

cli.add_command(config)
cli.add_command(history)


if __name__ == "__main__":
    cli()
