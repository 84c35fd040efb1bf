"""
Provisioning base — shared context and helpers for every module.

A provisioning module is a function ``run(ctx) -> str`` decorated with
``@provisioning_step("name")``. The decorator times the call and turns
its outcome into a Receipt: the returned text on success, the error on
CommandError / StepAborted / OSError. Modules never roll back: a
failure leaves whatever already happened in place.
"""

from __future__ import annotations

import functools
import logging
import re
import shutil
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from vpsetup.adapters.shell.command import CommandRunner
from vpsetup.adapters.shell.filesystem import SystemFiles
from vpsetup.core.config.settings import Settings
from vpsetup.core.errors import SetupError, StepAborted
from vpsetup.core.models.receipt import Receipt
from vpsetup.core.services.confirm import Confirmer

logger = logging.getLogger(__name__)

SSHD_CONFIG = "/etc/ssh/sshd_config"
SSHD_CONFIG_DIR = "/etc/ssh/sshd_config.d"
DEFAULT_SSH_PORT = 22

_PORT_LINE_RE = re.compile(r"^\s*Port\s+(\d+)\s*$", re.MULTILINE)


@dataclass
class ModuleContext:
    """Everything a provisioning module may use to touch the system."""

    settings: Settings
    confirmer: Confirmer
    runner: CommandRunner
    files: SystemFiles


StepFunc = Callable[[ModuleContext], "str | None"]


def provisioning_step(name: str) -> Callable[[StepFunc], Callable[[ModuleContext], Receipt]]:
    """Wrap a module function so it always returns a Receipt."""

    def decorator(func: StepFunc) -> Callable[[ModuleContext], Receipt]:
        @functools.wraps(func)
        def wrapper(ctx: ModuleContext) -> Receipt:
            start = time.monotonic()
            try:
                output = func(ctx) or ""
            except (SetupError, OSError) as e:
                elapsed = int((time.monotonic() - start) * 1000)
                logger.error("%s failed: %s", name, e)
                return Receipt.failure(module=name, error=str(e), duration_ms=elapsed)
            elapsed = int((time.monotonic() - start) * 1000)
            logger.info("%s completed in %dms", name, elapsed)
            return Receipt.success(module=name, output=output, duration_ms=elapsed)

        wrapper.module_name = name  # type: ignore[attr-defined]
        return wrapper

    return decorator


# ── Package helpers ─────────────────────────────────────────────


def apt_update(ctx: ModuleContext) -> None:
    ctx.runner.check(["apt-get", "update", "-qq"])


def is_package_installed(ctx: ModuleContext, package: str) -> bool:
    result = ctx.runner.run(["dpkg-query", "-W", "-f=${Status}", package])
    return result.ok and "install ok installed" in result.stdout


def install_packages(ctx: ModuleContext, packages: Iterable[str]) -> list[str]:
    """Install packages that are not installed yet.

    Retries once after an ``apt-get update`` when the first attempt
    fails (stale package lists on a fresh image).

    Returns:
        The packages that were actually installed.
    """
    missing = [p for p in packages if not is_package_installed(ctx, p)]
    if not missing:
        logger.debug("All packages already installed")
        return []

    logger.info("Installing packages: %s", " ".join(missing))
    command = ["apt-get", "install", "-y", "-qq", *missing]
    if not ctx.runner.run(command).ok:
        logger.warning("Package installation failed, refreshing package lists and retrying")
        apt_update(ctx)
        ctx.runner.check(command)
    return missing


# ── Service helpers ─────────────────────────────────────────────


def enable_service(ctx: ModuleContext, service: str, now: bool = True) -> None:
    command = ["systemctl", "enable", service]
    if now:
        command.insert(2, "--now")
    ctx.runner.check(command)


def restart_service(ctx: ModuleContext, service: str) -> None:
    ctx.runner.check(["systemctl", "restart", service])


def service_active(ctx: ModuleContext, service: str) -> bool:
    return ctx.runner.succeeds(["systemctl", "is-active", "--quiet", service])


# ── System checks ───────────────────────────────────────────────


def check_disk_space(ctx: ModuleContext, required_mb: int) -> None:
    """Raise StepAborted if the root filesystem has less than ``required_mb`` free."""
    free_mb = shutil.disk_usage(ctx.files.path("/")).free // (1024 * 1024)
    if free_mb < required_mb:
        raise StepAborted(f"Insufficient disk space: {free_mb}MB free, {required_mb}MB required")
    logger.debug("Disk space OK: %dMB free", free_mb)


def memory_mb(ctx: ModuleContext) -> int:
    """Total RAM in MB from /proc/meminfo (0 when unknown)."""
    for line in ctx.files.read_text("/proc/meminfo").splitlines():
        if line.startswith("MemTotal:"):
            parts = line.split()
            if len(parts) >= 2 and parts[1].isdigit():
                return int(parts[1]) // 1024
    return 0


def detect_ssh_port(files: SystemFiles) -> int:
    """The SSH port in effect.

    sshd keeps the first value it reads, and Ubuntu includes the
    drop-in directory before the main file, so drop-ins are searched
    first.
    """
    sources = [*files.glob(SSHD_CONFIG_DIR, "*.conf"), SSHD_CONFIG]
    for source in sources:
        match = _PORT_LINE_RE.search(files.read_text(source))
        if match:
            return int(match.group(1))
    return DEFAULT_SSH_PORT


def port_in_use(ctx: ModuleContext, port: int) -> bool:
    listing = ctx.runner.run(["ss", "-tln"]).stdout
    return any(
        fields[3].endswith(f":{port}")
        for fields in (line.split() for line in listing.splitlines())
        if len(fields) >= 4
    )


def os_codename(files: SystemFiles, default: str = "noble") -> str:
    for line in files.read_text("/etc/os-release").splitlines():
        if line.startswith("VERSION_CODENAME="):
            return line.split("=", 1)[1].strip().strip('"') or default
    return default
