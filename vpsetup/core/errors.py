"""
Error taxonomy — every failure vps-setup raises on purpose.

Config and resolver errors are raised before anything touches the
system, so a broken request never half-provisions a server. Failures
inside a provisioning module never escape the orchestrator: they are
turned into failed receipts.
"""

from __future__ import annotations

from collections.abc import Sequence


class SetupError(Exception):
    """Base class for all vps-setup errors."""


# ── Catalog / resolution ────────────────────────────────────────


class UnknownModuleError(SetupError):
    """A module name (requested or declared as a dependency) is not in the catalog."""

    def __init__(self, name: str, referenced_by: str | None = None):
        self.name = name
        self.referenced_by = referenced_by
        if referenced_by:
            message = f"Module '{referenced_by}' depends on unknown module '{name}'"
        else:
            message = f"Unknown module: '{name}'"
        super().__init__(message)


class DependencyCycleError(SetupError):
    """Module dependencies loop back onto themselves."""

    def __init__(self, cycle: Sequence[str]):
        self.cycle = list(cycle)
        super().__init__("Dependency cycle detected: " + " -> ".join(self.cycle))


# ── Configuration ───────────────────────────────────────────────


class ConfigError(SetupError):
    """Raised when configuration is invalid or cannot be loaded."""


class ConfigNotFoundError(ConfigError):
    """The configuration file does not exist."""


class ConfigParseError(ConfigError):
    """The configuration file exists but cannot be read as text."""


# ── Execution ───────────────────────────────────────────────────


class CommandError(SetupError):
    """An external command exited non-zero (or could not be started)."""

    def __init__(self, args: Sequence[str], returncode: int, stderr: str = ""):
        self.command = list(args)
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip().splitlines()[-1] if stderr.strip() else ""
        message = f"Command failed ({returncode}): {' '.join(self.command)}"
        if detail:
            message += f" — {detail}"
        super().__init__(message)


class StepAborted(SetupError):
    """A provisioning module cannot continue (missing prerequisite, user declined)."""
