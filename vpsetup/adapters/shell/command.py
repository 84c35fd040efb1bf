"""
Shell command runner — the one way provisioning modules run OS commands.

Commands are argv lists (no shell) unless ``run_shell`` is used for a
pipeline. ``run`` never raises for a non-zero exit; ``check`` raises
CommandError so a module stops at the first broken step.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from vpsetup.core.errors import CommandError

logger = logging.getLogger(__name__)

# apt must never stop to ask questions mid-run
DEFAULT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}

EXIT_NOT_FOUND = 127
EXIT_TIMEOUT = 124


@dataclass
class CommandResult:
    """Outcome of one external command."""

    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def command(self) -> str:
        return " ".join(self.args)


class CommandRunner:
    """Run external commands and capture their output.

    Args:
        env: Extra environment variables for every command.
        default_timeout: Seconds before a command is killed (None = no limit).
    """

    def __init__(
        self,
        env: Mapping[str, str] | None = None,
        default_timeout: float | None = None,
    ):
        self._env = {**DEFAULT_ENV, **(env or {})}
        self._default_timeout = default_timeout

    def run(
        self,
        args: Sequence[str],
        *,
        input: str | None = None,
        timeout: float | None = None,
        interactive: bool = False,
    ) -> CommandResult:
        """Run a command. Never raises for a failing command.

        Args:
            args: Command and arguments.
            input: Text fed to the command's stdin.
            timeout: Seconds before the command is killed.
            interactive: Attach the command to the terminal instead of
                capturing its output (``passwd``, ``google-authenticator``).

        Returns:
            CommandResult. A missing binary yields exit code 127, a
            timeout exit code 124.
        """
        argv = [str(a) for a in args]
        timeout = timeout if timeout is not None else self._default_timeout
        logger.debug("Executing: %s", " ".join(argv))
        start = time.monotonic()

        try:
            proc = subprocess.run(
                argv,
                input=input,
                capture_output=not interactive,
                text=True,
                timeout=timeout,
                env={**os.environ, **self._env},
            )
        except FileNotFoundError:
            logger.warning("Command not found: %s", argv[0])
            return CommandResult(argv, EXIT_NOT_FOUND, stderr=f"{argv[0]}: command not found")
        except subprocess.TimeoutExpired:
            logger.warning("Command timed out after %ss: %s", timeout, " ".join(argv))
            return CommandResult(argv, EXIT_TIMEOUT, stderr=f"timed out after {timeout}s")

        result = CommandResult(
            argv,
            proc.returncode,
            stdout=(proc.stdout or "").strip(),
            stderr=(proc.stderr or "").strip(),
            duration_ms=int((time.monotonic() - start) * 1000),
        )
        if not result.ok:
            logger.debug("Exit %d: %s — %s", result.returncode, result.command, result.stderr)
        return result

    def run_shell(self, command: str, **kwargs) -> CommandResult:
        """Run a shell pipeline through ``sh -c``."""
        return self.run(["sh", "-c", command], **kwargs)

    def check(self, args: Sequence[str], **kwargs) -> CommandResult:
        """Run a command and raise CommandError unless it exits 0."""
        result = self.run(args, **kwargs)
        if not result.ok:
            raise CommandError(result.args, result.returncode, result.stderr)
        return result

    def succeeds(self, args: Sequence[str], **kwargs) -> bool:
        """Whether a command exits 0 (used for checks like ``id user``)."""
        return self.run(args, **kwargs).ok

    def which(self, name: str) -> bool:
        """Whether an executable is on PATH."""
        return shutil.which(name) is not None
