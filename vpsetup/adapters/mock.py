"""
Mock command runner — test double for CommandRunner.

Records every command instead of executing it. By default everything
succeeds with empty output; individual commands can be scripted by
prefix to return output or fail.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from vpsetup.adapters.shell.command import CommandResult, CommandRunner


class MockCommandRunner(CommandRunner):
    """CommandRunner that never touches the system.

    Args:
        available: Executables ``which`` reports as installed. ``None``
            means every executable is available.
    """

    def __init__(self, available: Iterable[str] | None = None):
        super().__init__()
        self._available = set(available) if available is not None else None
        self._responses: list[tuple[str, CommandResult]] = []
        self._call_log: list[list[str]] = []
        self._inputs: list[str | None] = []

    @property
    def call_log(self) -> list[list[str]]:
        """Every argv this mock received, in order."""
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    @property
    def commands(self) -> list[str]:
        """Every command joined into one string, in order."""
        return [" ".join(args) for args in self._call_log]

    @property
    def inputs(self) -> list[str | None]:
        """Stdin text passed to each command, aligned with ``call_log``."""
        return self._inputs

    def set_result(self, prefix: str, returncode: int = 0, stdout: str = "", stderr: str = "") -> None:
        """Script the outcome of every command whose text starts with ``prefix``.

        Later calls take precedence over earlier ones.
        """
        self._responses.insert(0, (prefix, CommandResult([], returncode, stdout, stderr)))

    def set_failure(self, prefix: str, stderr: str = "mock failure", returncode: int = 1) -> None:
        """Make every command starting with ``prefix`` fail."""
        self.set_result(prefix, returncode=returncode, stderr=stderr)

    def set_available(self, *names: str) -> None:
        if self._available is None:
            self._available = set()
        self._available.update(names)

    def ran(self, prefix: str) -> bool:
        """Whether any recorded command starts with ``prefix``."""
        return any(cmd.startswith(prefix) for cmd in self.commands)

    def reset(self) -> None:
        self._responses.clear()
        self._call_log.clear()
        self._inputs.clear()

    def run(
        self,
        args: Sequence[str],
        *,
        input: str | None = None,
        timeout: float | None = None,
        interactive: bool = False,
    ) -> CommandResult:
        argv = [str(a) for a in args]
        self._call_log.append(argv)
        self._inputs.append(input)

        command = " ".join(argv)
        for prefix, scripted in self._responses:
            if command.startswith(prefix):
                return CommandResult(argv, scripted.returncode, scripted.stdout, scripted.stderr)
        return CommandResult(argv, 0)

    def which(self, name: str) -> bool:
        return self._available is None or name in self._available
