"""Adapters — the seams through which vps-setup touches the system.

Public re-exports for convenient access.
"""

from vpsetup.adapters.mock import MockCommandRunner
from vpsetup.adapters.shell.command import CommandResult, CommandRunner
from vpsetup.adapters.shell.filesystem import SystemFiles

__all__ = [
    "CommandResult",
    "CommandRunner",
    "MockCommandRunner",
    "SystemFiles",
]
