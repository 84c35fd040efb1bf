"""
System files — config-file edits performed by provisioning modules.

All paths are absolute system paths (``/etc/ssh/sshd_config``) mapped
under a root directory, which is ``/`` in production and a temporary
directory in tests. Errors are OSError and propagate to the module.
"""

from __future__ import annotations

import logging
import re
import shutil
from datetime import datetime
from pathlib import Path, PurePosixPath

logger = logging.getLogger(__name__)


class SystemFiles:
    """Read, write and edit system files under ``root``."""

    def __init__(self, root: Path | str = "/"):
        self.root = Path(root)

    def path(self, system_path: str | PurePosixPath) -> Path:
        """Map an absolute system path to its location under ``root``."""
        relative = str(system_path).lstrip("/")
        return self.root / relative if relative else self.root

    def exists(self, system_path: str) -> bool:
        return self.path(system_path).exists()

    def read_text(self, system_path: str, default: str = "") -> str:
        target = self.path(system_path)
        if not target.is_file():
            return default
        return target.read_text(encoding="utf-8", errors="replace")

    def write_text(self, system_path: str, content: str, mode: int | None = None) -> Path:
        """Write a file (parents created), optionally setting its permissions."""
        target = self.path(system_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        if mode is not None:
            target.chmod(mode)
        logger.debug("Wrote %s (%d bytes)", system_path, len(content))
        return target

    def ensure_dir(self, system_path: str, mode: int | None = None) -> Path:
        target = self.path(system_path)
        target.mkdir(parents=True, exist_ok=True)
        if mode is not None:
            target.chmod(mode)
        return target

    def chmod(self, system_path: str, mode: int) -> bool:
        """Set permissions if the file exists. Returns whether it did."""
        target = self.path(system_path)
        if not target.exists():
            return False
        target.chmod(mode)
        return True

    def remove(self, system_path: str) -> bool:
        target = self.path(system_path)
        if not target.exists():
            return False
        target.unlink()
        return True

    def glob(self, system_dir: str, pattern: str) -> list[str]:
        """System paths in ``system_dir`` matching ``pattern``, sorted."""
        base = self.path(system_dir)
        if not base.is_dir():
            return []
        prefix = "/" + str(PurePosixPath(system_dir)).strip("/")
        return sorted(f"{prefix}/{p.name}" for p in base.glob(pattern))

    def backup(self, system_path: str) -> Path | None:
        """Copy a file to ``<file>.backup.<timestamp>``; None if it doesn't exist."""
        target = self.path(system_path)
        if not target.is_file():
            logger.debug("Nothing to back up at %s", system_path)
            return None
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        copy = target.with_name(f"{target.name}.backup.{stamp}")
        shutil.copy2(target, copy)
        logger.info("Backed up %s → %s", system_path, copy.name)
        return copy

    def append_line_if_missing(self, system_path: str, line: str) -> bool:
        """Append ``line`` unless an identical line exists. Returns whether it appended."""
        content = self.read_text(system_path)
        if line in content.splitlines():
            return False
        if content and not content.endswith("\n"):
            content += "\n"
        self.write_text(system_path, content + line + "\n")
        return True

    def update_config_line(self, system_path: str, key: str, line: str) -> bool:
        """Set ``key`` to ``line``: the first active ``key`` line is replaced
        and later active duplicates are dropped; append if none.

        ``key`` must be a whole token (``Port`` does not match ``PortForward``).
        Commented lines are left alone unless there is no active line, in
        which case the first commented ``#key ...`` is activated in place.
        Returns whether the file changed.
        """
        content = self.read_text(system_path)
        existing = content.splitlines()
        token = re.escape(key) + r"(?=\s|$)"
        active = re.compile(r"^\s*" + token)
        commented = re.compile(r"^\s*#\s*" + token)

        matches = [i for i, text in enumerate(existing) if active.match(text)]
        if not matches:
            matches = [i for i, text in enumerate(existing) if commented.match(text)][:1]

        lines: list[str] = []
        for index, text in enumerate(existing):
            if index not in matches:
                lines.append(text)
            elif index == matches[0]:
                lines.append(line)
        if not matches:
            lines.append(line)
        new_content = "\n".join(lines) + "\n"
        if new_content == content:
            return False
        self.write_text(system_path, new_content)
        logger.debug("Set '%s' in %s", line, system_path)
        return True
