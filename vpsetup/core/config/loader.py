"""
Configuration loader — reads the INI-like setup file into a ConfigMap.

Format::

    # comment
    [section]
    key = value

Keys inside a section are stored as ``section.key``; keys before the
first section header are stored bare. Lines that match neither shape
are reported as warnings and skipped; they never abort the load.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator, Mapping
from pathlib import Path

from vpsetup.core.config.template import SECTION_ORDER
from vpsetup.core.errors import ConfigNotFoundError, ConfigParseError

logger = logging.getLogger(__name__)

_SECTION_RE = re.compile(r"^\s*\[([^\]]+)\]\s*$")
_KEY_VALUE_RE = re.compile(r"^\s*([^=]+)=(.*)$")

TRUE_WORDS = frozenset({"true", "yes", "1", "on", "enabled"})
FALSE_WORDS = frozenset({"false", "no", "0", "off", "disabled"})


class ConfigMap(Mapping[str, str]):
    """Flat, read-only ``section.key → value`` mapping.

    ``get`` treats an empty value as unset, so ``key=`` in a file falls
    back to the caller's default.
    """

    def __init__(
        self,
        values: Mapping[str, str] | None = None,
        path: Path | None = None,
        warnings: list[str] | tuple[str, ...] = (),
    ):
        self._values = dict(values or {})
        self.path = path
        self.warnings: tuple[str, ...] = tuple(warnings)

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"ConfigMap({len(self)} keys, path={self.path})"

    def get(self, key: str, default: str = "") -> str:  # type: ignore[override]
        value = self._values.get(key, "")
        return value if value else default

    def get_bool(self, key: str, default: bool) -> bool:
        """Coerce a value to bool using the fixed yes/no vocabulary.

        Missing or empty values return ``default`` silently; values
        outside the vocabulary return ``default`` with a warning.
        """
        raw = self.get(key)
        if not raw:
            return default
        word = raw.lower()
        if word in TRUE_WORDS:
            return True
        if word in FALSE_WORDS:
            return False
        logger.warning("Invalid boolean value for %s: %s, using default", key, raw)
        return default

    def get_int(self, key: str, default: int) -> int:
        raw = self.get(key)
        if not raw:
            return default
        try:
            return int(raw)
        except ValueError:
            logger.warning("Invalid integer value for %s: %s, using default", key, raw)
            return default

    def with_overrides(self, **pairs: str | int | None) -> ConfigMap:
        """Return a new map with ``section__key=value`` pairs applied.

        Double underscores separate section and key, so
        ``with_overrides(user__username="deploy")`` sets ``user.username``.
        ``None`` values are ignored.
        """
        values = dict(self._values)
        for name, value in pairs.items():
            if value is None:
                continue
            values[name.replace("__", ".")] = str(value)
        return ConfigMap(values, path=self.path, warnings=self.warnings)

    def section(self, name: str) -> dict[str, str]:
        """All keys of one section, without the section prefix."""
        prefix = f"{name}."
        return {k[len(prefix):]: v for k, v in self._values.items() if k.startswith(prefix)}

    def sections(self) -> dict[str, dict[str, str]]:
        """Group keys by section, known sections first in template order.

        Bare keys (no section) are grouped under ``""``.
        """
        grouped: dict[str, dict[str, str]] = {}
        for full_key, value in self._values.items():
            section, _, key = full_key.rpartition(".")
            grouped.setdefault(section, {})[key] = value

        ordered = {name: grouped.pop(name) for name in SECTION_ORDER if name in grouped}
        ordered.update(dict(sorted(grouped.items())))
        return ordered


def parse_config(text: str, source: str = "<string>") -> tuple[dict[str, str], list[str]]:
    """Parse config text into (values, warnings)."""
    values: dict[str, str] = {}
    warnings: list[str] = []
    section = ""

    for line_num, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue

        match = _SECTION_RE.match(line)
        if match:
            section = match.group(1).strip()
            continue

        match = _KEY_VALUE_RE.match(line)
        if match and match.group(1).strip():
            key = match.group(1).strip()
            value = match.group(2).strip()
            values[f"{section}.{key}" if section else key] = value
            continue

        message = f"{source}:{line_num}: invalid config line: {stripped}"
        logger.warning(message)
        warnings.append(message)

    return values, warnings


def load_config(path: Path) -> ConfigMap:
    """Load and parse a config file.

    Args:
        path: Path to the config file.

    Returns:
        ConfigMap with every parsed key.

    Raises:
        ConfigNotFoundError: If the file does not exist.
        ConfigParseError: If the file cannot be read as UTF-8 text.
    """
    if not path.is_file():
        raise ConfigNotFoundError(f"Config file not found: {path}")

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigParseError(f"Cannot read config file {path}: {e}") from e

    values, warnings = parse_config(text, source=str(path))
    logger.info("Loaded %d config keys from %s", len(values), path)
    return ConfigMap(values, path=path, warnings=warnings)
