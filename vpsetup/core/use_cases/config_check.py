"""
Config check use case — load a setup file and report issues.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from vpsetup.core.config.loader import ConfigMap, load_config
from vpsetup.core.config.validation import ZONEINFO_DIR, validate_config
from vpsetup.core.errors import ConfigError


@dataclass
class ConfigCheckResult:
    """Result of configuration validation."""

    valid: bool = False
    config: ConfigMap | None = None
    config_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "key_count": len(self.config) if self.config is not None else 0,
        }


def check_config(config_path: Path, zoneinfo_dir: Path = ZONEINFO_DIR) -> ConfigCheckResult:
    """Validate a setup config file.

    Args:
        config_path: Path to the config file.
        zoneinfo_dir: Timezone database used for the timezone check.

    Returns:
        ConfigCheckResult with validation status and any issues.
    """
    result = ConfigCheckResult(config_path=config_path)

    try:
        config = load_config(config_path)
    except ConfigError as e:
        result.errors.append(str(e))
        return result

    result.config = config
    validation = validate_config(config, zoneinfo_dir=zoneinfo_dir)
    result.errors.extend(validation.errors)
    result.warnings.extend(validation.warnings)

    if not config:
        result.warnings.append("Config file has no settings; defaults will be used.")

    result.valid = not result.errors
    return result
