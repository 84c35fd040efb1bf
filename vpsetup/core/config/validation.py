"""
Config validation — semantic checks on a loaded ConfigMap.

Errors make the config unusable (the run refuses to start); warnings
are reported and the run proceeds.
"""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass, field
from pathlib import Path

from vpsetup.core.config.loader import ConfigMap
from vpsetup.core.config.template import DEFAULTS

USERNAME_RE = re.compile(r"^[a-z_][a-z0-9_-]*$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
SHARE_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")
ZONEINFO_DIR = Path("/usr/share/zoneinfo")

MIN_SSH_PORT = 1024
MAX_SSH_PORT = 65535


def parse_port(value: str, low: int = 1, high: int = 65535) -> int | None:
    """The port as int when ``value`` is plain ASCII digits in [low, high], else None."""
    value = value.strip()
    if not (value.isascii() and value.isdecimal()):
        return None
    port = int(value)
    return port if low <= port <= high else None


@dataclass
class ConfigValidation:
    """Outcome of validating a config."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {"valid": self.valid, "errors": self.errors, "warnings": self.warnings}


def validate_config(config: ConfigMap, zoneinfo_dir: Path = ZONEINFO_DIR) -> ConfigValidation:
    """Check a config for values that would break provisioning.

    Args:
        config: Loaded configuration.
        zoneinfo_dir: Timezone database to check ``general.timezone`` against.

    Returns:
        ConfigValidation; parse warnings from loading are included.
    """
    result = ConfigValidation(warnings=list(config.warnings))

    username = config.get("user.username", DEFAULTS["user.username"])
    if not USERNAME_RE.match(username):
        result.errors.append(
            f"Invalid username '{username}': must start with a lowercase letter or '_' "
            "and contain only lowercase letters, digits, '_' or '-'"
        )

    port = config.get("ssh.ssh_port", DEFAULTS["ssh.ssh_port"])
    if parse_port(port, MIN_SSH_PORT, MAX_SSH_PORT) is None:
        result.errors.append(
            f"Invalid SSH port '{port}': must be a number between {MIN_SSH_PORT} and {MAX_SSH_PORT}"
        )

    timezone = config.get("general.timezone", DEFAULTS["general.timezone"])
    if zoneinfo_dir.is_dir() and not (zoneinfo_dir / timezone).is_file():
        result.warnings.append(f"Timezone '{timezone}' not found in {zoneinfo_dir}")

    share_name = config.get("samba.share_name", DEFAULTS["samba.share_name"])
    if not SHARE_NAME_RE.match(share_name):
        result.errors.append(f"Invalid Samba share name '{share_name}': use letters, digits, '_' or '-'")

    subnet = config.get("samba.allowed_subnet", DEFAULTS["samba.allowed_subnet"])
    try:
        ipaddress.ip_network(subnet, strict=False)
    except ValueError:
        result.errors.append(f"Invalid Samba subnet '{subnet}': expected an address or CIDR network")

    if config.get_bool("advanced.email_notifications", False):
        email = config.get("advanced.admin_email")
        if not EMAIL_RE.match(email):
            result.errors.append(f"Invalid admin email '{email}' (required for email notifications)")

    known = set(DEFAULTS)
    for key in config:
        if key not in known:
            result.warnings.append(f"Unknown config key: {key}")

    return result
