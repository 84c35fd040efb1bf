"""
Provisioning modules — one per catalog entry.

``ACTIONS`` maps catalog names to their ``run(ctx)`` functions;
``build_registry`` joins them with the packaged catalog.
"""

from __future__ import annotations

from collections.abc import Callable

from vpsetup.core.config.catalog_loader import load_catalog
from vpsetup.core.engine.registry import ModuleRegistry
from vpsetup.core.models.receipt import Receipt
from vpsetup.provisioning import (
    backup,
    docker,
    docker_ufw,
    firewall,
    monitoring,
    samba,
    security,
    ssh_hardening,
    system_update,
    user_management,
)
from vpsetup.provisioning.base import ModuleContext

ACTIONS: dict[str, Callable[[ModuleContext], Receipt]] = {
    "system_update": system_update.run,
    "user_management": user_management.run,
    "ssh_hardening": ssh_hardening.run,
    "firewall": firewall.run,
    "security": security.run,
    "docker": docker.run,
    "docker_ufw": docker_ufw.run,
    "monitoring": monitoring.run,
    "backup": backup.run,
    "samba": samba.run,
}


def build_registry() -> ModuleRegistry:
    """Registry of the packaged catalog bound to the provisioning functions."""
    catalog = load_catalog()
    return ModuleRegistry(catalog.modules, ACTIONS, bundles=catalog.bundles)


__all__ = ["ACTIONS", "ModuleContext", "build_registry"]
