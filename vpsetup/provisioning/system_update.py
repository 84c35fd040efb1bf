"""
System update — packages, time, hostname, swap and unattended upgrades.
"""

from __future__ import annotations

import logging
import re

from vpsetup.core.models.prompt import PromptKind
from vpsetup.provisioning.base import (
    ModuleContext,
    apt_update,
    check_disk_space,
    enable_service,
    install_packages,
    memory_mb,
    provisioning_step,
)

logger = logging.getLogger(__name__)

REQUIRED_DISK_MB = 2048

ESSENTIAL_PACKAGES = (
    "curl",
    "wget",
    "git",
    "vim",
    "htop",
    "net-tools",
    "software-properties-common",
    "apt-transport-https",
    "ca-certificates",
    "gnupg",
    "lsb-release",
    "ufw",
    "fail2ban",
    "unattended-upgrades",
    "apt-listchanges",
    "jq",
    "unzip",
    "tree",
)

SWAPFILE = "/swapfile"
SWAP_MAX_MB = 8192

_HOSTNAME_RE = re.compile(r"^[a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?$")

UNATTENDED_UPGRADES = """\
Unattended-Upgrade::Allowed-Origins {
    "${distro_id}:${distro_codename}";
    "${distro_id}:${distro_codename}-security";
    "${distro_id}ESMApps:${distro_codename}-apps-security";
    "${distro_id}ESM:${distro_codename}-infra-security";
};

Unattended-Upgrade::Package-Blacklist {
};

Unattended-Upgrade::DevRelease "false";
Unattended-Upgrade::Remove-Unused-Kernel-Packages "true";
Unattended-Upgrade::Remove-New-Unused-Dependencies "true";
Unattended-Upgrade::Remove-Unused-Dependencies "true";
Unattended-Upgrade::Automatic-Reboot "false";
Unattended-Upgrade::SyslogEnable "true";
"""

AUTO_UPGRADES = """\
APT::Periodic::Update-Package-Lists "1";
APT::Periodic::Download-Upgradeable-Packages "1";
APT::Periodic::AutocleanInterval "7";
APT::Periodic::Unattended-Upgrade "1";
"""

LIMITS_CONF = """\
# Raised by vps-setup
* soft nofile 65535
* hard nofile 65535
* soft nproc 65535
* hard nproc 65535
"""

PERFORMANCE_SYSCTL = """\
# Network and memory tuning (vps-setup)
net.core.somaxconn = 65535
net.ipv4.tcp_max_syn_backlog = 8192
net.ipv4.tcp_fin_timeout = 15
net.ipv4.tcp_keepalive_time = 300
net.ipv4.ip_local_port_range = 1024 65535
vm.swappiness = 10
vm.vfs_cache_pressure = 50
fs.file-max = 2097152
"""


def swap_size_mb(ram_mb: int) -> int:
    """Swap size for a machine with ``ram_mb`` of RAM.

    Twice the RAM, but machines with more than 2GB get a swap equal to
    their RAM, and nothing gets more than 8GB.
    """
    size = ram_mb * 2
    if size > 4096:
        size = ram_mb
    return min(size, SWAP_MAX_MB)


def _upgrade_system(ctx: ModuleContext) -> None:
    logger.info("Updating package lists and upgrading the system")
    apt_update(ctx)
    ctx.runner.check(["apt-get", "upgrade", "-y", "-qq"])
    ctx.runner.check(["apt-get", "dist-upgrade", "-y", "-qq"])
    ctx.runner.run(["apt-get", "autoremove", "-y", "-qq"])
    ctx.runner.run(["apt-get", "autoclean", "-qq"])


def _configure_time(ctx: ModuleContext) -> None:
    timezone = ctx.settings.timezone
    ctx.runner.check(["timedatectl", "set-timezone", timezone])
    ctx.runner.run(["timedatectl", "set-ntp", "true"])
    logger.info("Timezone set to %s, NTP enabled", timezone)

    locale = ctx.settings.locale
    charset = locale.split(".", 1)[1] if "." in locale else "UTF-8"
    ctx.files.update_config_line("/etc/locale.gen", locale, f"{locale} {charset}")
    ctx.runner.run(["locale-gen", locale])
    ctx.runner.run(["update-locale", f"LANG={locale}"])


def _configure_hostname(ctx: ModuleContext) -> str | None:
    current = ctx.runner.run(["hostname"]).stdout or "unknown"
    if not ctx.confirmer.confirm(PromptKind.CHANGE_HOSTNAME, f"Current hostname is '{current}'. Change it?"):
        return None

    hostname = ctx.confirmer.ask(PromptKind.HOSTNAME, "Enter new hostname", "")
    if not hostname:
        logger.warning("No hostname given, keeping %s", current)
        return None
    if not _HOSTNAME_RE.match(hostname):
        logger.warning("Invalid hostname '%s', keeping %s", hostname, current)
        return None

    ctx.runner.check(["hostnamectl", "set-hostname", hostname])
    ctx.files.update_config_line("/etc/hosts", "127.0.1.1", f"127.0.1.1\t{hostname}")
    logger.info("Hostname changed to %s", hostname)
    return hostname


def _configure_swap(ctx: ModuleContext) -> int:
    """Create a swap file when none is active. Returns its size in MB (0 if none made)."""
    if ctx.runner.run(["swapon", "--show", "--noheadings"]).stdout:
        logger.info("Swap already configured")
        return 0

    ram = memory_mb(ctx)
    if ram <= 0:
        logger.warning("Cannot determine memory size, skipping swap creation")
        return 0

    size = swap_size_mb(ram)
    logger.info("Creating %dMB swap file", size)
    if not ctx.runner.run(["fallocate", "-l", f"{size}M", SWAPFILE]).ok:
        ctx.runner.check(["dd", "if=/dev/zero", f"of={SWAPFILE}", "bs=1M", f"count={size}"])
    ctx.runner.check(["chmod", "600", SWAPFILE])
    ctx.runner.check(["mkswap", SWAPFILE])
    ctx.runner.check(["swapon", SWAPFILE])
    ctx.files.append_line_if_missing("/etc/fstab", f"{SWAPFILE} none swap sw 0 0")
    return size


def _configure_auto_updates(ctx: ModuleContext) -> None:
    for path, content in (
        ("/etc/apt/apt.conf.d/50unattended-upgrades", UNATTENDED_UPGRADES),
        ("/etc/apt/apt.conf.d/20auto-upgrades", AUTO_UPGRADES),
    ):
        ctx.files.backup(path)
        ctx.files.write_text(path, content)
    enable_service(ctx, "unattended-upgrades")
    logger.info("Automatic security updates configured")


def _tune_limits(ctx: ModuleContext) -> None:
    ctx.files.write_text("/etc/security/limits.d/99-vps-setup.conf", LIMITS_CONF)
    ctx.files.write_text("/etc/sysctl.d/99-vps-setup-performance.conf", PERFORMANCE_SYSCTL)
    ctx.runner.run(["sysctl", "-p", "/etc/sysctl.d/99-vps-setup-performance.conf"])


@provisioning_step("system_update")
def run(ctx: ModuleContext) -> str:
    check_disk_space(ctx, REQUIRED_DISK_MB)
    _upgrade_system(ctx)
    install_packages(ctx, ESSENTIAL_PACKAGES)
    _configure_time(ctx)
    hostname = _configure_hostname(ctx)
    swap = _configure_swap(ctx)
    _tune_limits(ctx)
    _configure_auto_updates(ctx)

    notes = ["System updated", f"timezone {ctx.settings.timezone}"]
    if hostname:
        notes.append(f"hostname {hostname}")
    if swap:
        notes.append(f"{swap}MB swap")
    return ", ".join(notes)
