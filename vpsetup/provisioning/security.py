"""
Security hardening — kernel parameters, AppArmor, AIDE, auditd, tools.
"""

from __future__ import annotations

import logging

from vpsetup.core.models.prompt import PromptKind
from vpsetup.provisioning.base import (
    ModuleContext,
    enable_service,
    install_packages,
    provisioning_step,
    restart_service,
)

logger = logging.getLogger(__name__)

SYSCTL_HARDENING = "/etc/sysctl.d/99-security-hardening.conf"
AUDIT_RULES = "/etc/audit/rules.d/hardening.rules"
AIDE_CRON = "/etc/cron.daily/aide-check"

SECURITY_TOOLS = ("rkhunter", "chkrootkit", "lynis", "debsums", "needrestart")

SENSITIVE_FILE_MODES = (
    ("/etc/passwd", 0o644),
    ("/etc/group", 0o644),
    ("/etc/shadow", 0o640),
    ("/etc/gshadow", 0o640),
    ("/etc/ssh/sshd_config", 0o600),
    ("/etc/crontab", 0o600),
)

KERNEL_HARDENING = """\
# Kernel hardening (vps-setup)

# IP spoofing protection
net.ipv4.conf.all.rp_filter = 1
net.ipv4.conf.default.rp_filter = 1

# Ignore ICMP redirects and don't send them
net.ipv4.conf.all.accept_redirects = 0
net.ipv6.conf.all.accept_redirects = 0
net.ipv4.conf.all.send_redirects = 0

# No source routing
net.ipv4.conf.all.accept_source_route = 0
net.ipv6.conf.all.accept_source_route = 0

# Log martians
net.ipv4.conf.all.log_martians = 1

# Ignore broadcast pings and bogus ICMP errors
net.ipv4.icmp_echo_ignore_broadcasts = 1
net.ipv4.icmp_ignore_bogus_error_responses = 1

# SYN flood protection
net.ipv4.tcp_syncookies = 1
net.ipv4.tcp_max_syn_backlog = 2048
net.ipv4.tcp_synack_retries = 2
net.ipv4.tcp_syn_retries = 5

# Kernel pointers and dmesg
kernel.kptr_restrict = 2
kernel.dmesg_restrict = 1
kernel.yama.ptrace_scope = 1
fs.protected_hardlinks = 1
fs.protected_symlinks = 1
"""

AUDIT_RULESET = """\
# Audit rules (vps-setup)
-D
-b 8192
-f 1

# Identity and privilege
-w /etc/passwd -p wa -k passwd_changes
-w /etc/group -p wa -k group_changes
-w /etc/shadow -p wa -k shadow_changes
-w /etc/sudoers -p wa -k sudoers_changes
-w /etc/sudoers.d/ -p wa -k sudoers_changes

# SSH
-w /etc/ssh/sshd_config -p wa -k ssh_config

# Time changes
-a always,exit -F arch=b64 -S adjtimex -S settimeofday -k time_change
-a always,exit -F arch=b64 -S clock_settime -k time_change

# Deletions by real users
-a always,exit -F arch=b64 -S unlink -S unlinkat -S rename -S renameat -F auid>=1000 -F auid!=4294967295 -k delete
"""

AIDE_CHECK_SCRIPT = """\
#!/bin/sh
# Daily AIDE integrity check (vps-setup)
/usr/bin/aide --check --config /etc/aide/aide.conf > /var/log/aide-check.log 2>&1
"""


def _kernel_hardening(ctx: ModuleContext) -> None:
    ctx.files.write_text(SYSCTL_HARDENING, KERNEL_HARDENING)
    result = ctx.runner.run(["sysctl", "-p", SYSCTL_HARDENING])
    if not result.ok:
        logger.warning("Some kernel parameters were not applied: %s", result.stderr)


def _apparmor(ctx: ModuleContext) -> None:
    install_packages(ctx, ["apparmor", "apparmor-utils", "apparmor-profiles", "apparmor-profiles-extra"])
    enable_service(ctx, "apparmor")


def _aide(ctx: ModuleContext) -> bool:
    if not ctx.confirmer.confirm(PromptKind.INSTALL_AIDE, "Install AIDE (file integrity monitoring)?"):
        return False
    install_packages(ctx, ["aide", "aide-common"])
    logger.info("Initialising the AIDE database, this can take several minutes")
    ctx.runner.check(["aideinit", "-y", "-f"])
    ctx.runner.run(["cp", "/var/lib/aide/aide.db.new", "/var/lib/aide/aide.db"])
    ctx.files.write_text(AIDE_CRON, AIDE_CHECK_SCRIPT, mode=0o755)
    return True


def _auditd(ctx: ModuleContext) -> None:
    install_packages(ctx, ["auditd", "audispd-plugins"])
    ctx.files.write_text(AUDIT_RULES, AUDIT_RULESET)
    ctx.runner.run(["augenrules", "--load"])
    enable_service(ctx, "auditd")
    restart_service(ctx, "auditd")


def _file_permissions(ctx: ModuleContext) -> int:
    return sum(1 for path, mode in SENSITIVE_FILE_MODES if ctx.files.chmod(path, mode))


@provisioning_step("security")
def run(ctx: ModuleContext) -> str:
    _kernel_hardening(ctx)
    _apparmor(ctx)
    aide = _aide(ctx)
    _auditd(ctx)
    install_packages(ctx, SECURITY_TOOLS)
    fixed = _file_permissions(ctx)

    parts = ["kernel hardening", "AppArmor", "auditd", f"{len(SECURITY_TOOLS)} security tools"]
    if aide:
        parts.append("AIDE")
    if fixed:
        parts.append(f"{fixed} file permissions tightened")
    return "Security hardening applied: " + ", ".join(parts)
