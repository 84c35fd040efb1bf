"""
Monitoring — diagnostic tools, log rotation, journald limits, optional
Netdata and Monit, and a daily system report.
"""

from __future__ import annotations

import logging

from vpsetup.core.models.prompt import PromptKind
from vpsetup.provisioning.base import (
    ModuleContext,
    detect_ssh_port,
    enable_service,
    install_packages,
    provisioning_step,
    restart_service,
)

logger = logging.getLogger(__name__)

MONITORING_PACKAGES = (
    "htop",
    "iotop",
    "nethogs",
    "ncdu",
    "lsof",
    "sysstat",
    "vnstat",
    "logwatch",
    "logrotate",
    "rsyslog",
)

NETDATA_INSTALLER_URL = "https://get.netdata.cloud/kickstart.sh"
NETDATA_INSTALLER = "/tmp/netdata-kickstart.sh"
NETDATA_TIMEOUT = 900

LOGROTATE_CONF = """\
/var/log/vps-setup.log /var/log/vps-backup.log /var/log/system-report.log {
    weekly
    rotate 8
    compress
    delaycompress
    missingok
    notifempty
    create 0640 root adm
}
"""

JOURNALD_CONF = """\
[Journal]
Storage=persistent
Compress=yes
SystemMaxUse=500M
SystemMaxFileSize=50M
MaxRetentionSec=1month
"""

MONIT_CHECKS = """\
set daemon 60
set log /var/log/monit.log

check system $HOST
    if loadavg (5min) > 4 then alert
    if memory usage > 90% then alert
    if cpu usage > 95% for 10 cycles then alert

check filesystem rootfs with path /
    if space usage > 85% then alert

check process sshd with pidfile /run/sshd.pid
    start program = "/usr/bin/systemctl start ssh"
    stop program = "/usr/bin/systemctl stop ssh"
    if failed port {ssh_port} protocol ssh then restart

check process fail2ban with pidfile /run/fail2ban/fail2ban.pid
    start program = "/usr/bin/systemctl start fail2ban"
    stop program = "/usr/bin/systemctl stop fail2ban"
"""

DAILY_REPORT = """\
#!/bin/sh
# Daily system report (vps-setup)
{
    echo "=== System report: $(hostname) $(date -Is) ==="
    echo; echo "--- Uptime ---"; uptime
    echo; echo "--- Disk ---"; df -h -x tmpfs -x devtmpfs
    echo; echo "--- Memory ---"; free -m
    echo; echo "--- Failed units ---"; systemctl --failed --no-legend
    echo; echo "--- Banned IPs ---"; fail2ban-client status sshd 2>/dev/null | grep 'Banned IP' || true
    echo; echo "--- Pending updates ---"; apt list --upgradable 2>/dev/null | tail -n +2 | wc -l
    if command -v docker >/dev/null 2>&1; then
        echo; echo "--- Containers ---"; docker ps --format '{{.Names}}: {{.Status}}'
    fi
} >> /var/log/system-report.log 2>&1
"""


def _netdata(ctx: ModuleContext) -> bool:
    if not ctx.settings.install_netdata:
        return False
    if not ctx.confirmer.confirm(PromptKind.GENERIC, "Install Netdata for real-time monitoring?"):
        return False
    ctx.runner.check(["curl", "-fsSL", "-o", NETDATA_INSTALLER, NETDATA_INSTALLER_URL], timeout=60)
    ctx.runner.check(
        ["sh", NETDATA_INSTALLER, "--non-interactive", "--stable-channel", "--disable-telemetry"],
        timeout=NETDATA_TIMEOUT,
    )
    logger.warning("Netdata listens on port 19999, closed by UFW; reach it through an SSH tunnel")
    return True


def _monit(ctx: ModuleContext) -> bool:
    if not ctx.settings.install_monit:
        return False
    if not ctx.confirmer.confirm(PromptKind.GENERIC, "Install Monit for process monitoring and auto-restart?"):
        return False
    install_packages(ctx, ["monit"])
    checks = MONIT_CHECKS.replace("{ssh_port}", str(detect_ssh_port(ctx.files)))
    ctx.files.write_text("/etc/monit/conf.d/vps-setup", checks, mode=0o600)
    enable_service(ctx, "monit")
    restart_service(ctx, "monit")
    return True


def _daily_report(ctx: ModuleContext) -> bool:
    if not ctx.settings.daily_reports:
        return False
    ctx.files.write_text("/etc/cron.daily/system-report", DAILY_REPORT, mode=0o755)
    return True


@provisioning_step("monitoring")
def run(ctx: ModuleContext) -> str:
    install_packages(ctx, MONITORING_PACKAGES)
    enable_service(ctx, "sysstat")
    enable_service(ctx, "vnstat")

    ctx.files.write_text("/etc/logrotate.d/vps-setup", LOGROTATE_CONF)
    ctx.files.write_text("/etc/systemd/journald.conf.d/99-vps-setup.conf", JOURNALD_CONF)
    restart_service(ctx, "systemd-journald")

    extras = [
        name
        for name, installed in (
            ("Netdata", _netdata(ctx)),
            ("Monit", _monit(ctx)),
            ("daily report", _daily_report(ctx)),
        )
        if installed
    ]
    summary = "Monitoring tools installed"
    return f"{summary} ({', '.join(extras)})" if extras else summary
