"""
Backups — local backup layout, system/Docker backup scripts, restore
helper, optional daily schedule and freshness check.
"""

from __future__ import annotations

import logging

from vpsetup.provisioning.base import ModuleContext, install_packages, provisioning_step

logger = logging.getLogger(__name__)

BACKUP_ROOT = "/opt/backups"
BACKUP_DIRS = ("system", "docker", "logs", "scripts")
RETENTION_DAYS = 7
MAX_AGE_HOURS = 26

BACKUP_PACKAGES = ("rsync", "tar", "gzip", "pigz", "restic")

SYSTEM_BACKUP = f"{BACKUP_ROOT}/scripts/system-backup.sh"
DOCKER_BACKUP = f"{BACKUP_ROOT}/scripts/docker-backup.sh"
RUN_BACKUPS = f"{BACKUP_ROOT}/scripts/run-backups.sh"
RESTORE_SYSTEM = f"{BACKUP_ROOT}/scripts/restore-system.sh"
CHECK_BACKUPS = f"{BACKUP_ROOT}/scripts/check-backups.sh"
CRON_FILE = "/etc/cron.d/vps-backup"

SYSTEM_BACKUP_SCRIPT = f"""\
#!/bin/bash
# System configuration backup (vps-setup)
set -euo pipefail

BACKUP_ROOT="{BACKUP_ROOT}"
DATE=$(date +%Y%m%d_%H%M%S)
DEST="$BACKUP_ROOT/system/$DATE"
mkdir -p "$DEST"

tar -czf "$DEST/configs.tar.gz" \\
    /etc/passwd /etc/group /etc/shadow /etc/gshadow \\
    /etc/hosts /etc/hostname /etc/fstab /etc/crontab \\
    /etc/ssh /etc/sudoers /etc/sudoers.d \\
    /etc/ufw /etc/fail2ban /etc/sysctl.d /etc/security \\
    /etc/apt/sources.list.d /etc/docker 2>/dev/null || true

tar -czf "$DEST/home.tar.gz" /home /root 2>/dev/null || true
dpkg --get-selections > "$DEST/packages.list"
crontab -l > "$DEST/root-crontab.txt" 2>/dev/null || true

find "$BACKUP_ROOT/system" -mindepth 1 -maxdepth 1 -type d -mtime +{RETENTION_DAYS} -exec rm -rf {{}} +
echo "System backup written to $DEST"
"""

DOCKER_BACKUP_SCRIPT = f"""\
#!/bin/bash
# Docker volume backup (vps-setup)
set -euo pipefail

command -v docker >/dev/null 2>&1 || {{ echo "Docker not installed, skipping"; exit 0; }}

BACKUP_ROOT="{BACKUP_ROOT}"
DATE=$(date +%Y%m%d_%H%M%S)
DEST="$BACKUP_ROOT/docker/$DATE"
mkdir -p "$DEST"

for volume in $(docker volume ls -q); do
    docker run --rm -v "$volume":/data:ro -v "$DEST":/backup alpine \\
        tar -czf "/backup/$volume.tar.gz" -C /data .
done
docker ps -a --format '{{{{.Names}}}} {{{{.Image}}}} {{{{.Status}}}}' > "$DEST/containers.txt"

find "$BACKUP_ROOT/docker" -mindepth 1 -maxdepth 1 -type d -mtime +{RETENTION_DAYS} -exec rm -rf {{}} +
echo "Docker backup written to $DEST"
"""

RUN_BACKUPS_SCRIPT = f"""\
#!/bin/bash
# Run every backup job (vps-setup)
LOG="{BACKUP_ROOT}/logs/backup-$(date +%Y%m%d).log"
{{
    echo "[$(date -Is)] starting backups"
    {SYSTEM_BACKUP}
    {DOCKER_BACKUP}
    echo "[$(date -Is)] backups finished"
}} >> "$LOG" 2>&1
"""

RESTORE_SYSTEM_SCRIPT = f"""\
#!/bin/bash
# Restore configuration from a system backup (vps-setup)
set -euo pipefail

BACKUP_ROOT="{BACKUP_ROOT}"
if [ $# -ne 1 ]; then
    echo "Usage: $0 <backup-date>"
    echo "Available backups:"
    ls -1 "$BACKUP_ROOT/system"
    exit 1
fi

SRC="$BACKUP_ROOT/system/$1"
[ -d "$SRC" ] || {{ echo "No backup at $SRC"; exit 1; }}

read -r -p "Restore /etc from $SRC? This overwrites current files (y/N) " answer
[ "$answer" = "y" ] || [ "$answer" = "Y" ] || exit 0
tar -xzf "$SRC/configs.tar.gz" -C /
echo "Restored. Review changes, then restart affected services."
"""

CHECK_BACKUPS_SCRIPT = f"""\
#!/bin/bash
# Alert when the newest backup is too old (vps-setup)
BACKUP_ROOT="{BACKUP_ROOT}"
latest=$(find "$BACKUP_ROOT/system" -mindepth 1 -maxdepth 1 -type d -printf '%T@\\n' 2>/dev/null | sort -n | tail -1)
if [ -z "$latest" ]; then
    logger -t vps-backup "WARNING: no system backups found"
    exit 1
fi
age_hours=$(( ( $(date +%s) - ${{latest%.*}} ) / 3600 ))
if [ "$age_hours" -gt {MAX_AGE_HOURS} ]; then
    logger -t vps-backup "WARNING: newest system backup is $age_hours hours old"
    exit 1
fi
"""


def cron_entries(daily_backup: bool, backup_monitoring: bool) -> list[str]:
    """Lines for /etc/cron.d/vps-backup."""
    entries = []
    if daily_backup:
        entries.append(f"0 2 * * * root {RUN_BACKUPS}")
    if backup_monitoring:
        entries.append(f"0 8 * * * root {CHECK_BACKUPS}")
    return entries


@provisioning_step("backup")
def run(ctx: ModuleContext) -> str:
    if not ctx.settings.enable_backups:
        logger.info("Backups disabled in configuration")
        return "Backups disabled in configuration"

    install_packages(ctx, BACKUP_PACKAGES)

    ctx.files.ensure_dir(BACKUP_ROOT, mode=0o700)
    for name in BACKUP_DIRS:
        ctx.files.ensure_dir(f"{BACKUP_ROOT}/{name}", mode=0o700)

    for path, script in (
        (SYSTEM_BACKUP, SYSTEM_BACKUP_SCRIPT),
        (DOCKER_BACKUP, DOCKER_BACKUP_SCRIPT),
        (RUN_BACKUPS, RUN_BACKUPS_SCRIPT),
        (RESTORE_SYSTEM, RESTORE_SYSTEM_SCRIPT),
        (CHECK_BACKUPS, CHECK_BACKUPS_SCRIPT),
    ):
        ctx.files.write_text(path, script, mode=0o750)

    entries = cron_entries(ctx.settings.daily_backup, ctx.settings.backup_monitoring)
    if entries:
        header = "SHELL=/bin/bash\nPATH=/usr/local/sbin:/usr/local/bin:/usr/sbin:/usr/bin:/sbin:/bin\n"
        ctx.files.write_text(CRON_FILE, header + "\n".join(entries) + "\n", mode=0o644)
    else:
        ctx.files.remove(CRON_FILE)

    schedule = "daily at 02:00" if ctx.settings.daily_backup else "manual only"
    return f"Backups configured in {BACKUP_ROOT} ({schedule}, {RETENTION_DAYS}-day retention)"
