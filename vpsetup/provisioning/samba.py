"""
Samba — an SMB3-only file share for one user, reachable from one subnet.

smb.conf gets an encryption/signing block under ``[global]`` (once) and
a share block at the end. A config that ``testparm`` rejects is rolled
back to what was there before.
"""

from __future__ import annotations

import ipaddress
import logging

from vpsetup.core.config.validation import SHARE_NAME_RE
from vpsetup.core.errors import CommandError, StepAborted
from vpsetup.core.models.prompt import PromptKind
from vpsetup.provisioning.base import (
    ModuleContext,
    enable_service,
    install_packages,
    provisioning_step,
    restart_service,
)
from vpsetup.provisioning.user_management import generate_password

logger = logging.getLogger(__name__)

SMB_CONF = "/etc/samba/smb.conf"
SAMBA_CREDENTIALS_FILE = "/root/vps-setup-samba-credentials"
SAMBA_PORTS = ("139", "445")

SECURITY_MARKER = "# SMB3 security (vps-setup)"
SECURITY_SETTINGS = f"""\
   {SECURITY_MARKER}
   server min protocol = SMB3
   client min protocol = SMB3
   smb encrypt = required
   server signing = mandatory
   client signing = mandatory
   ntlm auth = no
   lanman auth = no
   restrict anonymous = 2
   map to guest = Never
   log file = /var/log/samba/log.%m
   max log size = 1000
   log level = 1 auth:3
"""


def valid_share_name(name: str) -> bool:
    return bool(SHARE_NAME_RE.match(name))


def share_block(name: str, path: str, user: str, subnet: str, read_only: bool = False) -> str:
    return (
        f"\n[{name}]\n"
        f"   comment = Samba Share - {name}\n"
        f"   path = {path}\n"
        "   browseable = yes\n"
        f"   read only = {'yes' if read_only else 'no'}\n"
        "   create mask = 0770\n"
        "   directory mask = 0770\n"
        f"   valid users = {user}\n"
        f"   force user = {user}\n"
        f"   force group = {user}\n"
        f"   hosts allow = {subnet} 127.0.0.1\n"
        "   hosts deny = ALL\n"
    )


def add_security_settings(content: str) -> str:
    """Insert the SMB3 block right after ``[global]`` unless it is already there."""
    if SECURITY_MARKER in content:
        return content
    lines = content.splitlines(keepends=True)
    for index, line in enumerate(lines):
        if line.strip().lower() == "[global]":
            lines.insert(index + 1, SECURITY_SETTINGS)
            return "".join(lines)
    return f"[global]\n{SECURITY_SETTINGS}" + content


def has_share(content: str, name: str) -> bool:
    header = f"[{name}]".lower()
    return any(line.strip().lower() == header for line in content.splitlines())


def remove_share(content: str, name: str) -> str:
    """Drop the ``[name]`` section up to the next section header."""
    header = f"[{name}]".lower()
    kept: list[str] = []
    skipping = False
    for line in content.splitlines(keepends=True):
        stripped = line.strip()
        if stripped.startswith("["):
            skipping = stripped.lower() == header
        if not skipping:
            kept.append(line)
    return "".join(kept).rstrip("\n") + "\n"


def _choose_share(ctx: ModuleContext) -> tuple[str, ipaddress.IPv4Network | ipaddress.IPv6Network]:
    name = ctx.confirmer.ask(PromptKind.SAMBA_SHARE_NAME, "Samba share name", ctx.settings.samba_share_name)
    if not valid_share_name(name):
        raise StepAborted(f"Invalid share name '{name}': use letters, digits, '_' or '-'")

    answer = ctx.confirmer.ask(
        PromptKind.SAMBA_SUBNET, "Subnet allowed to reach the share", ctx.settings.samba_subnet
    )
    try:
        subnet = ipaddress.ip_network(answer, strict=False)
    except ValueError as e:
        raise StepAborted(f"Invalid Samba subnet '{answer}'") from e
    return name, subnet


def _set_password(ctx: ModuleContext, user: str) -> str:
    if ctx.settings.auto_mode:
        password = generate_password()
        ctx.runner.check(["smbpasswd", "-a", "-s", user], input=f"{password}\n{password}\n")
        ctx.files.write_text(SAMBA_CREDENTIALS_FILE, f"{user}:{password}\n", mode=0o600)
        logger.warning("Samba password for %s written to %s", user, SAMBA_CREDENTIALS_FILE)
        note = f"password in {SAMBA_CREDENTIALS_FILE}"
    else:
        ctx.runner.check(["smbpasswd", "-a", user], interactive=True)
        note = "password set interactively"
    ctx.runner.check(["smbpasswd", "-e", user])
    return note


def _open_ports(ctx: ModuleContext, subnet: str) -> bool:
    status = ctx.runner.run(["ufw", "status"]).stdout if ctx.runner.which("ufw") else ""
    if "Status: active" not in status:
        logger.warning("UFW is not active: skipping Samba firewall rules")
        return False
    for port in SAMBA_PORTS:
        ctx.runner.check(
            ["ufw", "allow", "from", subnet, "to", "any", "port", port, "proto", "tcp", "comment", "Samba"]
        )
    return True


@provisioning_step("samba")
def run(ctx: ModuleContext) -> str:
    name, subnet = _choose_share(ctx)
    user = ctx.settings.username
    path = ctx.settings.samba_share_path
    read_only = ctx.settings.samba_read_only

    original = ctx.files.read_text(SMB_CONF)
    if has_share(original, name):
        if not ctx.confirmer.confirm(PromptKind.SAMBA_OVERWRITE_SHARE, f"Share [{name}] already exists. Overwrite it?"):
            return f"Samba share [{name}] already configured, left unchanged"

    install_packages(ctx, ["samba", "samba-common-bin"])

    if not ctx.runner.succeeds(["id", user]):
        ctx.runner.check(["useradd", "-m", "-s", "/bin/bash", user])
        logger.info("Created system user %s for Samba", user)

    ctx.files.ensure_dir(path, mode=0o755 if read_only else 0o770)
    ctx.runner.check(["chown", "-R", f"{user}:{user}", path])

    original = ctx.files.read_text(SMB_CONF)
    ctx.files.backup(SMB_CONF)
    content = add_security_settings(remove_share(original, name) if has_share(original, name) else original)
    content = content.rstrip("\n") + "\n" + share_block(name, path, user, str(subnet), read_only)
    ctx.files.write_text(SMB_CONF, content)

    try:
        ctx.runner.check(["testparm", "-s"])
    except CommandError as e:
        ctx.files.write_text(SMB_CONF, original)
        raise StepAborted(f"Samba configuration test failed, previous smb.conf restored: {e}") from e

    notes = [_set_password(ctx, user)]
    if _open_ports(ctx, str(subnet)):
        notes.append(f"ports {'/'.join(SAMBA_PORTS)} open to {subnet}")

    for service in ("smbd", "nmbd"):
        enable_service(ctx, service, now=False)
        restart_service(ctx, service)

    access = "read-only" if read_only else "read/write"
    return f"Samba share [{name}] at {path} for {user}, {access} ({', '.join(notes)})"
