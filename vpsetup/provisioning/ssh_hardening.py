"""
SSH hardening — port, sshd drop-in, 2FA, host keys, banner, fail2ban.

The sshd configuration is validated with ``sshd -t`` before the daemon
is restarted; an invalid configuration fails the module instead of
locking the operator out.
"""

from __future__ import annotations

import logging

from vpsetup.core.config.validation import parse_port
from vpsetup.core.errors import CommandError, StepAborted
from vpsetup.core.models.prompt import PromptKind
from vpsetup.provisioning.base import (
    SSHD_CONFIG,
    SSHD_CONFIG_DIR,
    ModuleContext,
    detect_ssh_port,
    enable_service,
    install_packages,
    port_in_use,
    provisioning_step,
    restart_service,
)

logger = logging.getLogger(__name__)

HARDENING_CONF = f"{SSHD_CONFIG_DIR}/99-hardening.conf"
FAIL2BAN_JAIL = "/etc/fail2ban/jail.d/ssh.conf"
BANNER_FILE = "/etc/issue.net"
PAM_SSHD = "/etc/pam.d/sshd"
PAM_GOOGLE_AUTH = "auth required pam_google_authenticator.so nullok"

MIN_PORT = 1024
MAX_PORT = 65535
FALLBACK_PORT = 2222
MAX_PORT_ATTEMPTS = 3

HARDENING_SETTINGS = """\
# SSH hardening (vps-setup)

# Basic security
{permit_root}
PasswordAuthentication {password_auth}
PermitEmptyPasswords no
KbdInteractiveAuthentication {kbd_interactive}
UsePAM yes

# Key authentication
PubkeyAuthentication yes
AuthorizedKeysFile .ssh/authorized_keys

# Connection settings
ClientAliveInterval 300
ClientAliveCountMax 2
MaxAuthTries 3
MaxSessions 10
MaxStartups 10:30:60
LoginGraceTime 30s

# Disable unsafe features
X11Forwarding no
AllowAgentForwarding no
AllowTcpForwarding no
PermitTunnel no
DebianBanner no

# Logging
SyslogFacility AUTH
LogLevel VERBOSE

# Ciphers and algorithms
Ciphers chacha20-poly1305@openssh.com,aes256-gcm@openssh.com,aes128-gcm@openssh.com,aes256-ctr,aes192-ctr,aes128-ctr
MACs hmac-sha2-512-etm@openssh.com,hmac-sha2-256-etm@openssh.com,hmac-sha2-512,hmac-sha2-256
KexAlgorithms curve25519-sha256,curve25519-sha256@libssh.org,diffie-hellman-group16-sha512,diffie-hellman-group18-sha512
HostKeyAlgorithms ssh-ed25519,rsa-sha2-512,rsa-sha2-256
"""

LOGIN_BANNER = """\
**************************************************************************
                            AUTHORIZED ACCESS ONLY

This system is for authorized use only. All activity is monitored and
logged. Unauthorized access is strictly prohibited.

By accessing this system, you consent to monitoring and recording of all
activities. If you do not consent, disconnect immediately.
**************************************************************************
"""

FAIL2BAN_SSH_JAIL = """\
[sshd]
enabled = true
port = {port}
filter = sshd
logpath = /var/log/auth.log
maxretry = 3
bantime = 3600
findtime = 600
"""


def valid_port(value: str) -> int | None:
    """The port as int when ``value`` is a number in 1024-65535, else None."""
    return parse_port(value, MIN_PORT, MAX_PORT)


def _choose_port(ctx: ModuleContext, current: int) -> int:
    default = str(ctx.settings.ssh_port)
    unattended = ctx.settings.auto_mode or PromptKind.SSH_PORT in ctx.confirmer.answers

    for _ in range(MAX_PORT_ATTEMPTS):
        answer = ctx.confirmer.ask(PromptKind.SSH_PORT, f"Enter new SSH port ({MIN_PORT}-{MAX_PORT})", default)
        port = valid_port(answer)
        if port is None:
            logger.warning("Invalid SSH port '%s'", answer)
            if unattended:
                port = FALLBACK_PORT
            else:
                continue
        if port != current and port_in_use(ctx, port):
            logger.warning("Port %d is already in use", port)
            if unattended:
                raise StepAborted(f"SSH port {port} is already in use")
            continue
        return port

    raise StepAborted("No usable SSH port provided")


def _has_authorized_keys(ctx: ModuleContext) -> bool:
    candidates = [f"/home/{ctx.settings.username}/.ssh/authorized_keys", "/root/.ssh/authorized_keys"]
    return any(ctx.files.read_text(path).strip() for path in candidates)


def _configure_2fa(ctx: ModuleContext) -> bool:
    if not ctx.confirmer.confirm(PromptKind.ENABLE_2FA, "Set up two-factor authentication (2FA) for SSH?"):
        return False
    install_packages(ctx, ["libpam-google-authenticator"])
    ctx.files.backup(PAM_SSHD)
    ctx.files.append_line_if_missing(PAM_SSHD, PAM_GOOGLE_AUTH)
    logger.warning("2FA enabled: each user must run 'google-authenticator' to enrol")
    return True


def _regenerate_host_keys(ctx: ModuleContext) -> bool:
    if not ctx.confirmer.confirm(PromptKind.REGENERATE_HOST_KEYS, "Regenerate SSH host keys?"):
        return False
    for key_file in ctx.files.glob("/etc/ssh", "ssh_host_*"):
        ctx.files.remove(key_file)
    ctx.runner.check(["ssh-keygen", "-t", "ed25519", "-f", "/etc/ssh/ssh_host_ed25519_key", "-N", ""])
    ctx.runner.check(["ssh-keygen", "-t", "rsa", "-b", "4096", "-f", "/etc/ssh/ssh_host_rsa_key", "-N", ""])
    logger.warning("SSH host keys regenerated: clients will see a host key change warning")
    return True


def _configure_fail2ban(ctx: ModuleContext, port: int) -> None:
    ctx.files.write_text(FAIL2BAN_JAIL, FAIL2BAN_SSH_JAIL.format(port=port))
    enable_service(ctx, "fail2ban")
    restart_service(ctx, "fail2ban")


@provisioning_step("ssh_hardening")
def run(ctx: ModuleContext) -> str:
    ctx.files.backup(SSHD_CONFIG)
    current = detect_ssh_port(ctx.files)
    port = current
    notes: list[str] = []

    if ctx.confirmer.confirm(PromptKind.CHANGE_SSH_PORT, f"Change SSH port from {current}?"):
        port = _choose_port(ctx, current)
        if port != current:
            ctx.files.update_config_line(SSHD_CONFIG, "Port", f"Port {port}")
            notes.append(f"port {current} → {port}")
            logger.warning("SSH port changed to %d: update your firewall and client settings", port)

    two_factor = _configure_2fa(ctx)
    keys_present = _has_authorized_keys(ctx)
    if not keys_present:
        logger.warning("No authorized SSH keys found: keeping password authentication enabled")

    if ctx.confirmer.decided(PromptKind.DISABLE_ROOT_SSH) is False:
        logger.warning("Root SSH login was kept: leaving PermitRootLogin to sshd_config")
        permit_root = "# PermitRootLogin left to sshd_config"
    else:
        permit_root = "PermitRootLogin no"

    settings = HARDENING_SETTINGS.format(
        permit_root=permit_root,
        password_auth="no" if keys_present else "yes",
        kbd_interactive="yes" if two_factor else "no",
    )
    if two_factor:
        settings += "AuthenticationMethods publickey,keyboard-interactive\n"
        notes.append("2FA")
    if ctx.confirmer.confirm(PromptKind.LOGIN_BANNER, "Add a login banner for SSH?"):
        ctx.files.write_text(BANNER_FILE, LOGIN_BANNER)
        settings += f"Banner {BANNER_FILE}\n"
        notes.append("banner")
    ctx.files.write_text(HARDENING_CONF, settings)

    if _regenerate_host_keys(ctx):
        notes.append("new host keys")

    try:
        ctx.runner.check(["sshd", "-t"])
    except CommandError as e:
        raise StepAborted(f"SSH configuration validation failed: {e}") from e

    restart_service(ctx, "ssh")
    _configure_fail2ban(ctx, port)
    notes.append("fail2ban jail")

    return f"SSH hardened on port {port} ({', '.join(notes)})"
