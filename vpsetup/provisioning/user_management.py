"""
User management — admin user, sudo policy, root lockdown, password rules.
"""

from __future__ import annotations

import logging
import re
import secrets
import string

from vpsetup.core.errors import StepAborted
from vpsetup.core.models.prompt import PromptKind
from vpsetup.provisioning.base import (
    SSHD_CONFIG,
    ModuleContext,
    install_packages,
    provisioning_step,
)

logger = logging.getLogger(__name__)

USERNAME_RE = re.compile(r"^[a-z_][a-z0-9_-]*$")
MAX_USERNAME_ATTEMPTS = 3
PASSWORD_LENGTH = 16
CREDENTIALS_FILE = "/root/vps-setup-credentials"

PWQUALITY_CONF = """\
# Password quality requirements (vps-setup)
minlen = 12
dcredit = -1
ucredit = -1
lcredit = -1
ocredit = -1
maxrepeat = 3
gecoscheck = 1
enforce_for_root
"""

LOGIN_DEFS = (
    ("PASS_MAX_DAYS", "PASS_MAX_DAYS   90"),
    ("PASS_MIN_DAYS", "PASS_MIN_DAYS   1"),
    ("PASS_WARN_AGE", "PASS_WARN_AGE   7"),
)


def valid_username(name: str) -> bool:
    return bool(USERNAME_RE.match(name)) and len(name) <= 32


def generate_password(length: int = PASSWORD_LENGTH) -> str:
    alphabet = string.ascii_letters + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(length))


def _choose_username(ctx: ModuleContext) -> str:
    default = ctx.settings.username
    for _ in range(MAX_USERNAME_ATTEMPTS):
        username = ctx.confirmer.ask(PromptKind.USERNAME, "Enter username for the new sudo user", default)
        if valid_username(username):
            return username
        logger.warning(
            "Invalid username '%s': use lowercase letters, digits, '_' or '-', starting with a letter",
            username,
        )
        if ctx.settings.auto_mode or PromptKind.USERNAME in ctx.confirmer.answers:
            break
    raise StepAborted(f"No valid username provided (last tried: '{username}')")


def _create_user(ctx: ModuleContext, username: str) -> str:
    """Create the user; returns a short note on how the password was set."""
    ctx.runner.check(["useradd", "-m", "-s", "/bin/bash", username])
    logger.info("Created user %s", username)

    if ctx.settings.auto_mode:
        password = generate_password()
        ctx.runner.check(["chpasswd"], input=f"{username}:{password}\n")
        ctx.files.write_text(
            CREDENTIALS_FILE,
            f"{username}:{password}\n",
            mode=0o600,
        )
        ctx.runner.run(["chage", "-d", "0", username])
        logger.warning(
            "Temporary password for %s written to %s; it must be changed at first login",
            username,
            CREDENTIALS_FILE,
        )
        return f"temporary password in {CREDENTIALS_FILE}"

    ctx.runner.check(["passwd", username], interactive=True)
    return "password set interactively"


def _configure_sudo(ctx: ModuleContext, username: str) -> bool:
    ctx.runner.check(["usermod", "-aG", "sudo", username])

    if ctx.confirmer.confirm(PromptKind.PASSWORDLESS_SUDO, f"Allow {username} to use sudo without a password?"):
        path = f"/etc/sudoers.d/{username}"
        ctx.files.write_text(path, f"{username} ALL=(ALL) NOPASSWD:ALL\n", mode=0o440)
        ctx.runner.check(["visudo", "-cf", path])
        logger.info("Passwordless sudo enabled for %s", username)
        return True

    ctx.files.write_text(
        "/etc/sudoers.d/vps-setup-timeout",
        "Defaults timestamp_timeout=15\n",
        mode=0o440,
    )
    return False


def _install_ssh_key(ctx: ModuleContext, username: str) -> bool:
    if ctx.settings.auto_mode:
        return False
    key = ctx.confirmer.ask(PromptKind.GENERIC, f"Paste an SSH public key for {username} (empty to skip)", "")
    if not key:
        return False
    if not key.startswith(("ssh-", "ecdsa-", "sk-")):
        logger.warning("That does not look like an SSH public key, skipping")
        return False

    ssh_dir = f"/home/{username}/.ssh"
    ctx.files.ensure_dir(ssh_dir, mode=0o700)
    ctx.files.append_line_if_missing(f"{ssh_dir}/authorized_keys", key)
    ctx.files.chmod(f"{ssh_dir}/authorized_keys", 0o600)
    ctx.runner.check(["chown", "-R", f"{username}:{username}", ssh_dir])
    return True


def _lock_down_root(ctx: ModuleContext) -> list[str]:
    notes = []
    if ctx.confirmer.confirm(PromptKind.DISABLE_ROOT_SSH, "Disable root login over SSH?"):
        ctx.files.backup(SSHD_CONFIG)
        ctx.files.update_config_line(SSHD_CONFIG, "PermitRootLogin", "PermitRootLogin no")
        ctx.runner.run(["systemctl", "reload", "ssh"])
        notes.append("root SSH disabled")
    if ctx.confirmer.confirm(PromptKind.LOCK_ROOT_PASSWORD, "Lock the root account password?"):
        ctx.runner.check(["passwd", "-l", "root"])
        notes.append("root password locked")
    return notes


def _password_policy(ctx: ModuleContext) -> None:
    install_packages(ctx, ["libpam-pwquality"])
    ctx.files.backup("/etc/security/pwquality.conf")
    ctx.files.write_text("/etc/security/pwquality.conf", PWQUALITY_CONF)
    for key, line in LOGIN_DEFS:
        ctx.files.update_config_line("/etc/login.defs", key, line)


@provisioning_step("user_management")
def run(ctx: ModuleContext) -> str:
    notes: list[str] = []

    if ctx.settings.create_user:
        username = _choose_username(ctx)
        if ctx.runner.succeeds(["id", username]):
            logger.warning("User %s already exists", username)
            if not ctx.confirmer.confirm(PromptKind.GENERIC, f"User {username} exists. Continue with this user?"):
                raise StepAborted(f"User {username} already exists and was not reused")
            notes.append(f"reused user {username}")
        else:
            notes.append(f"created user {username} ({_create_user(ctx, username)})")

        if _configure_sudo(ctx, username):
            notes.append("passwordless sudo")
        if _install_ssh_key(ctx, username):
            notes.append("SSH key installed")
    else:
        logger.info("User creation disabled in configuration")

    notes.extend(_lock_down_root(ctx))
    _password_policy(ctx)
    return "; ".join(notes) or "password policy applied"
