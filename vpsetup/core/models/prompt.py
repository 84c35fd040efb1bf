"""
Prompt kinds — the tag every confirmation or input request carries.

Each kind that can be answered ahead of time names its environment
variable and, where one exists, the config key that feeds it. Kinds
without a source (GENERIC, PROCEED) are only ever answered by auto
mode or the operator.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum

from vpsetup.core.config.loader import TRUE_WORDS


class PromptKind(str, Enum):
    # yes/no confirmations
    CHANGE_HOSTNAME = "change_hostname"
    CHANGE_SSH_PORT = "change_ssh_port"
    DISABLE_ROOT_SSH = "disable_root_ssh"
    LOCK_ROOT_PASSWORD = "lock_root_password"
    PASSWORDLESS_SUDO = "passwordless_sudo"
    ALLOW_HTTP = "allow_http"
    ALLOW_HTTPS = "allow_https"
    IP_FIREWALL_RULES = "ip_firewall_rules"
    ENABLE_2FA = "enable_2fa"
    REGENERATE_HOST_KEYS = "regenerate_host_keys"
    LOGIN_BANNER = "login_banner"
    INSTALL_AIDE = "install_aide"
    REMOVE_OLD_DOCKER = "remove_old_docker"
    USER_NAMESPACE = "user_namespace"
    CONTENT_TRUST = "content_trust"
    DOCKER_TEST_CONTAINER = "docker_test_container"
    SAMBA_OVERWRITE_SHARE = "samba_overwrite_share"

    # free-form input
    USERNAME = "username"
    SSH_PORT = "ssh_port"
    HOSTNAME = "hostname"
    SAMBA_SHARE_NAME = "samba_share_name"
    SAMBA_SUBNET = "samba_subnet"

    # never pre-answered
    GENERIC = "generic"
    PROCEED = "proceed"

    @property
    def env_var(self) -> str | None:
        """Environment variable that pre-answers this prompt, if any."""
        source = _SOURCES.get(self)
        return source[0] if source else None

    @property
    def config_key(self) -> str | None:
        """Config key (``section.key``) that pre-answers this prompt, if any."""
        source = _SOURCES.get(self)
        return source[1] if source else None

    @property
    def is_boolean(self) -> bool:
        return self not in (
            PromptKind.USERNAME,
            PromptKind.SSH_PORT,
            PromptKind.HOSTNAME,
            PromptKind.SAMBA_SHARE_NAME,
            PromptKind.SAMBA_SUBNET,
        )


# kind → (environment variable, config key)
_SOURCES: dict[PromptKind, tuple[str, str | None]] = {
    PromptKind.CHANGE_HOSTNAME: ("SETUP_CHANGE_HOSTNAME", "general.hostname_change"),
    PromptKind.CHANGE_SSH_PORT: ("SETUP_SSH_PORT_CHANGE", "ssh.change_port"),
    PromptKind.DISABLE_ROOT_SSH: ("SETUP_DISABLE_ROOT_SSH", "user.disable_root_ssh"),
    PromptKind.LOCK_ROOT_PASSWORD: ("SETUP_LOCK_ROOT_PASSWORD", "user.lock_root_password"),
    PromptKind.PASSWORDLESS_SUDO: ("SETUP_PASSWORDLESS_SUDO", "user.passwordless_sudo"),
    PromptKind.ALLOW_HTTP: ("SETUP_ALLOW_HTTP", "firewall.allow_http"),
    PromptKind.ALLOW_HTTPS: ("SETUP_ALLOW_HTTPS", "firewall.allow_https"),
    PromptKind.IP_FIREWALL_RULES: ("SETUP_ADD_IP_RULES", "firewall.ip_rules"),
    PromptKind.ENABLE_2FA: ("SETUP_ENABLE_2FA", "ssh.enable_2fa"),
    PromptKind.REGENERATE_HOST_KEYS: ("SETUP_REGENERATE_HOST_KEYS", "ssh.regenerate_host_keys"),
    PromptKind.LOGIN_BANNER: ("SETUP_ADD_LOGIN_BANNER", "ssh.add_login_banner"),
    PromptKind.INSTALL_AIDE: ("SETUP_INSTALL_AIDE", "security.install_aide"),
    PromptKind.REMOVE_OLD_DOCKER: ("SETUP_REMOVE_OLD_DOCKER", "docker.remove_old_docker"),
    PromptKind.USER_NAMESPACE: ("SETUP_ENABLE_USER_NAMESPACE", "docker.enable_user_namespace"),
    PromptKind.CONTENT_TRUST: ("SETUP_ENABLE_CONTENT_TRUST", "docker.enable_content_trust"),
    PromptKind.DOCKER_TEST_CONTAINER: ("SETUP_RUN_DOCKER_TEST", "docker.run_test"),
    PromptKind.SAMBA_OVERWRITE_SHARE: ("SETUP_SAMBA_OVERWRITE_SHARE", None),
    PromptKind.USERNAME: ("SETUP_USERNAME", "user.username"),
    PromptKind.SSH_PORT: ("SETUP_SSH_PORT", "ssh.ssh_port"),
    PromptKind.HOSTNAME: ("SETUP_HOSTNAME", None),
    PromptKind.SAMBA_SHARE_NAME: ("SETUP_SAMBA_SHARE_NAME", "samba.share_name"),
    PromptKind.SAMBA_SUBNET: ("SETUP_SAMBA_SUBNET", "samba.allowed_subnet"),
}

# Answers used in auto mode when nothing more specific is given.
# Risky or slow extras (2FA, AIDE, test containers) stay off.
AUTO_MODE_ANSWERS: dict[PromptKind, str] = {
    PromptKind.CHANGE_HOSTNAME: "no",
    PromptKind.CHANGE_SSH_PORT: "yes",
    PromptKind.DISABLE_ROOT_SSH: "yes",
    PromptKind.LOCK_ROOT_PASSWORD: "yes",
    PromptKind.PASSWORDLESS_SUDO: "yes",
    PromptKind.ALLOW_HTTP: "yes",
    PromptKind.ALLOW_HTTPS: "yes",
    PromptKind.IP_FIREWALL_RULES: "no",
    PromptKind.ENABLE_2FA: "no",
    PromptKind.REGENERATE_HOST_KEYS: "yes",
    PromptKind.LOGIN_BANNER: "yes",
    PromptKind.INSTALL_AIDE: "no",
    PromptKind.REMOVE_OLD_DOCKER: "yes",
    PromptKind.USER_NAMESPACE: "no",
    PromptKind.CONTENT_TRUST: "no",
    PromptKind.DOCKER_TEST_CONTAINER: "no",
    PromptKind.SAMBA_OVERWRITE_SHARE: "yes",
}


AUTO_MODE_ENV = "SETUP_AUTO_MODE"


def auto_mode_from_env(environ: Mapping[str, str]) -> bool:
    """Whether ``SETUP_AUTO_MODE`` asks for an unattended run."""
    return environ.get(AUTO_MODE_ENV, "").strip().lower() in TRUE_WORDS


def overrides_from_env(environ: Mapping[str, str]) -> dict[PromptKind, str]:
    """Collect ``SETUP_<KIND>`` answers from an environment mapping.

    Empty values are ignored.
    """
    overrides: dict[PromptKind, str] = {}
    for kind, (env_var, _key) in _SOURCES.items():
        value = environ.get(env_var, "").strip()
        if value:
            overrides[kind] = value
    return overrides
