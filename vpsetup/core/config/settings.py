"""
Settings — the typed, immutable view of a run's configuration.

Built once at startup from the config file, CLI flags and environment,
then threaded explicitly through the confirmation layer and every
provisioning module. Nothing reads the environment after this point.

Answer precedence for a prompt kind (highest first):
    environment (SETUP_<KIND>)  >  config file key  >  auto-mode defaults
"""

from __future__ import annotations

from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field

from vpsetup.core.config.loader import ConfigMap
from vpsetup.core.config.template import DEFAULTS
from vpsetup.core.config.validation import parse_port
from vpsetup.core.models.prompt import AUTO_MODE_ANSWERS, PromptKind


def _default_bool(key: str) -> bool:
    return DEFAULTS[key] == "true"


class Settings(BaseModel):
    """Resolved settings for one run."""

    model_config = ConfigDict(frozen=True)

    # general
    timezone: str = DEFAULTS["general.timezone"]
    locale: str = DEFAULTS["general.locale"]
    country: str = DEFAULTS["general.country"]

    # user / ssh
    username: str = DEFAULTS["user.username"]
    create_user: bool = _default_bool("user.create_user")
    ssh_port: int = int(DEFAULTS["ssh.ssh_port"])

    # monitoring / backup
    install_netdata: bool = _default_bool("monitoring.install_netdata")
    install_monit: bool = _default_bool("monitoring.install_monit")
    daily_reports: bool = _default_bool("monitoring.daily_reports")
    enable_backups: bool = _default_bool("backup.enable_backups")
    daily_backup: bool = _default_bool("backup.daily_backup")
    backup_monitoring: bool = _default_bool("backup.backup_monitoring")

    # samba
    samba_share_name: str = DEFAULTS["samba.share_name"]
    samba_share_path: str = DEFAULTS["samba.share_path"]
    samba_subnet: str = DEFAULTS["samba.allowed_subnet"]
    samba_read_only: bool = _default_bool("samba.read_only")

    # advanced
    email_notifications: bool = _default_bool("advanced.email_notifications")
    admin_email: str = DEFAULTS["advanced.admin_email"]

    # confirmation behaviour
    auto_mode: bool = False
    auto_confirm_default: bool = _default_bool("advanced.auto_confirm_default")
    answers: dict[PromptKind, str] = Field(default_factory=dict)

    @classmethod
    def from_config(
        cls,
        config: ConfigMap | None = None,
        *,
        auto_mode: bool = False,
        env_answers: Mapping[PromptKind, str] | None = None,
    ) -> Settings:
        """Build settings from a loaded config plus environment answers.

        Only keys actually present in ``config`` pre-answer prompts;
        absent keys leave the prompt to auto mode or the operator.
        """
        config = config or ConfigMap()

        answers: dict[PromptKind, str] = dict(AUTO_MODE_ANSWERS) if auto_mode else {}
        for kind in PromptKind:
            key = kind.config_key
            if key is None or not config.get(key):
                continue
            if kind.is_boolean:
                answers[kind] = "yes" if config.get_bool(key, _default_bool(key)) else "no"
            else:
                answers[kind] = config.get(key)
        answers.update(env_answers or {})

        ssh_port = config.get_int("ssh.ssh_port", int(DEFAULTS["ssh.ssh_port"]))
        answered_port = parse_port(answers.get(PromptKind.SSH_PORT, ""))
        if answered_port is not None:
            ssh_port = answered_port

        def text(key: str) -> str:
            return config.get(key, DEFAULTS[key])

        def flag(key: str) -> bool:
            return config.get_bool(key, _default_bool(key))

        return cls(
            timezone=text("general.timezone"),
            locale=text("general.locale"),
            country=text("general.country"),
            username=answers.get(PromptKind.USERNAME) or text("user.username"),
            create_user=flag("user.create_user"),
            ssh_port=ssh_port,
            install_netdata=flag("monitoring.install_netdata"),
            install_monit=flag("monitoring.install_monit"),
            daily_reports=flag("monitoring.daily_reports"),
            enable_backups=flag("backup.enable_backups"),
            daily_backup=flag("backup.daily_backup"),
            backup_monitoring=flag("backup.backup_monitoring"),
            samba_share_name=answers.get(PromptKind.SAMBA_SHARE_NAME) or text("samba.share_name"),
            samba_share_path=text("samba.share_path"),
            samba_subnet=answers.get(PromptKind.SAMBA_SUBNET) or text("samba.allowed_subnet"),
            samba_read_only=flag("samba.read_only"),
            email_notifications=flag("advanced.email_notifications"),
            admin_email=text("advanced.admin_email"),
            auto_mode=auto_mode,
            auto_confirm_default=flag("advanced.auto_confirm_default"),
            answers=answers,
        )
