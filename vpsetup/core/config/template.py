"""
Config template — every recognised section and key with its default.

The same table drives the example file, the Settings defaults and the
section order used when displaying a loaded config.
"""

from __future__ import annotations

from pathlib import Path

CONFIG_TEMPLATE: tuple[tuple[str, str, tuple[tuple[str, str], ...]], ...] = (
    (
        "general",
        "General settings",
        (
            ("timezone", "UTC"),
            ("locale", "en_US.UTF-8"),
            ("country", "NL"),
            ("hostname_change", "false"),
        ),
    ),
    (
        "user",
        "User management",
        (
            ("username", "admin"),
            ("create_user", "true"),
            ("passwordless_sudo", "true"),
            ("disable_root_ssh", "true"),
            ("lock_root_password", "true"),
        ),
    ),
    (
        "ssh",
        "SSH configuration",
        (
            ("change_port", "true"),
            ("ssh_port", "2222"),
            ("enable_2fa", "false"),
            ("regenerate_host_keys", "true"),
            ("add_login_banner", "true"),
        ),
    ),
    (
        "firewall",
        "Firewall rules",
        (
            ("allow_http", "true"),
            ("allow_https", "true"),
            ("ip_rules", "false"),
        ),
    ),
    (
        "security",
        "Security hardening",
        (("install_aide", "false"),),
    ),
    (
        "docker",
        "Docker",
        (
            ("remove_old_docker", "true"),
            ("enable_user_namespace", "false"),
            ("enable_content_trust", "false"),
            ("run_test", "false"),
        ),
    ),
    (
        "monitoring",
        "Monitoring",
        (
            ("install_netdata", "true"),
            ("install_monit", "true"),
            ("daily_reports", "true"),
        ),
    ),
    (
        "backup",
        "Backups",
        (
            ("enable_backups", "true"),
            ("daily_backup", "true"),
            ("backup_monitoring", "true"),
        ),
    ),
    (
        "samba",
        "Samba file sharing (samba module only)",
        (
            ("share_name", "shared"),
            ("share_path", "/srv/samba/shared"),
            ("allowed_subnet", "192.168.1.0/24"),
            ("read_only", "false"),
        ),
    ),
    (
        "advanced",
        "Advanced",
        (
            ("email_notifications", "false"),
            ("admin_email", "admin@example.com"),
            ("auto_confirm_default", "true"),
        ),
    ),
)

SECTION_ORDER: tuple[str, ...] = tuple(section for section, _title, _keys in CONFIG_TEMPLATE)

DEFAULTS: dict[str, str] = {
    f"{section}.{key}": value
    for section, _title, keys in CONFIG_TEMPLATE
    for key, value in keys
}


def render_example_config() -> str:
    """Render the canonical example config file."""
    lines = [
        "# vps-setup configuration",
        "#",
        "# Copy this file, adjust the values and pass it with:",
        "#   vps-setup run --config /path/to/vps-setup.conf",
        "#",
        "# Booleans accept true/false, yes/no, 1/0, on/off, enabled/disabled.",
        "",
    ]
    for section, title, keys in CONFIG_TEMPLATE:
        lines.append(f"# {title}")
        lines.append(f"[{section}]")
        for key, value in keys:
            lines.append(f"{key}={value}")
        lines.append("")
    return "\n".join(lines)


def write_example_config(path: Path) -> Path:
    """Write the example config to ``path`` (parents created). Returns the path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_example_config(), encoding="utf-8")
    return path
