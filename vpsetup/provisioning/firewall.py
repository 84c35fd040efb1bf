"""
Firewall — UFW default policies, SSH rate limiting, web ports, IP rules.
"""

from __future__ import annotations

import ipaddress
import logging

from vpsetup.core.config.validation import parse_port
from vpsetup.core.errors import StepAborted
from vpsetup.core.models.prompt import PromptKind
from vpsetup.provisioning.base import ModuleContext, detect_ssh_port, provisioning_step

logger = logging.getLogger(__name__)

# (port/proto, comment) always allowed outbound
OUTBOUND_SERVICES = (
    ("53/udp", "DNS"),
    ("53/tcp", "DNS over TCP"),
    ("80/tcp", "HTTP out"),
    ("443/tcp", "HTTPS out"),
    ("123/udp", "NTP"),
)

MAX_CUSTOM_RULES = 32


def parse_ip_rule(text: str) -> list[str] | None:
    """Turn ``allow|deny <ip-or-subnet> [port]`` into ufw arguments.

    Returns None when the rule is malformed.
    """
    parts = text.split()
    if len(parts) not in (2, 3) or parts[0] not in ("allow", "deny"):
        return None
    try:
        network = ipaddress.ip_network(parts[1], strict=False)
    except ValueError:
        return None

    args = [parts[0], "from", str(network)]
    if len(parts) == 3:
        if parse_port(parts[2]) is None:
            return None
        args += ["to", "any", "port", parts[2]]
    return args


def _ufw(ctx: ModuleContext, *args: str) -> None:
    ctx.runner.check(["ufw", *args])


def _open_custom_ports(ctx: ModuleContext) -> list[str]:
    opened: list[str] = []
    if not ctx.confirmer.confirm(PromptKind.GENERIC, "Open additional ports?"):
        return opened
    for _ in range(MAX_CUSTOM_RULES):
        answer = ctx.confirmer.ask(PromptKind.GENERIC, "Port to open, e.g. 8080/tcp (empty to finish)", "")
        if not answer:
            break
        port, _, proto = answer.partition("/")
        if parse_port(port) is None or proto not in ("", "tcp", "udp"):
            logger.warning("Invalid port specification: %s", answer)
            continue
        _ufw(ctx, "allow", answer, "comment", "custom")
        opened.append(answer)
    return opened


def _ip_rules(ctx: ModuleContext) -> list[str]:
    applied: list[str] = []
    if not ctx.confirmer.confirm(PromptKind.IP_FIREWALL_RULES, "Add IP-based firewall rules?"):
        return applied
    for _ in range(MAX_CUSTOM_RULES):
        answer = ctx.confirmer.ask(
            PromptKind.GENERIC,
            "Rule as 'allow|deny <ip or subnet> [port]' (empty to finish)",
            "",
        )
        if not answer:
            break
        args = parse_ip_rule(answer)
        if args is None:
            logger.warning("Invalid IP rule: %s", answer)
            continue
        _ufw(ctx, *args)
        applied.append(answer)
    return applied


@provisioning_step("firewall")
def run(ctx: ModuleContext) -> str:
    if not ctx.runner.which("ufw"):
        raise StepAborted("UFW is not installed (run system_update first)")

    _ufw(ctx, "default", "deny", "incoming")
    _ufw(ctx, "default", "allow", "outgoing")
    _ufw(ctx, "default", "allow", "routed")

    ssh_port = detect_ssh_port(ctx.files)
    _ufw(ctx, "limit", f"{ssh_port}/tcp", "comment", "SSH rate limit")
    rules = [f"SSH {ssh_port}/tcp (rate limited)"]

    if ctx.confirmer.confirm(PromptKind.ALLOW_HTTP, "Allow HTTP (port 80)?"):
        _ufw(ctx, "allow", "80/tcp", "comment", "HTTP")
        rules.append("HTTP")
    if ctx.confirmer.confirm(PromptKind.ALLOW_HTTPS, "Allow HTTPS (port 443)?"):
        _ufw(ctx, "allow", "443/tcp", "comment", "HTTPS")
        rules.append("HTTPS")

    for port, comment in OUTBOUND_SERVICES:
        _ufw(ctx, "allow", "out", port, "comment", comment)

    rules += _open_custom_ports(ctx)
    rules += _ip_rules(ctx)

    _ufw(ctx, "logging", "medium")

    if ctx.confirmer.confirm(PromptKind.GENERIC, "Enable the firewall now?"):
        _ufw(ctx, "--force", "enable")
        state = "enabled"
    else:
        logger.warning("Firewall configured but not enabled; run 'ufw enable' when ready")
        state = "configured, not enabled"

    return f"Firewall {state}: {', '.join(rules)}"
