"""
Docker — engine, compose plugin, daemon.json and group membership.

Installs from Docker's own apt repository rather than Ubuntu's
``docker.io`` package.
"""

from __future__ import annotations

import json
import logging

from vpsetup.core.models.prompt import PromptKind
from vpsetup.provisioning.base import (
    ModuleContext,
    apt_update,
    enable_service,
    install_packages,
    os_codename,
    provisioning_step,
    restart_service,
)

logger = logging.getLogger(__name__)

OLD_PACKAGES = ("docker", "docker-engine", "docker.io", "docker-doc", "docker-compose", "containerd", "runc")
PREREQUISITES = ("ca-certificates", "curl", "gnupg")
DOCKER_PACKAGES = (
    "docker-ce",
    "docker-ce-cli",
    "containerd.io",
    "docker-buildx-plugin",
    "docker-compose-plugin",
)

KEYRING_DIR = "/etc/apt/keyrings"
KEYRING = f"{KEYRING_DIR}/docker.asc"
GPG_URL = "https://download.docker.com/linux/ubuntu/gpg"
APT_SOURCE = "/etc/apt/sources.list.d/docker.list"
DAEMON_JSON = "/etc/docker/daemon.json"
CONTENT_TRUST_PROFILE = "/etc/profile.d/docker-content-trust.sh"
TEST_TIMEOUT = 120


def daemon_config(user_namespace: bool) -> dict:
    """Contents of /etc/docker/daemon.json."""
    config: dict = {
        "log-driver": "json-file",
        "log-opts": {"max-size": "10m", "max-file": "3"},
        "live-restore": True,
        "no-new-privileges": True,
    }
    if user_namespace:
        config["userns-remap"] = "default"
    return config


def _add_repository(ctx: ModuleContext) -> None:
    install_packages(ctx, PREREQUISITES)
    ctx.runner.check(["install", "-m", "0755", "-d", KEYRING_DIR])
    ctx.runner.check(["curl", "-fsSL", GPG_URL, "-o", KEYRING], timeout=60)
    ctx.runner.check(["chmod", "a+r", KEYRING])

    arch = ctx.runner.run(["dpkg", "--print-architecture"]).stdout or "amd64"
    codename = os_codename(ctx.files)
    ctx.files.write_text(
        APT_SOURCE,
        f"deb [arch={arch} signed-by={KEYRING}] https://download.docker.com/linux/ubuntu {codename} stable\n",
    )
    apt_update(ctx)


def _configure_daemon(ctx: ModuleContext) -> list[str]:
    notes = []
    user_namespace = ctx.confirmer.confirm(
        PromptKind.USER_NAMESPACE, "Enable user namespace remapping for containers?"
    )
    if user_namespace:
        notes.append("userns-remap")
    ctx.files.backup(DAEMON_JSON)
    ctx.files.write_text(DAEMON_JSON, json.dumps(daemon_config(user_namespace), indent=2) + "\n")

    if ctx.confirmer.confirm(PromptKind.CONTENT_TRUST, "Enable Docker Content Trust (signed images only)?"):
        ctx.files.write_text(CONTENT_TRUST_PROFILE, "export DOCKER_CONTENT_TRUST=1\n", mode=0o644)
        notes.append("content trust")
    return notes


def _configure_group(ctx: ModuleContext) -> str | None:
    ctx.runner.check(["groupadd", "-f", "docker"])
    username = ctx.settings.username
    if not ctx.runner.succeeds(["id", username]):
        return None
    if ctx.settings.auto_mode or ctx.confirmer.confirm(
        PromptKind.GENERIC, f"Add {username} to the docker group (root-equivalent access)?"
    ):
        ctx.runner.check(["usermod", "-aG", "docker", username])
        logger.info("Added %s to the docker group (effective at next login)", username)
        return username
    return None


def _test_container(ctx: ModuleContext) -> bool:
    if not ctx.confirmer.confirm(PromptKind.DOCKER_TEST_CONTAINER, "Run a hello-world test container?"):
        return False
    result = ctx.runner.run(["docker", "run", "--rm", "hello-world"], timeout=TEST_TIMEOUT)
    if not result.ok:
        logger.warning("Docker test container failed: %s", result.stderr)
    return result.ok


@provisioning_step("docker")
def run(ctx: ModuleContext) -> str:
    if ctx.runner.which("docker"):
        version = ctx.runner.run(["docker", "--version"]).stdout
        logger.info("Docker already installed: %s", version)
        if not ctx.confirmer.confirm(PromptKind.GENERIC, "Docker is already installed. Reinstall/update it?"):
            return f"Docker already installed ({version})" if version else "Docker already installed"

    if ctx.confirmer.confirm(PromptKind.REMOVE_OLD_DOCKER, "Remove old Docker packages?"):
        ctx.runner.run(["apt-get", "remove", "-y", "-qq", *OLD_PACKAGES])

    _add_repository(ctx)
    ctx.runner.check(["apt-get", "install", "-y", "-qq", *DOCKER_PACKAGES])

    notes = _configure_daemon(ctx)
    enable_service(ctx, "docker.service", now=False)
    enable_service(ctx, "containerd.service", now=False)
    restart_service(ctx, "docker")

    member = _configure_group(ctx)
    if member:
        notes.append(f"{member} in docker group")
    if _test_container(ctx):
        notes.append("hello-world OK")

    version = ctx.runner.run(["docker", "--version"]).stdout
    summary = f"Docker installed ({version})" if version else "Docker installed"
    return f"{summary}: {', '.join(notes)}" if notes else summary
