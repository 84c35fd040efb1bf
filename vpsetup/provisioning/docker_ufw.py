"""
Docker-UFW integration — stop published container ports bypassing UFW.

Docker writes its own iptables rules ahead of UFW's chains, so a
``-p 8080:80`` container is reachable even when UFW denies 8080.
The ufw-docker tool routes container traffic through UFW instead.
Requires the docker and firewall modules to have run.
"""

from __future__ import annotations

import json
import logging

from vpsetup.core.errors import StepAborted
from vpsetup.core.models.prompt import PromptKind
from vpsetup.provisioning.base import ModuleContext, provisioning_step, restart_service, service_active

logger = logging.getLogger(__name__)

UFW_DOCKER_URL = "https://github.com/chaifeng/ufw-docker/raw/master/ufw-docker"
UFW_DOCKER_PATH = "/usr/local/bin/ufw-docker"
DAEMON_JSON = "/etc/docker/daemon.json"
TEST_CONTAINER = "ufw-test"
TEST_PORT = 8080


def _check_prerequisites(ctx: ModuleContext) -> None:
    if not ctx.runner.which("docker"):
        raise StepAborted("Docker is not installed (run the docker module first)")
    if not service_active(ctx, "docker"):
        logger.info("Docker is not running, starting it")
        ctx.runner.check(["systemctl", "start", "docker"])
    if not ctx.runner.succeeds(["docker", "info"]):
        raise StepAborted("Docker daemon is not responding")

    status = ctx.runner.run(["ufw", "status"]).stdout
    if "Status: active" not in status:
        raise StepAborted("UFW is not active (run the firewall module first)")


def _ensure_docker_iptables(ctx: ModuleContext) -> None:
    raw = ctx.files.read_text(DAEMON_JSON)
    if not raw.strip():
        return
    try:
        config = json.loads(raw)
    except json.JSONDecodeError as e:
        raise StepAborted(f"{DAEMON_JSON} is not valid JSON: {e}") from e

    if config.get("iptables") is not False:
        return
    logger.warning("Docker iptables management is disabled; ufw-docker needs it")
    if not ctx.confirmer.confirm(PromptKind.GENERIC, "Enable Docker iptables management?"):
        raise StepAborted("ufw-docker requires Docker iptables management")
    del config["iptables"]
    ctx.files.backup(DAEMON_JSON)
    ctx.files.write_text(DAEMON_JSON, json.dumps(config, indent=2) + "\n")
    restart_service(ctx, "docker")


def _install_ufw_docker(ctx: ModuleContext) -> None:
    ctx.runner.check(["curl", "-fsSL", "-o", UFW_DOCKER_PATH, UFW_DOCKER_URL], timeout=60)
    ctx.runner.check(["chmod", "+x", UFW_DOCKER_PATH])
    ctx.runner.check([UFW_DOCKER_PATH, "install"])
    ctx.runner.check(["ufw", "reload"])
    logger.info("ufw-docker rules installed")


def _test_container(ctx: ModuleContext) -> bool:
    if not ctx.confirmer.confirm(PromptKind.DOCKER_TEST_CONTAINER, "Run an nginx test container to verify the integration?"):
        return False
    ctx.runner.run(["docker", "rm", "-f", TEST_CONTAINER])
    result = ctx.runner.run(
        ["docker", "run", "-d", "--name", TEST_CONTAINER, "-p", f"{TEST_PORT}:80", "nginx:alpine"],
        timeout=120,
    )
    if not result.ok:
        logger.warning("Could not start test container: %s", result.stderr)
        return False
    logger.warning(
        "Test container '%s' on port %d should be blocked from outside. "
        "Allow it with 'ufw-docker allow %s 80'; remove it with 'docker rm -f %s'",
        TEST_CONTAINER,
        TEST_PORT,
        TEST_CONTAINER,
        TEST_CONTAINER,
    )
    return True


@provisioning_step("docker_ufw")
def run(ctx: ModuleContext) -> str:
    _check_prerequisites(ctx)
    _ensure_docker_iptables(ctx)

    if not ctx.confirmer.confirm(PromptKind.GENERIC, "Install the ufw-docker integration?"):
        return "Docker-UFW integration skipped"

    _install_ufw_docker(ctx)
    summary = "Docker container ports now filtered by UFW"
    if _test_container(ctx):
        summary += f" (test container '{TEST_CONTAINER}' on :{TEST_PORT})"
    return summary
