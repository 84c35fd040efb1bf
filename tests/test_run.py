"""
Tests for the run use case — planning (config, selection, resolution)
and execution (orchestration plus audit).
"""

from __future__ import annotations

import textwrap
from pathlib import Path

from vpsetup.adapters.mock import MockCommandRunner
from vpsetup.adapters.shell.filesystem import SystemFiles
from vpsetup.core.models.prompt import PromptKind
from vpsetup.core.persistence.audit import AuditWriter
from vpsetup.core.use_cases.run import SetupMode, execute_setup, plan_setup, select_modules

GRAPH = {"base": [], "web": ["base"], "extra": [], "combo": ["web", "extra"]}
BUNDLES = {"quick": ["web"], "auto": ["combo"]}


def _plan(make_registry, tmp_path: Path, **kwargs):
    registry, calls = make_registry(GRAPH, fail=kwargs.pop("fail", None), bundles=BUNDLES)
    result = plan_setup(registry=registry, zoneinfo_dir=tmp_path / "no-zoneinfo", **kwargs)
    return result, calls


# ── Selection ───────────────────────────────────────────────────


class TestSelectModules:
    def test_explicit_wins(self, make_registry):
        registry, _ = make_registry(GRAPH, bundles=BUNDLES)
        assert select_modules(SetupMode.AUTO, registry, explicit=["extra"]) == ["extra"]

    def test_bundles(self, make_registry):
        registry, _ = make_registry(GRAPH, bundles=BUNDLES)
        assert select_modules(SetupMode.QUICK, registry) == ["web"]
        assert select_modules(SetupMode.AUTO, registry) == ["combo"]

    def test_interactive_uses_selector(self, make_registry):
        registry, _ = make_registry(GRAPH, bundles=BUNDLES)
        picked = select_modules(SetupMode.INTERACTIVE, registry, select=lambda reg: ["extra", "base"])
        assert picked == ["extra", "base"]

    def test_interactive_without_selector(self, make_registry):
        registry, _ = make_registry(GRAPH, bundles=BUNDLES)
        assert select_modules(SetupMode.INTERACTIVE, registry) == ["web"]


# ── Planning ────────────────────────────────────────────────────


class TestPlanSetup:
    def test_resolves_dependencies(self, make_registry, tmp_path: Path):
        result, calls = _plan(make_registry, tmp_path, modules=["combo"])
        plan = result.plan
        assert result.error is None
        assert plan.resolved == ["base", "web", "extra", "combo"]
        assert plan.added_dependencies == ["base", "web", "extra"]
        assert [d.name for d in plan.modules] == plan.resolved
        assert calls == []

    def test_auto_mode(self, make_registry, tmp_path: Path):
        result, _ = _plan(make_registry, tmp_path, mode=SetupMode.AUTO)
        assert result.plan.resolved == ["base", "web", "extra", "combo"]
        assert result.plan.settings.auto_mode is True
        assert result.plan.confirmer.auto_mode is True

    def test_unknown_module(self, make_registry, tmp_path: Path):
        result, _ = _plan(make_registry, tmp_path, modules=["web", "nginx"])
        assert result.plan is None
        assert "Unknown module: 'nginx'" in result.error
        assert result.exit_code == 1

    def test_cycle(self, make_registry, tmp_path: Path):
        registry, _ = make_registry({"a": ["b"], "b": ["a"]})
        result = plan_setup(modules=["a"], registry=registry, zoneinfo_dir=tmp_path)
        assert "Dependency cycle detected" in result.error

    def test_missing_config(self, make_registry, tmp_path: Path):
        result, _ = _plan(make_registry, tmp_path, modules=["web"], config_path=tmp_path / "none.conf")
        assert "not found" in result.error

    def test_invalid_config(self, make_registry, tmp_path: Path):
        path = tmp_path / "vps-setup.conf"
        path.write_text("[ssh]\nssh_port = 22\n")
        result, _ = _plan(make_registry, tmp_path, modules=["web"], config_path=path)
        assert result.error.startswith("Configuration validation failed")
        assert "Invalid SSH port" in result.error

    def test_non_ascii_port_is_config_error(self, make_registry, tmp_path: Path):
        path = tmp_path / "vps-setup.conf"
        path.write_text("[ssh]\nssh_port=²\n", encoding="utf-8")
        result, calls = _plan(make_registry, tmp_path, modules=["web"], config_path=path)
        assert result.plan is None
        assert "Invalid SSH port '²'" in result.error
        assert result.exit_code == 1

    def test_non_ascii_env_port_ignored(self, make_registry, tmp_path: Path):
        result, _ = _plan(
            make_registry,
            tmp_path,
            modules=["web"],
            env_answers={PromptKind.SSH_PORT: "²"},
        )
        assert result.error is None
        assert result.plan.settings.ssh_port == 2222

    def test_config_feeds_settings(self, make_registry, tmp_path: Path):
        path = tmp_path / "vps-setup.conf"
        path.write_text(textwrap.dedent("""\
            [user]
            username = deploy
            [firewall]
            allow_http = no
            [bogus]
            key = 1
        """))
        result, _ = _plan(make_registry, tmp_path, modules=["web"], config_path=path)
        settings = result.plan.settings
        assert settings.username == "deploy"
        assert settings.answers[PromptKind.ALLOW_HTTP] == "no"
        assert "Unknown config key: bogus.key" in result.plan.warnings

    def test_cli_overrides(self, make_registry, tmp_path: Path):
        path = tmp_path / "vps-setup.conf"
        path.write_text("[user]\nusername = deploy\n[ssh]\nssh_port = 2200\n")
        result, _ = _plan(
            make_registry,
            tmp_path,
            modules=["web"],
            config_path=path,
            username="ops",
            ssh_port=4422,
            env_answers={PromptKind.USERNAME: "envuser"},
        )
        settings = result.plan.settings
        assert settings.username == "ops"
        assert settings.ssh_port == 4422
        assert settings.answers[PromptKind.SSH_PORT] == "4422"

    def test_invalid_cli_username(self, make_registry, tmp_path: Path):
        result, _ = _plan(make_registry, tmp_path, modules=["web"], username="Not Valid")
        assert "Invalid username" in result.error

    def test_env_answers(self, make_registry, tmp_path: Path):
        result, _ = _plan(
            make_registry,
            tmp_path,
            mode=SetupMode.AUTO,
            env_answers={PromptKind.ENABLE_2FA: "yes"},
        )
        assert result.plan.confirmer.confirm(PromptKind.ENABLE_2FA, "2FA?") is True

    def test_to_dict(self, make_registry, tmp_path: Path):
        result, _ = _plan(make_registry, tmp_path, modules=["web"], dry_run=True)
        data = result.to_dict()
        assert data["exit_code"] == 0
        assert data["plan"]["resolved"] == ["base", "web"]
        assert data["plan"]["dry_run"] is True


# ── Execution ───────────────────────────────────────────────────


class TestExecuteSetup:
    def test_runs_and_audits(self, make_registry, tmp_path: Path):
        result, calls = _plan(make_registry, tmp_path, modules=["combo"], mode=SetupMode.QUICK)
        writer = AuditWriter(tmp_path / "audit.ndjson")
        done = execute_setup(
            result.plan,
            runner=MockCommandRunner(),
            files=SystemFiles(tmp_path),
            audit_writer=writer,
            log_file="/tmp/vps.log",
        )
        assert calls == ["base", "web", "extra", "combo"]
        assert done.exit_code == 0
        assert done.report.log_file == "/tmp/vps.log"

        entry = writer.read_all()[0]
        assert entry.mode == "quick"
        assert entry.requested == ["combo"]
        assert entry.status == "ok"
        assert entry.modules_succeeded == 4

    def test_failure_halts(self, make_registry, tmp_path: Path):
        result, calls = _plan(make_registry, tmp_path, modules=["combo"], fail={"web"})
        done = execute_setup(result.plan, runner=MockCommandRunner(), files=SystemFiles(tmp_path))
        assert calls == ["base", "web"]
        assert done.exit_code == 1
        assert done.report.not_run == ["extra", "combo"]

    def test_dry_run_calls_nothing(self, make_registry, tmp_path: Path):
        result, calls = _plan(make_registry, tmp_path, modules=["combo"], dry_run=True)
        writer = AuditWriter(tmp_path / "audit.ndjson")
        done = execute_setup(result.plan, runner=MockCommandRunner(), files=SystemFiles(tmp_path), audit_writer=writer)
        assert calls == []
        assert done.report.status == "dry-run"
        assert writer.read_all()[0].dry_run is True
