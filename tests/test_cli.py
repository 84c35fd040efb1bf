"""
Tests for CLI commands — invoked through click's CliRunner.

System access is injected through ``obj``: a fake registry, a mock
command runner and a temporary filesystem root.
"""

from __future__ import annotations

import json
import textwrap
from pathlib import Path

import pytest
from click.testing import CliRunner

from vpsetup.adapters.mock import MockCommandRunner
from vpsetup.adapters.shell.filesystem import SystemFiles
from vpsetup.main import cli

GRAPH = {"base": [], "web": ["base"], "extra": [], "combo": ["web", "extra"]}
BUNDLES = {"quick": ["web"], "auto": ["combo"]}


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def fake_obj(make_registry, tmp_path: Path):
    """Build an ``obj`` dict with a recording registry; returns (obj, calls)."""

    def factory(fail: set[str] | None = None):
        registry, calls = make_registry(GRAPH, fail=fail, bundles=BUNDLES)
        obj = {
            "registry": registry,
            "runner": MockCommandRunner(),
            "files": SystemFiles(tmp_path / "root"),
        }
        return obj, calls

    return factory


# ── Basics ──────────────────────────────────────────────────────


class TestBasics:
    def test_help(self, runner: CliRunner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("run", "modules", "config", "history"):
            assert command in result.output

    def test_version(self, runner: CliRunner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_run_help(self, runner: CliRunner):
        result = runner.invoke(cli, ["run", "--help"])
        assert result.exit_code == 0
        assert "--dry-run" in result.output
        assert "--modules" in result.output


# ── modules ─────────────────────────────────────────────────────


class TestModulesCommand:
    def test_lists_catalog(self, runner: CliRunner):
        result = runner.invoke(cli, ["modules"])
        assert result.exit_code == 0
        assert "Modules: 10" in result.output
        assert "docker_ufw" in result.output
        assert "requires: docker, firewall" in result.output

    def test_json(self, runner: CliRunner):
        result = runner.invoke(cli, ["--quiet", "modules", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert len(data["modules"]) == 10
        docker_ufw = next(m for m in data["modules"] if m["name"] == "docker_ufw")
        assert docker_ufw["dependencies"] == ["docker", "firewall"]
        assert set(data["bundles"]) == {"quick", "auto", "full"}


# ── run ─────────────────────────────────────────────────────────


class TestRunCommand:
    def test_dry_run_real_catalog(self, runner: CliRunner):
        result = runner.invoke(cli, ["run", "-m", "docker_ufw", "--dry-run"])
        assert result.exit_code == 0, result.output
        output = result.output
        assert "[DRY RUN]" in output
        assert output.index("• docker ") < output.index("• firewall ") < output.index("• docker_ufw ")
        assert "(dependency)" in output
        assert "Dry run complete" in output

    def test_unknown_module(self, runner: CliRunner):
        result = runner.invoke(cli, ["run", "-m", "nginx", "--dry-run"])
        assert result.exit_code == 1
        assert "Unknown module: 'nginx'" in result.output

    def test_empty_module_list(self, runner: CliRunner):
        result = runner.invoke(cli, ["run", "-m", " , "])
        assert result.exit_code == 1
        assert "No modules given" in result.output

    def test_ssh_port_range(self, runner: CliRunner):
        result = runner.invoke(cli, ["run", "--ssh-port", "22", "--dry-run"])
        assert result.exit_code == 2

    def test_confirm_and_run(self, runner: CliRunner, fake_obj):
        obj, calls = fake_obj()
        result = runner.invoke(cli, ["run", "-m", "combo"], obj=obj, input="y\n")
        assert result.exit_code == 0, result.output
        assert calls == ["base", "web", "extra", "combo"]
        assert "Continue?" in result.output
        assert "Setup complete" in result.output
        assert "Result: 4/4 succeeded" in result.output

    def test_cancel(self, runner: CliRunner, fake_obj):
        obj, calls = fake_obj()
        result = runner.invoke(cli, ["run", "-m", "web"], obj=obj, input="n\n")
        assert result.exit_code == 0
        assert "Setup cancelled." in result.output
        assert calls == []

    def test_failure_exits_nonzero(self, runner: CliRunner, fake_obj, tmp_path: Path):
        obj, calls = fake_obj(fail={"web"})
        result = runner.invoke(cli, ["run", "-m", "combo"], obj=obj, input="y\n")
        assert result.exit_code == 1
        assert calls == ["base", "web"]
        assert "web broke" in result.output
        assert "not run" in result.output
        assert "Setup stopped due to module failure" in result.output
        assert f"Log file: {tmp_path / 'logs' / 'vps-setup.log'}" in result.output

    def test_auto_runs_without_prompt(self, runner: CliRunner, fake_obj):
        obj, calls = fake_obj()
        result = runner.invoke(cli, ["run", "--auto"], obj=obj)
        assert result.exit_code == 0, result.output
        assert calls == ["base", "web", "extra", "combo"]
        assert "Continue?" not in result.output

    def test_auto_mode_from_environment(self, runner: CliRunner, fake_obj, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("SETUP_AUTO_MODE", "true")
        obj, calls = fake_obj()
        result = runner.invoke(cli, ["run"], obj=obj)
        assert result.exit_code == 0, result.output
        assert "auto mode" in result.output
        assert calls == ["base", "web", "extra", "combo"]
        assert "Continue?" not in result.output

    def test_explicit_mode_beats_environment(self, runner: CliRunner, fake_obj, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("SETUP_AUTO_MODE", "true")
        obj, calls = fake_obj()
        result = runner.invoke(cli, ["run", "--mode", "quick"], obj=obj, input="y\n")
        assert result.exit_code == 0
        assert "Continue?" in result.output
        assert calls == ["base", "web"]

    def test_quick(self, runner: CliRunner, fake_obj):
        obj, calls = fake_obj()
        result = runner.invoke(cli, ["run", "--quick"], obj=obj, input="y\n")
        assert result.exit_code == 0
        assert calls == ["base", "web"]

    def test_interactive_menu(self, runner: CliRunner, fake_obj):
        obj, calls = fake_obj()
        result = runner.invoke(cli, ["run"], obj=obj, input="9\n3\ny\n")
        assert result.exit_code == 0, result.output
        assert "Invalid choice: 9" in result.output
        assert calls == ["extra"]

    def test_interactive_menu_default(self, runner: CliRunner, fake_obj):
        obj, calls = fake_obj()
        result = runner.invoke(cli, ["run"], obj=obj, input="\ny\n")
        assert result.exit_code == 0
        assert calls == ["base", "web"]

    def test_json(self, runner: CliRunner, fake_obj):
        obj, _ = fake_obj()
        result = runner.invoke(cli, ["--quiet", "run", "--auto", "--json"], obj=obj)
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["plan"]["resolved"] == ["base", "web", "extra", "combo"]
        assert data["report"]["status"] == "ok"
        assert data["report"]["succeeded"] == 4

    def test_config_applied(self, runner: CliRunner, fake_obj, tmp_path: Path):
        obj, calls = fake_obj()
        config = tmp_path / "vps-setup.conf"
        config.write_text("[ssh]\nssh_port = 80\n")
        result = runner.invoke(cli, ["run", "-m", "web", "-c", str(config)], obj=obj)
        assert result.exit_code == 1
        assert "Invalid SSH port" in result.output
        assert calls == []


# ── history ─────────────────────────────────────────────────────


class TestHistoryCommand:
    def test_empty(self, runner: CliRunner):
        result = runner.invoke(cli, ["history"])
        assert result.exit_code == 0
        assert "No runs recorded yet" in result.output

    def test_after_runs(self, runner: CliRunner, fake_obj):
        obj, _ = fake_obj(fail={"extra"})
        runner.invoke(cli, ["run", "--auto"], obj=obj)
        obj, _ = fake_obj()
        runner.invoke(cli, ["run", "-m", "web", "--dry-run"], obj=obj)

        result = runner.invoke(cli, ["history"])
        assert result.exit_code == 0
        assert "Last 2 of 2 runs" in result.output
        assert "failed: extra" in result.output
        assert "dry-run" in result.output

    def test_json(self, runner: CliRunner, fake_obj):
        obj, _ = fake_obj()
        runner.invoke(cli, ["run", "--auto"], obj=obj)
        result = runner.invoke(cli, ["--quiet", "history", "--json"])
        data = json.loads(result.output)
        assert len(data) == 1
        assert data[0]["mode"] == "auto"
        assert data[0]["resolved"] == ["base", "web", "extra", "combo"]


# ── config ──────────────────────────────────────────────────────


class TestConfigCommands:
    def test_example_printed(self, runner: CliRunner):
        result = runner.invoke(cli, ["config", "example"])
        assert result.exit_code == 0
        assert "[general]" in result.output
        assert "ssh_port=2222" in result.output

    def test_example_written(self, runner: CliRunner, tmp_path: Path):
        path = tmp_path / "vps-setup.conf"
        result = runner.invoke(cli, ["config", "example", str(path)])
        assert result.exit_code == 0
        assert "Example config written" in result.output
        assert "[advanced]" in path.read_text()

        again = runner.invoke(cli, ["config", "example", str(path)])
        assert again.exit_code == 1
        assert "already exists" in again.output

        forced = runner.invoke(cli, ["config", "example", str(path), "--force"])
        assert forced.exit_code == 0

    def test_check_valid(self, runner: CliRunner, tmp_path: Path):
        path = tmp_path / "vps-setup.conf"
        path.write_text("[user]\nusername = deploy\n")
        result = runner.invoke(cli, ["config", "check", "-c", str(path)])
        assert result.exit_code == 0
        assert "Configuration is valid" in result.output

    def test_check_invalid(self, runner: CliRunner, tmp_path: Path):
        path = tmp_path / "vps-setup.conf"
        path.write_text(textwrap.dedent("""\
            [user]
            username = Root User
            [ssh]
            ssh_port = 99999
        """))
        result = runner.invoke(cli, ["config", "check", "-c", str(path)])
        assert result.exit_code == 1
        assert "Configuration errors" in result.output
        assert "Invalid username" in result.output
        assert "Invalid SSH port" in result.output

    def test_check_non_ascii_port(self, runner: CliRunner, tmp_path: Path):
        path = tmp_path / "vps-setup.conf"
        path.write_text("[ssh]\nssh_port = ²\n", encoding="utf-8")
        result = runner.invoke(cli, ["config", "check", "-c", str(path)])
        assert result.exit_code == 1
        assert result.exception is None or isinstance(result.exception, SystemExit)
        assert "Invalid SSH port" in result.output

    def test_check_json(self, runner: CliRunner, tmp_path: Path):
        path = tmp_path / "vps-setup.conf"
        path.write_text("[ssh]\nssh_port = 2200\n")
        result = runner.invoke(cli, ["--quiet", "config", "check", "-c", str(path), "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["valid"] is True
        assert data["key_count"] == 1

    def test_check_missing(self, runner: CliRunner, tmp_path: Path):
        result = runner.invoke(cli, ["config", "check", "-c", str(tmp_path / "nope.conf")])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_show(self, runner: CliRunner, tmp_path: Path):
        path = tmp_path / "vps-setup.conf"
        path.write_text("[ssh]\nssh_port = 2200\n[general]\ntimezone = UTC\n")
        result = runner.invoke(cli, ["config", "show", "-c", str(path)])
        assert result.exit_code == 0
        assert result.output.index("[general]") < result.output.index("[ssh]")
        assert "ssh_port = 2200" in result.output

    def test_show_json(self, runner: CliRunner, tmp_path: Path):
        path = tmp_path / "vps-setup.conf"
        path.write_text("[ssh]\nssh_port = 2200\n")
        result = runner.invoke(cli, ["--quiet", "config", "show", "-c", str(path), "--json"])
        data = json.loads(result.output)
        assert data["sections"] == {"ssh": {"ssh_port": "2200"}}
