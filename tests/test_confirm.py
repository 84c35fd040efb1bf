"""
Tests for the confirmation layer — preset answers, auto mode, operator input.
"""

from __future__ import annotations

import pytest

from vpsetup.core.config.settings import Settings
from vpsetup.core.models.prompt import PromptKind, auto_mode_from_env, overrides_from_env
from vpsetup.core.services.confirm import Confirmer, is_affirmative


def _never(prompt: str) -> str:
    raise AssertionError(f"unexpected prompt: {prompt}")


# ── Preset answers ──────────────────────────────────────────────


class TestPresetAnswers:
    @pytest.mark.parametrize("value", ["y", "yes", "Yes", "YES", " y "])
    def test_affirmative(self, value: str):
        assert is_affirmative(value)

    @pytest.mark.parametrize("value", ["n", "no", "", "true", "1"])
    def test_not_affirmative(self, value: str):
        assert not is_affirmative(value)

    def test_preset_answers_without_asking(self):
        confirmer = Confirmer({PromptKind.ALLOW_HTTP: "yes", PromptKind.ENABLE_2FA: "no"}, input_func=_never)
        assert confirmer.confirm(PromptKind.ALLOW_HTTP, "Allow HTTP?") is True
        assert confirmer.confirm(PromptKind.ENABLE_2FA, "Enable 2FA?") is False

    def test_preset_beats_auto_mode(self):
        confirmer = Confirmer({PromptKind.INSTALL_AIDE: "no"}, auto_mode=True, input_func=_never)
        assert confirmer.confirm(PromptKind.INSTALL_AIDE, "Install AIDE?") is False

    def test_empty_preset_is_ignored(self, scripted_input):
        ask = scripted_input(default="y")
        confirmer = Confirmer({PromptKind.ALLOW_HTTP: ""}, input_func=ask)
        assert confirmer.confirm(PromptKind.ALLOW_HTTP, "Allow HTTP?") is True
        assert ask.prompts == ["Allow HTTP? (y/N)"]

    def test_generic_and_proceed_never_preset(self, scripted_input):
        confirmer = Confirmer(
            {PromptKind.GENERIC: "yes", PromptKind.PROCEED: "yes"},
            input_func=scripted_input(default="n"),
        )
        assert confirmer.confirm(PromptKind.GENERIC, "Install?") is False
        assert confirmer.confirm(PromptKind.PROCEED, "Continue?") is False


# ── Auto mode ───────────────────────────────────────────────────


class TestAutoMode:
    def test_auto_default_yes(self):
        confirmer = Confirmer(auto_mode=True, input_func=_never)
        assert confirmer.confirm(PromptKind.GENERIC, "Install Netdata?") is True

    def test_auto_default_no(self):
        confirmer = Confirmer(auto_mode=True, auto_default=False, input_func=_never)
        assert confirmer.confirm(PromptKind.GENERIC, "Install Netdata?") is False

    def test_ask_returns_default(self):
        confirmer = Confirmer(auto_mode=True, input_func=_never)
        assert confirmer.ask(PromptKind.HOSTNAME, "New hostname", "web-01") == "web-01"


# ── Operator input ──────────────────────────────────────────────


class TestInteractive:
    @pytest.mark.parametrize("reply, expected", [("y", True), ("Y", True), (" y ", True), ("", False), ("n", False), ("yes", False)])
    def test_only_y_means_yes(self, reply: str, expected: bool, scripted_input):
        confirmer = Confirmer(input_func=scripted_input(default=reply))
        assert confirmer.confirm(PromptKind.GENERIC, "Go?") is expected

    def test_prompt_text(self, scripted_input):
        ask = scripted_input(default="n")
        Confirmer(input_func=ask).confirm(PromptKind.REMOVE_OLD_DOCKER, "Remove old Docker packages?")
        assert ask.prompts == ["Remove old Docker packages? (y/N)"]

    def test_decisions_are_recorded(self, scripted_input):
        confirmer = Confirmer({PromptKind.ALLOW_HTTP: "yes"}, input_func=scripted_input(default="n"))
        assert confirmer.decided(PromptKind.ALLOW_HTTP) is True
        assert confirmer.decided(PromptKind.DISABLE_ROOT_SSH) is None
        confirmer.confirm(PromptKind.DISABLE_ROOT_SSH, "Disable root SSH?")
        confirmer.confirm(PromptKind.PROCEED, "Continue?")
        assert confirmer.decided(PromptKind.DISABLE_ROOT_SSH) is False
        assert PromptKind.PROCEED not in confirmer.decisions

    def test_ask_preset(self):
        confirmer = Confirmer({PromptKind.USERNAME: "deploy"}, input_func=_never)
        assert confirmer.ask(PromptKind.USERNAME, "Username", "admin") == "deploy"

    def test_ask_empty_reply_uses_default(self, scripted_input):
        ask = scripted_input(default="")
        assert Confirmer(input_func=ask).ask(PromptKind.SSH_PORT, "SSH port", "2222") == "2222"
        assert ask.prompts == ["SSH port [2222]"]

    def test_ask_reply(self, scripted_input):
        confirmer = Confirmer(input_func=scripted_input({"Username": " ops "}))
        assert confirmer.ask(PromptKind.USERNAME, "Username", "admin") == "ops"


# ── Settings and environment ────────────────────────────────────


class TestSources:
    def test_from_settings(self):
        settings = Settings.from_config(auto_mode=True)
        confirmer = Confirmer.from_settings(settings, input_func=_never)
        assert confirmer.auto_mode is True
        assert confirmer.confirm(PromptKind.ENABLE_2FA, "Enable 2FA?") is False
        assert confirmer.confirm(PromptKind.DISABLE_ROOT_SSH, "Disable root SSH?") is True

    def test_overrides_from_env(self):
        environ = {
            "SETUP_DISABLE_ROOT_SSH": "no",
            "SETUP_USERNAME": "deploy",
            "SETUP_SSH_PORT_CHANGE": "yes",
            "SETUP_ALLOW_HTTP": "",
            "HOME": "/root",
        }
        assert overrides_from_env(environ) == {
            PromptKind.DISABLE_ROOT_SSH: "no",
            PromptKind.USERNAME: "deploy",
            PromptKind.CHANGE_SSH_PORT: "yes",
        }

    def test_every_preset_kind_has_env_var(self):
        for kind in PromptKind:
            if kind in (PromptKind.GENERIC, PromptKind.PROCEED):
                assert kind.env_var is None
            else:
                assert kind.env_var and kind.env_var.startswith("SETUP_")

    @pytest.mark.parametrize(
        "value, expected",
        [("true", True), ("YES", True), ("1", True), ("false", False), ("", False), ("maybe", False)],
    )
    def test_auto_mode_from_env(self, value: str, expected: bool):
        assert auto_mode_from_env({"SETUP_AUTO_MODE": value}) is expected
        assert auto_mode_from_env({}) is False
