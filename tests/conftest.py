"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest

from vpsetup.adapters.mock import MockCommandRunner
from vpsetup.adapters.shell.filesystem import SystemFiles
from vpsetup.core.config.settings import Settings
from vpsetup.core.engine.registry import ModuleRegistry
from vpsetup.core.models.module import ModuleDescriptor
from vpsetup.core.models.prompt import AUTO_MODE_ENV, PromptKind
from vpsetup.core.models.receipt import Receipt
from vpsetup.core.services.confirm import Confirmer
from vpsetup.provisioning.base import ModuleContext

STOCK_SSHD_CONFIG = textwrap.dedent("""\
    Include /etc/ssh/sshd_config.d/*.conf

    #Port 22
    #PermitRootLogin prohibit-password
    KbdInteractiveAuthentication no
    UsePAM yes
    X11Forwarding yes
""")


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep logs, the audit ledger and SETUP_* answers out of the real system."""
    monkeypatch.setenv("VPS_SETUP_LOG_FILE", str(tmp_path / "logs" / "vps-setup.log"))
    monkeypatch.setenv("VPS_SETUP_STATE_DIR", str(tmp_path / "state"))
    monkeypatch.delenv("VPS_SETUP_LOG_LEVEL", raising=False)
    monkeypatch.delenv(AUTO_MODE_ENV, raising=False)
    for kind in PromptKind:
        if kind.env_var:
            monkeypatch.delenv(kind.env_var, raising=False)


@pytest.fixture
def system_root(tmp_path: Path) -> Path:
    """A fake filesystem root with a stock sshd_config."""
    root = tmp_path / "root"
    (root / "etc" / "ssh" / "sshd_config.d").mkdir(parents=True)
    (root / "etc" / "ssh" / "sshd_config").write_text(STOCK_SSHD_CONFIG)
    return root


class ScriptedInput:
    """Input function answering prompts by substring match.

    ``responses`` maps a prompt fragment to one answer or a list of
    answers consumed in order. Unmatched prompts get ``default``.
    """

    def __init__(self, responses: dict[str, str | list[str]] | None = None, default: str = ""):
        self.responses = {k: list(v) if isinstance(v, list) else v for k, v in (responses or {}).items()}
        self.default = default
        self.prompts: list[str] = []

    def __call__(self, prompt: str) -> str:
        self.prompts.append(prompt)
        for fragment, answer in self.responses.items():
            if fragment in prompt:
                if isinstance(answer, list):
                    return answer.pop(0) if answer else self.default
                return answer
        return self.default


@pytest.fixture
def make_context(system_root: Path) -> Callable[..., ModuleContext]:
    """Factory for a ModuleContext backed by a mock runner and a fake root."""

    def factory(
        *,
        auto_mode: bool = True,
        answers: dict[PromptKind, str] | None = None,
        runner: MockCommandRunner | None = None,
        input_func: Callable[[str], str] | None = None,
        **settings_fields,
    ) -> ModuleContext:
        base = Settings.from_config(None, auto_mode=auto_mode, env_answers=answers)
        settings = base.model_copy(update=settings_fields) if settings_fields else base
        return ModuleContext(
            settings=settings,
            confirmer=Confirmer.from_settings(settings, input_func=input_func or ScriptedInput()),
            runner=runner or MockCommandRunner(),
            files=SystemFiles(system_root),
        )

    return factory


@pytest.fixture
def make_registry() -> Callable[..., tuple[ModuleRegistry, list[str]]]:
    """Factory for a small registry whose actions record their calls.

    Returns ``(registry, calls)``; ``calls`` lists module names in the
    order their actions ran.
    """

    def factory(
        graph: dict[str, list[str]],
        *,
        fail: set[str] | None = None,
        bundles: dict[str, list[str]] | None = None,
    ) -> tuple[ModuleRegistry, list[str]]:
        calls: list[str] = []
        failing = fail or set()

        def action_for(name: str) -> Callable[[object], Receipt]:
            def action(_ctx: object) -> Receipt:
                calls.append(name)
                if name in failing:
                    return Receipt.failure(module=name, error=f"{name} broke")
                return Receipt.success(module=name, output=f"{name} done")

            return action

        descriptors = [
            ModuleDescriptor(name=name, description=f"{name.title()} Module", dependencies=tuple(deps))
            for name, deps in graph.items()
        ]
        registry = ModuleRegistry(
            descriptors,
            {name: action_for(name) for name in graph},
            bundles=bundles,
        )
        return registry, calls

    return factory


@pytest.fixture
def scripted_input() -> type[ScriptedInput]:
    """The ScriptedInput class, for tests that build their own confirmers."""
    return ScriptedInput
