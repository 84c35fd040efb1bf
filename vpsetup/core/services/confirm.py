"""
Confirmation layer — every yes/no and free-form question goes through here.

Answer order for ``confirm`` (first match wins):
    1. a pre-set answer for the prompt kind (config file or SETUP_<KIND>)
    2. auto mode → the configured auto answer (default: yes)
    3. one line from the operator; only ``y``/``Y`` means yes
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping

import click

from vpsetup.core.config.settings import Settings
from vpsetup.core.models.prompt import PromptKind

logger = logging.getLogger(__name__)

InputFunc = Callable[[str], str]


def _read_line(prompt: str) -> str:
    return click.prompt(prompt, default="", show_default=False, prompt_suffix=" ")


def is_affirmative(value: str) -> bool:
    """Pre-set answers count as yes when they start with ``y`` (y, yes, Yes…)."""
    return value.strip().lower().startswith("y")


class Confirmer:
    """Answers prompts from pre-set answers, auto mode, or the operator."""

    def __init__(
        self,
        answers: Mapping[PromptKind, str] | None = None,
        *,
        auto_mode: bool = False,
        auto_default: bool = True,
        input_func: InputFunc | None = None,
    ):
        self.answers = dict(answers or {})
        self.auto_mode = auto_mode
        self.auto_default = auto_default
        self._input = input_func or _read_line
        self.decisions: dict[PromptKind, bool] = {}

    @classmethod
    def from_settings(cls, settings: Settings, input_func: InputFunc | None = None) -> Confirmer:
        return cls(
            settings.answers,
            auto_mode=settings.auto_mode,
            auto_default=settings.auto_confirm_default,
            input_func=input_func,
        )

    def _preset(self, kind: PromptKind) -> str | None:
        if kind in (PromptKind.GENERIC, PromptKind.PROCEED):
            return None
        value = self.answers.get(kind)
        return value if value else None

    def confirm(self, kind: PromptKind, text: str) -> bool:
        """Ask a yes/no question tagged with ``kind``."""
        answer = self._decide(kind, text)
        if kind not in (PromptKind.GENERIC, PromptKind.PROCEED):
            self.decisions[kind] = answer
        return answer

    def _decide(self, kind: PromptKind, text: str) -> bool:
        preset = self._preset(kind)
        if preset is not None:
            answer = is_affirmative(preset)
            logger.info("Using preset answer for '%s': %s", text, "yes" if answer else "no")
            return answer

        if self.auto_mode:
            logger.info(
                "Auto mode: answering %s to '%s'", "yes" if self.auto_default else "no", text
            )
            return self.auto_default

        reply = self._input(f"{text} (y/N)")
        return reply.strip().lower() == "y"

    def decided(self, kind: PromptKind) -> bool | None:
        """The answer already given for ``kind`` this run, else its preset, else None."""
        if kind in self.decisions:
            return self.decisions[kind]
        preset = self._preset(kind)
        return is_affirmative(preset) if preset is not None else None

    def ask(self, kind: PromptKind, text: str, default: str = "") -> str:
        """Ask for a value (username, port, hostname); empty reply → ``default``."""
        preset = self._preset(kind)
        if preset is not None:
            logger.info("Using preset value for '%s': %s", text, preset)
            return preset

        if self.auto_mode:
            logger.info("Auto mode: using default for '%s': %s", text, default)
            return default

        suffix = f" [{default}]" if default else ""
        reply = self._input(f"{text}{suffix}").strip()
        return reply or default
