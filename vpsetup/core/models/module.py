"""
Module models — catalog entries and their per-run state.

A ModuleDescriptor is static: it is loaded from the packaged catalog
once and never changes. A ModuleRun is created when a module is
selected for a run and transitions out of ``pending`` exactly once.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ModuleDescriptor(BaseModel):
    """A named provisioning unit in the catalog."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    dependencies: tuple[str, ...] = ()

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Module name cannot be empty")
        return v


class ModuleCatalog(BaseModel):
    """The packaged catalog: descriptors plus named selection bundles."""

    modules: list[ModuleDescriptor] = Field(default_factory=list)
    bundles: dict[str, list[str]] = Field(default_factory=dict)


class ModuleStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def marker(self) -> str:
        return {
            ModuleStatus.PENDING: "…",
            ModuleStatus.SUCCESS: "✓",
            ModuleStatus.FAILED: "✗",
            ModuleStatus.SKIPPED: "⊘",
        }[self]


class ModuleRun(BaseModel):
    """Execution record for one selected module."""

    name: str
    description: str = ""
    status: ModuleStatus = ModuleStatus.PENDING

    started_at: str | None = None
    ended_at: str | None = None
    duration_ms: int = 0

    output: str = ""
    error: str | None = None

    @property
    def finished(self) -> bool:
        return self.status is not ModuleStatus.PENDING

    def finish(
        self,
        status: ModuleStatus,
        *,
        output: str = "",
        error: str | None = None,
        ended_at: str | None = None,
        duration_ms: int = 0,
    ) -> None:
        """Move the run to its terminal status.

        Raises:
            ValueError: If the run already finished or ``status`` is pending.
        """
        if status is ModuleStatus.PENDING:
            raise ValueError("A module run cannot finish as pending")
        if self.finished:
            raise ValueError(
                f"Module run '{self.name}' already finished as {self.status.value}"
            )
        self.status = status
        self.output = output
        self.error = error
        self.ended_at = ended_at
        self.duration_ms = duration_ms
