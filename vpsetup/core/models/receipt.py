"""
Receipt model — the result contract of a provisioning module.

A module action hands back a Receipt, never an exception. The
orchestrator turns receipts into ModuleRun transitions.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class Receipt(BaseModel):
    """Outcome of one module action.

    Failures are captured in ``error``; the action itself does not raise.
    """

    module: str
    status: Literal["ok", "skipped", "failed"] = "ok"

    started_at: str = Field(default_factory=_now_iso)
    ended_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    output: str = ""
    error: str | None = None

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Whether the action succeeded."""
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        """Whether the action failed."""
        return self.status == "failed"

    @classmethod
    def success(cls, module: str, output: str = "", **kwargs: Any) -> Receipt:
        """Create a success receipt."""
        return cls(module=module, status="ok", output=output, **kwargs)

    @classmethod
    def failure(cls, module: str, error: str, **kwargs: Any) -> Receipt:
        """Create a failure receipt."""
        return cls(module=module, status="failed", error=error, **kwargs)

    @classmethod
    def skip(cls, module: str, reason: str = "", **kwargs: Any) -> Receipt:
        """Create a skip receipt."""
        return cls(module=module, status="skipped", output=reason, **kwargs)
