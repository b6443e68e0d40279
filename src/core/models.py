# src/core/models.py - v1
"""Shared Pydantic domain models used across modules.

No module redefines these types; all imports come from core.models.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


ScriptStatus = Literal["pending", "running", "completed", "failed", "skipped"]
PhaseStatus = Literal["completed", "failed", "skipped"]


# === SCRIPT METADATA ===


class ScriptDescriptor(BaseModel):
    """Parsed metadata of one installer script.

    Rebuilt from scratch on every indexing pass, never mutated.
    """

    model_config = ConfigDict(frozen=True)

    path: str
    id: str
    phase: int = Field(ge=0)
    profile_tags: frozenset[str] = frozenset()
    required_vars: tuple[str, ...] = ()
    dependencies: tuple[str, ...] = ()
    top_flags: tuple[str, ...] = ()
    name: str | None = None
    phase_name: str | None = None

    def resolve(self, scripts_root: Path) -> Path:
        """Absolute location of the script under *scripts_root*."""
        return scripts_root / self.path


# === COMPLETION STATE ===


class CompletionRecord(BaseModel):
    """Durable marker that a script finished successfully."""

    script_id: str
    completed: bool = True
    completed_at: datetime


# === EXECUTION OUTCOMES ===


class ScriptOutcome(BaseModel):
    """Result of processing a single script during a run."""

    script_id: str
    phase: int
    status: ScriptStatus = "pending"
    reason: str = ""
    exit_code: int | None = None
    duration_ms: int = 0


class PhaseOutcome(BaseModel):
    """Aggregated result of one phase."""

    number: int
    name: str
    status: PhaseStatus = "completed"
    reason: str = ""
    scripts: list[ScriptOutcome] = Field(default_factory=list)

    def count(self, status: ScriptStatus) -> int:
        return sum(1 for s in self.scripts if s.status == status)

    @property
    def ok(self) -> int:
        return self.count("completed")

    @property
    def failed(self) -> int:
        return self.count("failed")

    @property
    def skipped(self) -> int:
        return self.count("skipped")
