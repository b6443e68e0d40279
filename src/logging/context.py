# src/logging/context.py - v1
"""Contextual logging support: attach run_id, phase and script to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Context variables for structured logging, set per run / phase / script.
_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "run_id", default=None
)
_phase: contextvars.ContextVar[int | None] = contextvars.ContextVar(
    "phase", default=None
)
_script: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "script", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    run_id: str | None = None
    phase: int | None = None
    script: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        run_id=_run_id.get(),
        phase=_phase.get(),
        script=_script.get(),
    )


def set_run_context(run_id: str) -> None:
    """Set run-level context (called once per invocation)."""
    _run_id.set(run_id)


def set_phase_context(phase: int | None) -> None:
    """Set phase-level context and drop any stale script context."""
    _phase.set(phase)
    _script.set(None)


def set_script_context(script: str | None) -> None:
    _script.set(script)


def clear_context() -> None:
    """Reset all context variables."""
    _run_id.set(None)
    _phase.set(None)
    _script.set(None)
