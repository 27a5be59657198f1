# src/logging/context.py - v1
"""Contextual logging support: attach run_id, cycle and stage to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Context variables for structured logging, set per synthesis run.
_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "run_id", default=None
)
_cycle: contextvars.ContextVar[int | None] = contextvars.ContextVar(
    "cycle", default=None
)
_stage: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "stage", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    run_id: str | None = None
    cycle: int | None = None
    stage: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        run_id=_run_id.get(),
        cycle=_cycle.get(),
        stage=_stage.get(),
    )


def set_run_context(run_id: str, cycle: int | None = None) -> None:
    """Set run-level context (called once per synthesis run)."""
    _run_id.set(run_id)
    _cycle.set(cycle)


def set_stage_context(stage: str | None) -> None:
    """Set the pipeline stage (ingest, promote, tension, cycle...)."""
    _stage.set(stage)


def clear_context() -> None:
    """Reset all context variables."""
    _run_id.set(None)
    _cycle.set(None)
    _stage.set(None)
