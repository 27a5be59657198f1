# src/promotion/guardrails.py - v1
"""Synthesis guardrails. Observability warnings only; they never block a run."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

COGNITIVE_LOAD_LIMIT = 30
COGNITIVE_LOAD_SIGNAL_RATIO = 0.5


@dataclass
class GuardrailReport:
    expansion_warning: bool = False
    cognitive_load_warning: bool = False
    messages: list[str] = field(default_factory=list)


def check_guardrails(axiom_count: int, signal_count: int) -> GuardrailReport:
    """Flag expansion (more axioms than signals) and cognitive overload.

    The cognitive limit is min(signals × 0.5, 30).
    """
    report = GuardrailReport()

    if axiom_count > signal_count:
        report.expansion_warning = True
        report.messages.append(
            f"Expansion instead of compression: {axiom_count} axioms > {signal_count} signals"
        )

    limit = min(signal_count * COGNITIVE_LOAD_SIGNAL_RATIO, COGNITIVE_LOAD_LIMIT)
    if axiom_count > limit:
        report.cognitive_load_warning = True
        report.messages.append(
            f"Exceeds cognitive load limit: {axiom_count} axioms > {limit:.0f} "
            f"(min(signals*{COGNITIVE_LOAD_SIGNAL_RATIO}, {COGNITIVE_LOAD_LIMIT}))"
        )

    for message in report.messages:
        logger.warning("[guardrail] %s", message)
    return report
