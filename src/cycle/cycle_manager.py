# src/cycle/cycle_manager.py - v2
"""Cycle manager: decide whether a run is initial, incremental or a full
resynthesis, and build the corpus snapshot that results from it.

Decision order:
  1. manual override            -> full_resynthesis
  2. no persisted corpus        -> initial
  3. corpus with no principles  -> initial (nothing to compare against)
  4. triggers, in this order:
       - share of new principles above ``new_principle_ratio``
       - at least ``contradiction_count`` persisted promotable axioms
         contradicted by the new principles
       - ``hierarchy_changed`` flag
     any trigger -> full_resynthesis, none -> incremental

The decision depends only on its arguments, so deciding twice over the same
inputs (with deterministic oracles) yields equal CycleDecision values.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone

from distiller.core.models import (
    Axiom,
    Corpus,
    CycleDecision,
    CycleMode,
    CycleThresholds,
    Principle,
    ValueTension,
)
from distiller.similarity.base_oracle import SimilarityOracle
from distiller.similarity.conflict_oracle import ConflictOracle

logger = logging.getLogger(__name__)

REASON_OVERRIDE = "Manual override"
TRIGGER_OVERRIDE = "force_resynthesis flag set"
REASON_NO_CORPUS = "No existing corpus"
REASON_EMPTY_CORPUS = "Existing corpus has no principles to compare against"
REASON_TRIGGERED = "Significant changes detected"
REASON_INCREMENTAL = "Merge new principles into existing corpus"
TRIGGER_HIERARCHY = "Axiom hierarchy has changed"


async def count_new_principles(
    existing: list[Principle],
    candidates: list[Principle],
    oracle: SimilarityOracle,
    novelty_similarity: float = 0.85,
) -> int:
    """Count candidates with no existing principle matching at ``novelty_similarity``."""
    existing_texts = [p.representative_text for p in existing]

    async def _is_new(candidate: Principle) -> bool:
        match = await oracle.best_match(
            candidate.representative_text, existing_texts, threshold=novelty_similarity,
        )
        return not match.matched

    flags = await asyncio.gather(*(_is_new(c) for c in candidates))
    return sum(flags)


async def count_contradicted_axioms(
    axioms: list[Axiom],
    candidates: list[Principle],
    oracle: ConflictOracle,
    concurrency: int = 5,
) -> int:
    """Number of promotable axioms contradicted by at least one candidate."""
    semaphore = asyncio.Semaphore(concurrency)

    async def _check(axiom: Axiom, principle: Principle) -> bool:
        async with semaphore:
            return await oracle.check(axiom.text, principle.representative_text) is not None

    async def _contradicted(axiom: Axiom) -> bool:
        results = await asyncio.gather(*(_check(axiom, p) for p in candidates))
        return any(results)

    promotable = sorted((a for a in axioms if a.promotable), key=lambda a: a.id)
    flags = await asyncio.gather(*(_contradicted(a) for a in promotable))
    return sum(flags)


async def decide_cycle_mode(
    existing: Corpus | None,
    new_principles: list[Principle],
    similarity_oracle: SimilarityOracle,
    conflict_oracle: ConflictOracle,
    thresholds: CycleThresholds | None = None,
    force_resynthesis: bool = False,
) -> CycleDecision:
    """Decide the mode of this run.

    Raises:
        FatalRunError: If an oracle keeps failing.
    """
    thresholds = thresholds or CycleThresholds()

    if force_resynthesis:
        return CycleDecision(
            mode=CycleMode.FULL_RESYNTHESIS,
            reason=REASON_OVERRIDE,
            triggers=(TRIGGER_OVERRIDE,),
        )

    if existing is None:
        return CycleDecision(mode=CycleMode.INITIAL, reason=REASON_NO_CORPUS)

    existing_count = len(existing.principles)
    if existing_count == 0:
        return CycleDecision(mode=CycleMode.INITIAL, reason=REASON_EMPTY_CORPUS)

    triggers: list[str] = []

    new_count = await count_new_principles(
        existing.principles, new_principles, similarity_oracle,
        thresholds.novelty_similarity,
    )
    ratio = new_count / existing_count
    logger.debug("New principles: %d/%d (%.2f)", new_count, existing_count, ratio)
    if ratio > thresholds.new_principle_ratio:
        triggers.append(
            f"New principles ({ratio * 100:.0f}%) exceed threshold "
            f"({thresholds.new_principle_ratio * 100:.0f}%)"
        )

    contradicted = await count_contradicted_axioms(
        existing.axioms, new_principles, conflict_oracle,
    )
    if contradicted >= thresholds.contradiction_count:
        triggers.append(f"{contradicted} axioms contradicted by new evidence")

    if thresholds.hierarchy_changed:
        triggers.append(TRIGGER_HIERARCHY)

    if triggers:
        return CycleDecision(
            mode=CycleMode.FULL_RESYNTHESIS,
            reason=REASON_TRIGGERED,
            triggers=tuple(triggers),
        )
    return CycleDecision(mode=CycleMode.INCREMENTAL, reason=REASON_INCREMENTAL)


class CycleManager:
    """Binds oracles and thresholds; ``decide`` delegates to decide_cycle_mode."""

    def __init__(
        self,
        similarity_oracle: SimilarityOracle,
        conflict_oracle: ConflictOracle,
        thresholds: CycleThresholds | None = None,
    ) -> None:
        self._similarity_oracle = similarity_oracle
        self._conflict_oracle = conflict_oracle
        self.thresholds = thresholds or CycleThresholds()

    async def decide(
        self,
        existing: Corpus | None,
        new_principles: list[Principle],
        force_resynthesis: bool = False,
    ) -> CycleDecision:
        return await decide_cycle_mode(
            existing,
            new_principles,
            self._similarity_oracle,
            self._conflict_oracle,
            thresholds=self.thresholds,
            force_resynthesis=force_resynthesis,
        )


def format_cycle_decision(decision: CycleDecision) -> str:
    """Human-readable summary of a decision."""
    lines = [f"Mode: {decision.mode.value}", f"Reason: {decision.reason}"]
    if decision.triggers:
        lines.append("Triggers:")
        lines.extend(f"  - {trigger}" for trigger in decision.triggers)
    return "\n".join(lines)


def create_corpus(
    principles: list[Principle],
    axioms: list[Axiom],
    tensions: list[ValueTension] | None = None,
) -> Corpus:
    """First snapshot of a corpus (cycle 1)."""
    return Corpus(
        id=str(uuid.uuid4()),
        principles=principles,
        axioms=axioms,
        tensions=tensions or [],
        cycle_count=1,
    )


def update_corpus(
    existing: Corpus,
    principles: list[Principle],
    axioms: list[Axiom],
    tensions: list[ValueTension] | None = None,
) -> Corpus:
    """Next snapshot of an existing corpus; the cycle count advances by one."""
    return existing.model_copy(update={
        "updated_at": datetime.now(timezone.utc),
        "principles": principles,
        "axioms": axioms,
        "tensions": tensions or [],
        "cycle_count": existing.cycle_count + 1,
    })
