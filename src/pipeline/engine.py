# src/pipeline/engine.py - v2
"""Synthesis engine: one run from signals to a new corpus snapshot.

Stages, in order:
  1. classify   signals without a dimension (optional classifier)
  2. ingest     signals into a fresh PrincipleStore, then consolidate
  3. promote    principles to axioms, apply the cognitive-load cap
  4. tension    pairwise conflict scan over promotable axioms
  5. cycle      decide initial / incremental / full_resynthesis
  6. merge      incremental runs absorb the new principles into the
                persisted ones and re-promote; other modes keep the
                new hierarchy as the corpus
  7. audit      orphans and guardrails

Any FatalRunError, deadline expiry or cancellation aborts the run; no
partial SynthesisResult is produced and nothing is persisted here.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections import Counter
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from distiller.classification.base_classifier import classify_pending
from distiller.config.settings import Settings
from distiller.core.errors import FatalRunError
from distiller.core.models import (
    Axiom,
    Corpus,
    CycleMode,
    Principle,
    Signal,
    SynthesisResult,
    ValueTension,
)
from distiller.cycle.cycle_manager import CycleManager, create_corpus, update_corpus
from distiller.logging.context import clear_context, set_run_context, set_stage_context
from distiller.promotion.axiom_promoter import AxiomPromoter
from distiller.promotion.guardrails import check_guardrails
from distiller.store.principle_store import PrincipleStore
from distiller.tension.tension_detector import TensionDetector, attach_tensions

if TYPE_CHECKING:
    from distiller.classification.base_classifier import BaseSignalClassifier
    from distiller.llm.retry import RetryConfig
    from distiller.similarity.base_oracle import SimilarityOracle
    from distiller.similarity.conflict_oracle import ConflictOracle

logger = logging.getLogger(__name__)


def generate_run_id() -> str:
    """Run ID: yyyymmdd_hhmmss_{uuid4_short}."""
    ts = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return f"{ts}_{uuid.uuid4().hex[:8]}"


class SynthesisEngine:
    """Execute one synthesis run against an optional persisted corpus.

    Args:
        similarity_oracle: Equivalence judge for clustering and novelty.
        conflict_oracle: Conflict judge for tensions and contradictions.
        settings: Thresholds, caps and concurrency limits.
        classifier: Optional metadata classifier for undimensioned signals.
        retry_config: Retry policy for classifier calls.
    """

    def __init__(
        self,
        similarity_oracle: SimilarityOracle,
        conflict_oracle: ConflictOracle,
        settings: Settings | None = None,
        classifier: BaseSignalClassifier | None = None,
        retry_config: RetryConfig | None = None,
    ) -> None:
        self._similarity = similarity_oracle
        self._settings = settings or Settings()
        self._classifier = classifier
        self._retry_config = retry_config
        self._promoter = AxiomPromoter(
            self._settings.promotion_criteria(), cap=self._settings.cognitive_load_cap,
        )
        self._tension_detector = TensionDetector(
            conflict_oracle,
            concurrency=self._settings.tension_concurrency,
            max_axioms=self._settings.tension_max_axioms,
        )
        self._cycle_manager = CycleManager(
            similarity_oracle, conflict_oracle, self._settings.cycle_thresholds(),
        )

    async def run(
        self,
        signals: list[Signal],
        existing_corpus: Corpus | None = None,
        force_resynthesis: bool = False,
        deadline_s: float | None = None,
    ) -> SynthesisResult:
        """Run the full synthesis.

        Args:
            signals: Signals of this run; their order is the ingest order.
            existing_corpus: Snapshot persisted by the previous run, if any.
            force_resynthesis: Manual override to full resynthesis.
            deadline_s: Wall-clock budget; defaults to settings.run_deadline_s.

        Returns:
            SynthesisResult carrying the new corpus snapshot.

        Raises:
            FatalRunError: On exhausted retries, deadline expiry or cancellation.
        """
        run_id = generate_run_id()
        cycle = existing_corpus.cycle_count + 1 if existing_corpus else 1
        deadline = deadline_s if deadline_s is not None else self._settings.run_deadline_s
        set_run_context(run_id, cycle)

        try:
            return await asyncio.wait_for(
                self._run(run_id, cycle, signals, existing_corpus, force_resynthesis),
                timeout=deadline,
            )
        except asyncio.TimeoutError as e:
            logger.error("Run %s exceeded its deadline of %.1fs", run_id, deadline)
            raise FatalRunError(
                f"Synthesis run exceeded deadline ({deadline}s)", operation="run",
            ) from e
        except asyncio.CancelledError as e:
            logger.error("Run %s cancelled", run_id)
            raise FatalRunError("Synthesis run cancelled", operation="run") from e
        finally:
            clear_context()

    async def _run(
        self,
        run_id: str,
        cycle: int,
        signals: list[Signal],
        existing: Corpus | None,
        force_resynthesis: bool,
    ) -> SynthesisResult:
        start = time.monotonic()
        settings = self._settings
        logger.info("Starting synthesis run %s: %d signals, cycle %d", run_id, len(signals), cycle)

        # --- Classify ---
        if self._classifier is not None:
            set_stage_context("classify")
            signals = await classify_pending(
                signals, self._classifier,
                concurrency=settings.classification_concurrency,
                retry_config=self._retry_config,
            )

        # --- Ingest ---
        set_stage_context("ingest")
        store = self._new_store()
        actions: Counter[str] = Counter()
        for signal in signals:
            result = await store.ingest(signal)
            actions[result.action.value] += 1
        merges = await store.consolidate() if settings.consolidate_after_ingest else 0
        new_principles = store.snapshot()
        logger.info(
            "Ingested %d signals into %d principles (%s)",
            len(signals), len(new_principles), dict(actions),
        )

        # --- Promote + tensions on the new hierarchy ---
        axioms, pruned, tensions = await self._promote_and_scan(new_principles, cycle)

        # --- Cycle decision ---
        set_stage_context("cycle")
        decision = await self._cycle_manager.decide(
            existing, new_principles, force_resynthesis=force_resynthesis,
        )
        logger.info("Cycle decision: %s (%s)", decision.mode.value, decision.reason)

        # --- Merge ---
        final_store = store
        if decision.mode == CycleMode.INCREMENTAL and existing is not None:
            set_stage_context("merge")
            final_store = self._new_store(existing.principles)
            absorbed: Counter[str] = Counter()
            for principle in new_principles:
                result = await final_store.absorb(principle)
                absorbed[result.action.value] += 1
            logger.info("Absorbed new principles into corpus: %s", dict(absorbed))
            axioms, pruned, tensions = await self._promote_and_scan(
                final_store.snapshot(), cycle,
            )

        principles = final_store.snapshot()

        # --- Audit ---
        set_stage_context("audit")
        orphans = final_store.orphaned_signals()
        orphan_rate = final_store.orphan_rate()
        if orphan_rate > settings.orphan_warning_rate:
            logger.warning(
                "High orphan rate: %.0f%% of signals sit in principles below "
                "evidence weight %.2f",
                orphan_rate * 100, settings.orphan_min_evidence_weight,
            )
        promotable_count = sum(1 for a in axioms if a.promotable)
        guardrails = check_guardrails(promotable_count, final_store.signal_count)

        if decision.mode == CycleMode.INITIAL or existing is None:
            corpus = create_corpus(principles, axioms, tensions)
        else:
            corpus = update_corpus(existing, principles, axioms, tensions)

        stats: dict[str, Any] = {
            "signals": len(signals),
            "ingest_actions": dict(actions),
            "consolidation_merges": merges,
            "principles": len(principles),
            "axioms": len(axioms),
            "promotable_axioms": promotable_count,
            "pruned_axioms": len(pruned),
            "tensions": len(tensions),
            "orphaned_signals": len(orphans),
            "orphan_rate": round(orphan_rate, 4),
            "duration_s": round(time.monotonic() - start, 3),
        }
        logger.info(
            "Synthesis complete: %d principles, %d axioms (%d promotable), %d tensions",
            len(principles), len(axioms), promotable_count, len(tensions),
        )

        return SynthesisResult(
            run_id=run_id,
            principles=principles,
            axioms=axioms,
            tensions=tensions,
            cycle_decision=decision,
            orphaned_signals=orphans,
            pruned_axioms=pruned,
            guardrails=guardrails.messages,
            corpus=corpus,
            stats=stats,
        )

    def _new_store(self, principles: list[Principle] | None = None) -> PrincipleStore:
        return PrincipleStore(
            self._similarity,
            default_dimension=self._settings.default_dimension,
            orphan_min_evidence_weight=self._settings.orphan_min_evidence_weight,
            principles=principles,
        )

    async def _promote_and_scan(
        self, principles: list[Principle], cycle: int,
    ) -> tuple[list[Axiom], list[Axiom], list[ValueTension]]:
        set_stage_context("promote")
        capped = self._promoter.promote(principles, cycle=cycle)

        set_stage_context("tension")
        tensions = await self._tension_detector.scan(capped.kept)
        return attach_tensions(capped.kept, tensions), capped.pruned, tensions
