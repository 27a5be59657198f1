# src/store/principle_store.py - v2
"""Principle store: clusters signals into principles.

Each signal is matched against the representative texts of the existing
principles through a SimilarityOracle. A match reinforces that principle;
no match creates a new one. Evidence weight only ever grows:

    evidence_weight += signal.confidence × importance_weight(signal.importance)

with importance weights {core: 1.5, supporting: 1.0, peripheral: 0.5}.
The representative text is the member with the highest individual
confidence × importance weight, ties going to the earliest ``created_at``
and then to insertion order.

Matching-then-inserting is a read-then-write on shared cluster state, so
every mutating operation runs inside one asyncio.Lock. This store is the
only writer of Principle records; readers get deep copies.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable

from distiller.core.models import (
    Centrality,
    Importance,
    IngestAction,
    Principle,
    PrincipleEvent,
    Signal,
)
from distiller.similarity.base_oracle import SimilarityOracle

logger = logging.getLogger(__name__)

DEFINING_CORE_SHARE = 0.5
SIGNIFICANT_CORE_SHARE = 0.2


@dataclass(frozen=True)
class IngestResult:
    """Outcome of placing one signal (or one foreign principle) in the store."""

    action: IngestAction
    principle_id: str
    confidence: float


def generate_principle_id() -> str:
    return f"pri_{uuid.uuid4().hex[:12]}"


def choose_representative(signals: list[Signal]) -> Signal:
    """Member with the highest confidence × importance weight.

    Ties go to the earliest ``created_at``, then to the earliest position.
    """
    if not signals:
        raise ValueError("cannot choose a representative from no signals")
    best = signals[0]
    for signal in signals[1:]:
        weight, best_weight = signal.weighted_confidence, best.weighted_confidence
        if weight > best_weight or (
            weight == best_weight and signal.created_at < best.created_at
        ):
            best = signal
    return best


def determine_centrality(signals: list[Signal]) -> Centrality:
    """Classify by the share of core-importance signals."""
    if not signals:
        return Centrality.CONTEXTUAL
    core_share = sum(1 for s in signals if s.importance == Importance.CORE) / len(signals)
    if core_share >= DEFINING_CORE_SHARE:
        return Centrality.DEFINING
    if core_share >= SIGNIFICANT_CORE_SHARE:
        return Centrality.SIGNIFICANT
    return Centrality.CONTEXTUAL


class PrincipleStore:
    """Single-writer clustering engine over a SimilarityOracle.

    Args:
        oracle: Equivalence judge; its threshold decides what reinforces.
        default_dimension: Dimension for principles founded by an
            unclassified signal.
        orphan_min_evidence_weight: Principles below this weight are
            reported by ``orphaned_signals``.
        principles: Optional seed, e.g. the persisted corpus baseline.
        id_factory: Principle id generator.
    """

    def __init__(
        self,
        oracle: SimilarityOracle,
        default_dimension: str = "general",
        orphan_min_evidence_weight: float = 1.0,
        principles: Iterable[Principle] | None = None,
        id_factory: Callable[[], str] = generate_principle_id,
    ) -> None:
        self._oracle = oracle
        self._default_dimension = default_dimension
        self._orphan_min_evidence_weight = orphan_min_evidence_weight
        self._id_factory = id_factory
        self._principles: dict[str, Principle] = {}
        self._signal_index: dict[str, str] = {}
        self._lock = asyncio.Lock()

        for principle in principles or ():
            self._insert(principle.model_copy(deep=True))

    # --- Read side ---

    def __len__(self) -> int:
        return len(self._principles)

    @property
    def signal_count(self) -> int:
        return len(self._signal_index)

    def get(self, principle_id: str) -> Principle:
        """Copy of one principle. Raises KeyError if unknown."""
        return self._principles[principle_id].model_copy(deep=True)

    def principle_for_signal(self, signal_id: str) -> str | None:
        return self._signal_index.get(signal_id)

    def principles(self) -> list[Principle]:
        """Deep copies of all principles, in creation order."""
        return [p.model_copy(deep=True) for p in self._principles.values()]

    snapshot = principles

    def principles_above_n(self, n: int) -> list[Principle]:
        """Copies of principles supported by at least ``n`` signals."""
        return [p.model_copy(deep=True) for p in self._principles.values() if p.n_count >= n]

    def orphaned_signals(self, min_evidence_weight: float | None = None) -> list[Signal]:
        """Signals in principles whose evidence sits below the minimum."""
        floor = (
            self._orphan_min_evidence_weight
            if min_evidence_weight is None
            else min_evidence_weight
        )
        return [
            signal
            for p in self._principles.values()
            if p.evidence_weight < floor
            for signal in p.signals
        ]

    def orphan_rate(self, min_evidence_weight: float | None = None) -> float:
        if not self._signal_index:
            return 0.0
        return len(self.orphaned_signals(min_evidence_weight)) / len(self._signal_index)

    # --- Write side ---

    async def ingest(self, signal: Signal) -> IngestResult:
        """Attach a signal to its best-matching principle or found a new one.

        Re-ingesting a signal id already in the store changes nothing and
        reports its principle as reinforced. When reinforcement changes the
        representative text and the new text matches another principle,
        the two are merged and ``merged`` is reported.

        Raises:
            FatalRunError: If the similarity backend keeps failing.
        """
        async with self._lock:
            known = self._signal_index.get(signal.id)
            if known is not None:
                logger.debug("Signal %s already in principle %s", signal.id, known)
                return IngestResult(IngestAction.REINFORCED, known, 1.0)

            # Bootstrap: nothing to match against.
            if not self._principles:
                principle = self._create(signal, "Founded the store")
                return IngestResult(IngestAction.CREATED, principle.id, 1.0)

            candidates = list(self._principles.values())
            match = await self._oracle.best_match(
                signal.text, [p.representative_text for p in candidates]
            )

            if not match.matched:
                logger.debug(
                    "NO_MATCH signal=%s best=%.3f threshold=%.2f",
                    signal.id, match.confidence, self._oracle.threshold,
                )
                principle = self._create(
                    signal, f"Best equivalent match was {match.confidence:.3f}"
                )
                return IngestResult(IngestAction.CREATED, principle.id, match.confidence)

            target = candidates[match.index]
            previous_text = target.representative_text
            self._reinforce(target, signal, match.confidence)
            logger.debug(
                "MATCH signal=%s principle=%s confidence=%.3f",
                signal.id, target.id, match.confidence,
            )

            if target.representative_text != previous_text:
                merged_into = await self._merge_if_equivalent(target)
                if merged_into is not None:
                    return IngestResult(IngestAction.MERGED, merged_into, match.confidence)

            return IngestResult(IngestAction.REINFORCED, target.id, match.confidence)

    async def merge(self, principle_a_id: str, principle_b_id: str) -> Principle:
        """Merge principle b into principle a and return a copy of the result.

        The survivor keeps a's id and holds the union of both signal lists
        (a's first), the summed evidence weight (a shared signal counts
        once) and a representative re-chosen over the union.
        """
        async with self._lock:
            return self._merge_locked(principle_a_id, principle_b_id).model_copy(deep=True)

    async def consolidate(self) -> int:
        """Merge principles whose representative texts are now equivalent.

        Each principle is compared with the principles created after it;
        after a merge the survivor is compared again, since its
        representative text may have changed. Returns the number of merges.
        """
        async with self._lock:
            merges = 0
            for principle_id in list(self._principles):
                while principle_id in self._principles:
                    ids = list(self._principles)
                    later = [self._principles[i] for i in ids[ids.index(principle_id) + 1:]]
                    if not later:
                        break
                    survivor = self._principles[principle_id]
                    match = await self._oracle.best_match(
                        survivor.representative_text,
                        [p.representative_text for p in later],
                    )
                    if not match.matched:
                        break
                    self._merge_locked(principle_id, later[match.index].id)
                    merges += 1
            if merges:
                logger.info("Consolidation merged %d principles (%d remain)", merges, len(self))
            return merges

    async def absorb(self, principle: Principle) -> IngestResult:
        """Fold a principle distilled elsewhere into this store.

        An equivalent principle here receives its not-yet-known signals
        (``merged``); otherwise it is added as-is (``created``).
        """
        async with self._lock:
            incoming = principle.model_copy(deep=True)
            fresh = [s for s in incoming.signals if s.id not in self._signal_index]
            if not fresh:
                owner = self._signal_index.get(incoming.founding_signal_id) or next(
                    self._signal_index[s.id] for s in incoming.signals
                )
                return IngestResult(IngestAction.REINFORCED, owner, 1.0)

            candidates = list(self._principles.values())
            match = await self._oracle.best_match(
                incoming.representative_text, [p.representative_text for p in candidates]
            )
            if match.matched:
                target = candidates[match.index]
                # Signals owned by other principles here stay with their owners.
                self._rebuild(incoming, fresh)
                self._fold(target, incoming, f"Absorbed principle {incoming.id}")
                return IngestResult(IngestAction.MERGED, target.id, match.confidence)

            if incoming.id in self._principles:
                incoming.id = self._id_factory()
            self._rebuild(incoming, fresh)
            incoming.history.append(PrincipleEvent(
                action=IngestAction.CREATED, details=f"Absorbed from principle {principle.id}",
            ))
            self._insert(incoming)
            return IngestResult(IngestAction.CREATED, incoming.id, match.confidence)

    # --- Internals (caller holds the lock) ---

    def _insert(self, principle: Principle) -> None:
        self._principles[principle.id] = principle
        for signal in principle.signals:
            self._signal_index[signal.id] = principle.id

    def _create(self, signal: Signal, details: str) -> Principle:
        now = datetime.now(timezone.utc)
        principle = Principle(
            id=self._id_factory(),
            representative_text=signal.text,
            signals=[signal],
            evidence_weight=signal.weighted_confidence,
            dimension=signal.dimension or self._default_dimension,
            provenance_diversity={signal.provenance_origin},
            founding_signal_id=signal.id,
            centrality=determine_centrality([signal]),
            history=[PrincipleEvent(
                action=IngestAction.CREATED, timestamp=now, signal_id=signal.id,
                details=details,
            )],
            created_at=now,
            updated_at=now,
        )
        self._insert(principle)
        return principle

    def _reinforce(self, principle: Principle, signal: Signal, confidence: float) -> None:
        principle.signals.append(signal)
        principle.evidence_weight += signal.weighted_confidence
        principle.provenance_diversity.add(signal.provenance_origin)
        principle.representative_text = choose_representative(principle.signals).text
        principle.centrality = determine_centrality(principle.signals)
        principle.updated_at = datetime.now(timezone.utc)
        principle.history.append(PrincipleEvent(
            action=IngestAction.REINFORCED, signal_id=signal.id,
            details=f"Reinforced by signal {signal.id} (confidence: {confidence:.3f})",
        ))
        self._signal_index[signal.id] = principle.id

    def _fold(self, target: Principle, source: Principle, details: str) -> None:
        """Move the source's signals into target; shared signal ids count once."""
        known = set(target.signal_ids)
        incoming = [s for s in source.signals if s.id not in known]

        if source.evidence_weight > target.evidence_weight:
            target.dimension = source.dimension
        target.signals.extend(incoming)
        target.evidence_weight += sum(s.weighted_confidence for s in incoming)
        target.provenance_diversity |= {s.provenance_origin for s in incoming}
        target.representative_text = choose_representative(target.signals).text
        target.centrality = determine_centrality(target.signals)
        target.updated_at = datetime.now(timezone.utc)
        target.history.append(PrincipleEvent(action=IngestAction.MERGED, details=details))
        for signal in incoming:
            self._signal_index[signal.id] = target.id

    def _merge_locked(self, principle_a_id: str, principle_b_id: str) -> Principle:
        if principle_a_id == principle_b_id:
            raise ValueError(f"cannot merge principle {principle_a_id} with itself")
        target = self._principles[principle_a_id]
        source = self._principles.pop(principle_b_id)
        self._fold(
            target, source,
            f"Merged principle {source.id} ({source.n_count} signals)",
        )
        logger.debug("Merged %s into %s", source.id, target.id)
        return target

    async def _merge_if_equivalent(self, principle: Principle) -> str | None:
        others = [p for p in self._principles.values() if p.id != principle.id]
        if not others:
            return None
        match = await self._oracle.best_match(
            principle.representative_text, [p.representative_text for p in others]
        )
        if not match.matched:
            return None
        self._merge_locked(principle.id, others[match.index].id)
        return principle.id

    @staticmethod
    def _rebuild(principle: Principle, signals: list[Signal]) -> None:
        """Recompute derived fields of a principle restricted to ``signals``."""
        principle.signals = list(signals)
        principle.evidence_weight = sum(s.weighted_confidence for s in signals)
        principle.provenance_diversity = {s.provenance_origin for s in signals}
        principle.representative_text = choose_representative(signals).text
        principle.centrality = determine_centrality(signals)
        if principle.founding_signal_id not in {s.id for s in signals}:
            principle.founding_signal_id = signals[0].id
