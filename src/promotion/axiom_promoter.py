# src/promotion/axiom_promoter.py - v1
"""Axiom promoter: turn well-evidenced principles into axioms.

For every principle with at least ``criteria.min_principle_count`` signals
an Axiom is emitted, promotable or not. Checks run in order and the first
failure becomes the blocker:

  1. provenance diversity: distinct provenance origins must reach
     ``criteria.min_provenance_diversity``.
  2. anti-echo-chamber: at least one signal must be EXTERNAL or take a
     QUESTION/DENY stance. Self-authored and curated evidence that nobody
     challenged cannot validate an identity claim on its own.

Pure function of its inputs: principles are processed in id order and axiom
ids derive from a hash of the principle lineage, so the same principle set
and criteria always yield the same axioms. No oracle is consulted here.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field

from distiller.core.models import (
    CONTESTING_STANCES,
    TIER_RANK,
    Axiom,
    AxiomTier,
    Principle,
    PromotionCriteria,
    ProvenanceOrigin,
)

logger = logging.getLogger(__name__)

BLOCKER_DIVERSITY = "insufficient provenance diversity"
BLOCKER_ECHO_CHAMBER = "requires EXTERNAL provenance OR QUESTIONING/DENYING stance"

DEFAULT_COGNITIVE_LOAD_CAP = 25


@dataclass(frozen=True)
class PromotionCheck:
    """Result of evaluating one principle against the criteria."""

    promotable: bool
    blocker: str | None
    diversity: int


@dataclass
class CapResult:
    """Axioms kept under the cognitive-load cap, and the ones pruned."""

    kept: list[Axiom] = field(default_factory=list)
    pruned: list[Axiom] = field(default_factory=list)


def provenance_diversity(principle: Principle) -> set[ProvenanceOrigin]:
    """Distinct provenance origins across the principle's signals."""
    return {s.provenance_origin for s in principle.signals}


def can_promote(principle: Principle, criteria: PromotionCriteria) -> PromotionCheck:
    """Evaluate the promotion rules for one principle."""
    diversity = len(provenance_diversity(principle))

    if principle.n_count < criteria.min_principle_count:
        return PromotionCheck(
            promotable=False,
            blocker=(
                f"insufficient evidence: {principle.n_count}/"
                f"{criteria.min_principle_count} supporting signals"
            ),
            diversity=diversity,
        )

    if diversity < criteria.min_provenance_diversity:
        return PromotionCheck(promotable=False, blocker=BLOCKER_DIVERSITY, diversity=diversity)

    if criteria.require_external_or_questioning:
        has_external = any(
            s.provenance_origin == ProvenanceOrigin.EXTERNAL for s in principle.signals
        )
        has_contest = any(s.stance in CONTESTING_STANCES for s in principle.signals)
        if not has_external and not has_contest:
            return PromotionCheck(
                promotable=False, blocker=BLOCKER_ECHO_CHAMBER, diversity=diversity,
            )

    return PromotionCheck(promotable=True, blocker=None, diversity=diversity)


def determine_tier(principle: Principle, criteria: PromotionCriteria) -> AxiomTier:
    """core: identity/boundary dimension above the high-water mark;
    domain: evidence at or above the domain threshold; else emerging."""
    weight = principle.evidence_weight
    if (
        principle.dimension in criteria.core_dimensions
        and weight > criteria.core_evidence_threshold
    ):
        return AxiomTier.CORE
    if weight >= criteria.domain_evidence_threshold:
        return AxiomTier.DOMAIN
    return AxiomTier.EMERGING


def identity_key(principles: list[Principle]) -> str:
    """Stable lineage key: hash of the supporting principles' founding signals."""
    founding = sorted(p.founding_signal_id for p in principles)
    return hashlib.sha256("|".join(founding).encode("utf-8")).hexdigest()[:16]


def axiom_id(key: str, cycle: int) -> str:
    return f"ax_{key}_c{cycle}"


def promote(
    principles: list[Principle],
    criteria: PromotionCriteria | None = None,
    cycle: int = 1,
) -> list[Axiom]:
    """Emit one Axiom per principle that reaches the minimum signal count.

    Args:
        principles: Principle snapshot, normally from PrincipleStore.snapshot().
        criteria: Promotion thresholds (defaults when None).
        cycle: Cycle number; embedded in axiom ids so a later cycle produces
            new records with the same ``identity_key``.

    Returns:
        Axioms in principle-id order, including non-promotable ones with
        their blocker.
    """
    criteria = criteria or PromotionCriteria()
    axioms: list[Axiom] = []

    for principle in sorted(principles, key=lambda p: p.id):
        if principle.n_count < criteria.min_principle_count:
            continue
        check = can_promote(principle, criteria)
        key = identity_key([principle])
        axioms.append(Axiom(
            id=axiom_id(key, cycle),
            identity_key=key,
            text=principle.representative_text,
            tier=determine_tier(principle, criteria),
            dimension=principle.dimension,
            supporting_principle_ids=frozenset({principle.id}),
            promotable=check.promotable,
            promotion_blocker=check.blocker,
            evidence_weight=principle.evidence_weight,
            n_count=principle.n_count,
            provenance_diversity=check.diversity,
            cycle=cycle,
        ))

    promotable = sum(1 for a in axioms if a.promotable)
    logger.info(
        "Promotion: %d candidates from %d principles, %d promotable",
        len(axioms), len(principles), promotable,
    )
    return axioms


def _cap_order(axiom: Axiom) -> tuple[int, int, float, str]:
    return (-axiom.n_count, TIER_RANK[axiom.tier], -axiom.evidence_weight, axiom.id)


def apply_cognitive_load_cap(
    axioms: list[Axiom], cap: int = DEFAULT_COGNITIVE_LOAD_CAP
) -> CapResult:
    """Keep at most ``cap`` promotable axioms.

    Ranking: n_count desc, then tier (core, domain, emerging), then evidence
    weight desc, then id. Non-promotable axioms are never pruned; they stay
    visible with their blockers.
    """
    promotable = sorted((a for a in axioms if a.promotable), key=_cap_order)
    if len(promotable) <= cap:
        return CapResult(kept=list(axioms), pruned=[])

    pruned_ids = {a.id for a in promotable[cap:]}
    result = CapResult(
        kept=[a for a in axioms if a.id not in pruned_ids],
        pruned=[a for a in promotable if a.id in pruned_ids],
    )
    logger.info(
        "Pruned %d axioms to meet cognitive load cap (%d)", len(result.pruned), cap,
    )
    return result


class AxiomPromoter:
    """Binds criteria and the cognitive-load cap for repeated promotions."""

    def __init__(
        self,
        criteria: PromotionCriteria | None = None,
        cap: int = DEFAULT_COGNITIVE_LOAD_CAP,
    ) -> None:
        self.criteria = criteria or PromotionCriteria()
        self._cap = cap

    def promote(self, principles: list[Principle], cycle: int = 1) -> CapResult:
        """Promote a principle snapshot and prune to the cap."""
        return apply_cognitive_load_cap(
            promote(principles, self.criteria, cycle=cycle), cap=self._cap,
        )
