# src/tension/tension_detector.py - v1
"""Tension detector: pairwise conflict scan across promotable axioms.

Every unordered pair is put in canonical order (lower id first) before the
conflict oracle sees it, so scanning [A, B] and [B, A] asks the same
question and stores the same record. Severity:
  - high:   both axioms share a dimension
  - medium: both axioms are core tier
  - low:    otherwise

The scan is O(n²) in the promotable count and is skipped, with a warning,
above ``max_axioms``.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, field

from distiller.core.models import Axiom, AxiomTier, Severity, ValueTension
from distiller.similarity.conflict_oracle import ConflictOracle

logger = logging.getLogger(__name__)

DEFAULT_MAX_AXIOMS = 25
DEFAULT_CONCURRENCY = 5


@dataclass
class TensionReport:
    """Tensions found plus scan statistics."""

    tensions: list[ValueTension] = field(default_factory=list)
    stats: dict[str, int] = field(default_factory=dict)
    skipped: bool = False


def determine_severity(axiom_a: Axiom, axiom_b: Axiom) -> Severity:
    if axiom_a.dimension == axiom_b.dimension:
        return Severity.HIGH
    if axiom_a.tier == AxiomTier.CORE and axiom_b.tier == AxiomTier.CORE:
        return Severity.MEDIUM
    return Severity.LOW


async def detect_tensions(
    axioms: list[Axiom],
    oracle: ConflictOracle,
    concurrency: int = DEFAULT_CONCURRENCY,
    max_axioms: int = DEFAULT_MAX_AXIOMS,
) -> TensionReport:
    """Scan every unordered pair of promotable axioms for conflicts.

    Args:
        axioms: Axioms from the promoter; non-promotable ones are ignored.
        oracle: Conflict judge.
        concurrency: Max pair checks in flight.
        max_axioms: Skip the scan above this many promotable axioms.

    Returns:
        TensionReport with tensions sorted by (axiom_a_id, axiom_b_id).

    Raises:
        FatalRunError: If the oracle keeps failing.
    """
    promotable: dict[str, Axiom] = {a.id: a for a in axioms if a.promotable}
    ordered = [promotable[i] for i in sorted(promotable)]

    if len(ordered) > max_axioms:
        logger.warning(
            "Skipping tension detection: %d promotable axioms exceeds limit of %d",
            len(ordered), max_axioms,
        )
        return TensionReport(
            stats={"axioms": len(ordered), "pairs": 0, "tensions": 0}, skipped=True,
        )

    pairs = list(itertools.combinations(ordered, 2))
    if not pairs:
        return TensionReport(stats={"axioms": len(ordered), "pairs": 0, "tensions": 0})

    logger.info("Checking %d axiom pairs for tensions", len(pairs))
    semaphore = asyncio.Semaphore(concurrency)

    async def _check(a: Axiom, b: Axiom) -> ValueTension | None:
        async with semaphore:
            description = await oracle.check(a.text, b.text)
        if description is None:
            return None
        return ValueTension(
            axiom_a_id=a.id,
            axiom_b_id=b.id,
            description=description,
            severity=determine_severity(a, b),
        )

    results = await asyncio.gather(*(_check(a, b) for a, b in pairs))
    tensions = [t for t in results if t is not None]

    stats = {
        "axioms": len(ordered),
        "pairs": len(pairs),
        "tensions": len(tensions),
        "high_severity": sum(1 for t in tensions if t.severity == Severity.HIGH),
        "medium_severity": sum(1 for t in tensions if t.severity == Severity.MEDIUM),
    }
    if tensions:
        logger.info(
            "Detected %d tensions (%d high, %d medium)",
            len(tensions), stats["high_severity"], stats["medium_severity"],
        )
    return TensionReport(tensions=tensions, stats=stats)


def attach_tensions(axioms: list[Axiom], tensions: list[ValueTension]) -> list[Axiom]:
    """Return axioms with their ``tensions`` id sets filled from both sides.

    Existing tension ids are kept; input axioms are not modified.
    """
    partners: dict[str, set[str]] = {}
    for t in tensions:
        partners.setdefault(t.axiom_a_id, set()).add(t.axiom_b_id)
        partners.setdefault(t.axiom_b_id, set()).add(t.axiom_a_id)

    return [
        a.model_copy(update={"tensions": a.tensions | partners[a.id]})
        if a.id in partners else a
        for a in axioms
    ]


class TensionDetector:
    """Binds a conflict oracle and scan limits for repeated scans."""

    def __init__(
        self,
        oracle: ConflictOracle,
        concurrency: int = DEFAULT_CONCURRENCY,
        max_axioms: int = DEFAULT_MAX_AXIOMS,
    ) -> None:
        self._oracle = oracle
        self._concurrency = concurrency
        self._max_axioms = max_axioms

    async def scan(self, axioms: list[Axiom]) -> list[ValueTension]:
        report = await detect_tensions(
            axioms, self._oracle,
            concurrency=self._concurrency, max_axioms=self._max_axioms,
        )
        return report.tensions
