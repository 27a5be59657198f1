# src/core/models.py - v1
"""Shared Pydantic domain models used across modules.

No module redefines these types; all imports come from core.models.
Links between records (axiom to principles, axiom to axiom via tensions)
are stored as id sets, never as object references.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# === CLOSED VOCABULARIES ===


class Stance(str, Enum):
    ASSERT = "assert"
    DENY = "deny"
    QUESTION = "question"
    QUALIFY = "qualify"


class Importance(str, Enum):
    CORE = "core"
    SUPPORTING = "supporting"
    PERIPHERAL = "peripheral"


class SourceKind(str, Enum):
    AGENT_INITIATED = "agent_initiated"
    USER_ELICITED = "user_elicited"
    CONTEXT_DEPENDENT = "context_dependent"
    CONSISTENT_ACROSS_CONTEXT = "consistent_across_context"


class ProvenanceOrigin(str, Enum):
    SELF = "self"
    CURATED = "curated"
    EXTERNAL = "external"


class AxiomTier(str, Enum):
    CORE = "core"
    DOMAIN = "domain"
    EMERGING = "emerging"


class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class CycleMode(str, Enum):
    INITIAL = "initial"
    INCREMENTAL = "incremental"
    FULL_RESYNTHESIS = "full_resynthesis"


class IngestAction(str, Enum):
    CREATED = "created"
    REINFORCED = "reinforced"
    MERGED = "merged"


class Centrality(str, Enum):
    """How much of a principle's evidence is core-importance."""

    DEFINING = "defining"
    SIGNIFICANT = "significant"
    CONTEXTUAL = "contextual"


# === WEIGHT TABLES ===

IMPORTANCE_WEIGHTS: dict[Importance, float] = {
    Importance.CORE: 1.5,
    Importance.SUPPORTING: 1.0,
    Importance.PERIPHERAL: 0.5,
}

# Reported in audit output only; promotion never reads it.
PROVENANCE_WEIGHTS: dict[ProvenanceOrigin, float] = {
    ProvenanceOrigin.EXTERNAL: 2.0,
    ProvenanceOrigin.CURATED: 1.0,
    ProvenanceOrigin.SELF: 0.5,
}

TIER_RANK: dict[AxiomTier, int] = {
    AxiomTier.CORE: 0,
    AxiomTier.DOMAIN: 1,
    AxiomTier.EMERGING: 2,
}

CONTESTING_STANCES: frozenset[Stance] = frozenset({Stance.QUESTION, Stance.DENY})


def _check_exhaustive(enum_cls: type[Enum], table: dict[Any, Any]) -> None:
    missing = set(enum_cls) - set(table)
    if missing:
        names = ", ".join(sorted(m.value for m in missing))
        raise TypeError(f"{enum_cls.__name__} lookup table is missing: {names}")


_check_exhaustive(Importance, IMPORTANCE_WEIGHTS)
_check_exhaustive(ProvenanceOrigin, PROVENANCE_WEIGHTS)
_check_exhaustive(AxiomTier, TIER_RANK)


def importance_weight(importance: Importance) -> float:
    """Weight applied to a signal's confidence when accumulating evidence."""
    return IMPORTANCE_WEIGHTS[Importance(importance)]


def provenance_weight(origin: ProvenanceOrigin) -> float:
    return PROVENANCE_WEIGHTS[ProvenanceOrigin(origin)]


# === SIGNALS ===


class Signal(BaseModel):
    """Atomic behavioral statement extracted upstream. Immutable."""

    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    confidence: float = Field(ge=0.0, le=1.0)
    stance: Stance
    importance: Importance
    source_kind: SourceKind
    provenance_origin: ProvenanceOrigin
    created_at: datetime = Field(default_factory=_utcnow)
    dimension: str | None = None
    source: str | None = None

    @property
    def weighted_confidence(self) -> float:
        """confidence × importance weight, the unit of evidence."""
        return self.confidence * importance_weight(self.importance)


class SignalClassification(BaseModel):
    """Metadata supplied by an external classifier; None leaves a field as-is."""

    dimension: str | None = None
    stance: Stance | None = None
    importance: Importance | None = None
    source_kind: SourceKind | None = None


# === PRINCIPLES ===


class PrincipleEvent(BaseModel):
    """One entry of a principle's audit history."""

    action: IngestAction
    timestamp: datetime = Field(default_factory=_utcnow)
    signal_id: str | None = None
    details: str = ""


class Principle(BaseModel):
    """Cluster of semantically equivalent signals.

    Only PrincipleStore mutates these records; every other stage works
    on snapshots.
    """

    id: str
    representative_text: str
    signals: list[Signal] = Field(default_factory=list)
    evidence_weight: float = 0.0
    dimension: str
    provenance_diversity: set[ProvenanceOrigin] = Field(default_factory=set)
    founding_signal_id: str
    centrality: Centrality = Centrality.CONTEXTUAL
    history: list[PrincipleEvent] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def n_count(self) -> int:
        return len(self.signals)

    @property
    def signal_ids(self) -> list[str]:
        return [s.id for s in self.signals]

    @field_serializer("provenance_diversity")
    def _serialize_diversity(self, value: set[ProvenanceOrigin]) -> list[str]:
        return sorted(ProvenanceOrigin(v).value for v in value)


# === AXIOMS ===


class Axiom(BaseModel):
    """Promoted canonical identity statement. Immutable for the run."""

    model_config = ConfigDict(frozen=True)

    id: str
    identity_key: str
    text: str
    tier: AxiomTier
    dimension: str
    supporting_principle_ids: frozenset[str]
    promotable: bool
    promotion_blocker: str | None = None
    tensions: frozenset[str] = frozenset()
    evidence_weight: float = 0.0
    n_count: int = 0
    provenance_diversity: int = 0
    cycle: int = 1

    @field_serializer("supporting_principle_ids", "tensions")
    def _serialize_id_set(self, value: frozenset[str]) -> list[str]:
        return sorted(value)


class ValueTension(BaseModel):
    """Conflict between two axioms, stored with axiom_a_id < axiom_b_id."""

    model_config = ConfigDict(frozen=True)

    axiom_a_id: str
    axiom_b_id: str
    description: str
    severity: Severity

    @model_validator(mode="after")
    def _check_canonical_order(self) -> ValueTension:
        if not self.axiom_a_id < self.axiom_b_id:
            raise ValueError(
                f"tension pair must be ordered: {self.axiom_a_id!r} < {self.axiom_b_id!r}"
            )
        return self

    @property
    def pair(self) -> tuple[str, str]:
        return (self.axiom_a_id, self.axiom_b_id)


# === PROMOTION / CYCLE CONFIGURATION ===


class PromotionCriteria(BaseModel):
    """Thresholds for axiom promotion and tier assignment."""

    model_config = ConfigDict(frozen=True)

    min_principle_count: int = 3
    min_provenance_diversity: int = 2
    require_external_or_questioning: bool = True
    core_dimensions: frozenset[str] = frozenset({"identity", "boundaries"})
    core_evidence_threshold: float = 6.0
    domain_evidence_threshold: float = 3.0


class CycleThresholds(BaseModel):
    """Triggers that push a run from incremental to full resynthesis."""

    model_config = ConfigDict(frozen=True)

    new_principle_ratio: float = 0.3
    contradiction_count: int = 2
    novelty_similarity: float = 0.85
    hierarchy_changed: bool = False


class CycleDecision(BaseModel):
    """Outcome of comparing a candidate corpus against the persisted one."""

    model_config = ConfigDict(frozen=True)

    mode: CycleMode
    reason: str
    triggers: tuple[str, ...] = ()


# === CORPUS / RESULT ===


class Corpus(BaseModel):
    """Persisted snapshot carried between runs."""

    id: str
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    cycle_count: int = 1
    principles: list[Principle] = Field(default_factory=list)
    axioms: list[Axiom] = Field(default_factory=list)
    tensions: list[ValueTension] = Field(default_factory=list)

    @property
    def promotable_axioms(self) -> list[Axiom]:
        return [a for a in self.axioms if a.promotable]


class SynthesisResult(BaseModel):
    """Everything one run produces, for rendering and audit downstream."""

    run_id: str
    principles: list[Principle]
    axioms: list[Axiom]
    tensions: list[ValueTension]
    cycle_decision: CycleDecision
    orphaned_signals: list[Signal]
    pruned_axioms: list[Axiom] = Field(default_factory=list)
    guardrails: list[str] = Field(default_factory=list)
    corpus: Corpus
    stats: dict[str, Any] = Field(default_factory=dict)
