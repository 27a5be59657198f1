# tests/unit/core/test_unit_models.py - v1
"""Tests for core/models.py - vocabularies, weights and record invariants."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from distiller.core.models import (
    IMPORTANCE_WEIGHTS,
    Axiom,
    AxiomTier,
    Corpus,
    Importance,
    ProvenanceOrigin,
    Severity,
    Stance,
    ValueTension,
    importance_weight,
    provenance_weight,
)


class TestWeights:
    def test_importance_weights(self):
        assert importance_weight(Importance.CORE) == 1.5
        assert importance_weight(Importance.SUPPORTING) == 1.0
        assert importance_weight("peripheral") == 0.5

    def test_tables_cover_every_member(self):
        assert set(IMPORTANCE_WEIGHTS) == set(Importance)

    def test_provenance_weight(self):
        assert provenance_weight(ProvenanceOrigin.EXTERNAL) > provenance_weight("self")

    def test_unknown_importance_rejected(self):
        with pytest.raises(ValueError):
            importance_weight("crucial")


class TestSignal:
    def test_weighted_confidence(self, make_signal):
        signal = make_signal("s1", "x", confidence=0.8, importance=Importance.CORE)
        assert signal.weighted_confidence == pytest.approx(1.2)

    def test_frozen(self, make_signal):
        signal = make_signal("s1", "x")
        with pytest.raises(ValidationError):
            signal.text = "y"

    def test_confidence_range(self, make_signal):
        with pytest.raises(ValidationError):
            make_signal("s1", "x", confidence=1.2)

    def test_enum_values_from_strings(self):
        from distiller.core.models import Signal

        signal = Signal.model_validate({
            "id": "s1",
            "text": "I question whether I rest enough",
            "confidence": 0.7,
            "stance": "question",
            "importance": "core",
            "source_kind": "user_elicited",
            "provenance_origin": "curated",
        })
        assert signal.stance == Stance.QUESTION
        assert signal.dimension is None


class TestPrinciple:
    def test_derived_properties(self, make_signal, make_principle):
        principle = make_principle("p", [make_signal("a", "x"), make_signal("b", "x")])
        assert principle.n_count == 2
        assert principle.signal_ids == ["a", "b"]

    def test_diversity_serialized_sorted(self, make_signal, make_principle):
        principle = make_principle("p", [
            make_signal("a", "x", provenance=ProvenanceOrigin.SELF),
            make_signal("b", "x", provenance=ProvenanceOrigin.EXTERNAL),
        ])
        assert principle.model_dump(mode="json")["provenance_diversity"] == ["external", "self"]


class TestValueTension:
    def test_requires_canonical_order(self):
        with pytest.raises(ValidationError, match="must be ordered"):
            ValueTension(axiom_a_id="b", axiom_b_id="a", description="d", severity=Severity.LOW)

    def test_self_tension_rejected(self):
        with pytest.raises(ValidationError):
            ValueTension(axiom_a_id="a", axiom_b_id="a", description="d", severity=Severity.LOW)


class TestCorpus:
    def test_promotable_axioms(self):
        def axiom(axiom_id, promotable):
            return Axiom(
                id=axiom_id, identity_key=axiom_id, text=axiom_id, tier=AxiomTier.EMERGING,
                dimension="general", supporting_principle_ids=frozenset({"p"}),
                promotable=promotable,
            )

        corpus = Corpus(id="c", axioms=[axiom("a", True), axiom("b", False)])
        assert [a.id for a in corpus.promotable_axioms] == ["a"]
        assert corpus.cycle_count == 1
