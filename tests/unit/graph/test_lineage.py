# tests/unit/graph/test_lineage.py - v1
"""Tests for graph/lineage.py - provenance tracing and tension clusters."""

from __future__ import annotations

import pytest

from distiller.core.models import Axiom, AxiomTier, Severity, ValueTension
from distiller.graph.lineage import (
    build_lineage_graph,
    build_tension_graph,
    tension_clusters,
    trace_to_source,
)


def _axiom(axiom_id, principle_ids):
    return Axiom(
        id=axiom_id,
        identity_key=axiom_id,
        text=axiom_id,
        tier=AxiomTier.DOMAIN,
        dimension="general",
        supporting_principle_ids=frozenset(principle_ids),
        promotable=True,
    )


@pytest.fixture
def principles(make_signal, make_principle):
    return [
        make_principle("pri_1", [
            make_signal("s1", "I value honesty", source="journal/a.md"),
            make_signal("s2", "I value honesty", source="journal/b.md"),
        ]),
        make_principle("pri_2", [make_signal("s3", "I rest on Sundays", source="journal/a.md")]),
    ]


class TestLineageGraph:
    def test_nodes_and_edges(self, principles):
        graph = build_lineage_graph(principles, [_axiom("ax_1", {"pri_1"})])

        assert graph.nodes["axiom:ax_1"]["kind"] == "axiom"
        assert graph.nodes["signal:s3"]["kind"] == "signal"
        assert graph.has_edge("axiom:ax_1", "principle:pri_1")
        assert graph.has_edge("principle:pri_1", "signal:s2")
        assert not graph.has_edge("axiom:ax_1", "principle:pri_2")

    def test_unknown_principle_is_skipped(self, principles, caplog):
        graph = build_lineage_graph(principles, [_axiom("ax_1", {"pri_1", "pri_missing"})])
        assert "principle:pri_missing" not in graph
        assert "unknown principle" in caplog.text

    def test_trace_to_source(self, principles):
        graph = build_lineage_graph(principles, [_axiom("ax_1", {"pri_1", "pri_2"})])

        chain = trace_to_source(graph, "ax_1")

        assert chain.axiom.id == "ax_1"
        assert [p.id for p in chain.principles] == ["pri_1", "pri_2"]
        assert sorted(s.id for s in chain.signals) == ["s1", "s2", "s3"]
        assert sorted(chain.sources) == ["journal/a.md", "journal/b.md"]

    def test_trace_unknown_axiom(self, principles):
        graph = build_lineage_graph(principles, [])
        with pytest.raises(KeyError):
            trace_to_source(graph, "ax_nope")


class TestTensionGraph:
    def test_clusters_largest_first(self):
        axioms = [_axiom(f"ax_{i}", {"p"}) for i in range(6)]
        tensions = [
            ValueTension(axiom_a_id="ax_0", axiom_b_id="ax_1", description="d", severity=Severity.LOW),
            ValueTension(axiom_a_id="ax_3", axiom_b_id="ax_4", description="d", severity=Severity.HIGH),
            ValueTension(axiom_a_id="ax_4", axiom_b_id="ax_5", description="d", severity=Severity.LOW),
        ]
        graph = build_tension_graph(axioms, tensions)

        assert graph.edges["ax_3", "ax_4"]["severity"] == "high"
        assert tension_clusters(graph) == [{"ax_3", "ax_4", "ax_5"}, {"ax_0", "ax_1"}]
