# src/graph/lineage.py - v1
"""Lineage graph: axiom -> principle -> signal, plus the tension graph.

Records keep their links as id sets; this module turns them into NetworkX
graphs for audit traversal. Node keys are prefixed by kind
("axiom:", "principle:", "signal:") so ids from different arenas never
collide.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import networkx as nx

from distiller.core.models import Axiom, Principle, Signal, ValueTension

logger = logging.getLogger(__name__)


def _key(kind: str, record_id: str) -> str:
    return f"{kind}:{record_id}"


@dataclass
class ProvenanceChain:
    """Everything an axiom rests on."""

    axiom: Axiom
    principles: list[Principle] = field(default_factory=list)
    signals: list[Signal] = field(default_factory=list)

    @property
    def sources(self) -> list[str]:
        """Distinct signal source references, in first-seen order."""
        return list(dict.fromkeys(s.source for s in self.signals if s.source))


def build_lineage_graph(principles: list[Principle], axioms: list[Axiom]) -> nx.DiGraph:
    """Directed graph with edges axiom -> principle -> signal.

    Node attribute ``record`` holds the model itself; ``kind`` holds the
    arena name. Axioms citing an unknown principle id are logged and the
    dangling link is skipped.
    """
    graph = nx.DiGraph()

    for principle in principles:
        p_key = _key("principle", principle.id)
        graph.add_node(p_key, kind="principle", record=principle)
        for signal in principle.signals:
            s_key = _key("signal", signal.id)
            graph.add_node(s_key, kind="signal", record=signal)
            graph.add_edge(p_key, s_key, relation="derived_from")

    for axiom in axioms:
        a_key = _key("axiom", axiom.id)
        graph.add_node(a_key, kind="axiom", record=axiom)
        for principle_id in sorted(axiom.supporting_principle_ids):
            p_key = _key("principle", principle_id)
            if p_key not in graph:
                logger.warning("Axiom %s cites unknown principle %s", axiom.id, principle_id)
                continue
            graph.add_edge(a_key, p_key, relation="supported_by")

    return graph


def trace_to_source(graph: nx.DiGraph, axiom_id: str) -> ProvenanceChain:
    """Collect the principles and signals behind an axiom.

    Raises:
        KeyError: If the axiom is not in the graph.
    """
    a_key = _key("axiom", axiom_id)
    if a_key not in graph:
        raise KeyError(f"Unknown axiom: {axiom_id}")

    chain = ProvenanceChain(axiom=graph.nodes[a_key]["record"])
    for p_key in sorted(graph.successors(a_key)):
        chain.principles.append(graph.nodes[p_key]["record"])
        for s_key in graph.successors(p_key):
            chain.signals.append(graph.nodes[s_key]["record"])
    return chain


def build_tension_graph(axioms: list[Axiom], tensions: list[ValueTension]) -> nx.Graph:
    """Undirected graph of axioms joined by their tensions."""
    graph = nx.Graph()
    for axiom in axioms:
        graph.add_node(axiom.id, tier=axiom.tier.value, dimension=axiom.dimension)
    for tension in tensions:
        graph.add_edge(
            tension.axiom_a_id, tension.axiom_b_id,
            severity=tension.severity.value, description=tension.description,
        )
    return graph


def tension_clusters(graph: nx.Graph) -> list[set[str]]:
    """Groups of axioms linked by tensions, largest first (singletons dropped)."""
    components = [c for c in nx.connected_components(graph) if len(c) > 1]
    return sorted(components, key=lambda c: (-len(c), min(c)))
